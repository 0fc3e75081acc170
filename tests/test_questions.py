from coursehub import models

from .conftest import auth

QUESTIONS = "/v1/questions"

SINGLE = {
    "type": "single_choice",
    "content": "2 + 2 = ?",
    "options": [
        {"id": 1, "text": "3"},
        {"id": 2, "text": "4", "is_correct": True},
    ],
    "explanation": "basic arithmetic",
}


def test_create_and_hide_answers_from_students(client, instructor, student):
    created = client.post(QUESTIONS, json=SINGLE, headers=auth(instructor))
    assert created.status_code == 201, created.text
    question_id = created.json()["id"]

    owner_view = client.get(f"{QUESTIONS}/{question_id}", headers=auth(instructor)).json()
    assert any(opt.get("is_correct") for opt in owner_view["detail"]["options"])

    student_view = client.get(f"{QUESTIONS}/{question_id}", headers=auth(student)).json()
    assert all("is_correct" not in opt for opt in student_view["detail"]["options"])
    assert student_view["question"]["content"] == "2 + 2 = ?"


def test_single_choice_with_two_correct_rejected(client, instructor):
    body = dict(SINGLE, options=[{"id": 1, "text": "a", "is_correct": True},
                                 {"id": 2, "text": "b", "is_correct": True}])
    response = client.post(QUESTIONS, json=body, headers=auth(instructor))
    assert response.status_code == 400
    assert response.json()["message"] == "Single choice questions must have exactly one correct answer"


def test_unknown_type_is_rejected(client, instructor):
    response = client.post(QUESTIONS, json=dict(SINGLE, type="essay"), headers=auth(instructor))
    assert response.status_code == 400


def test_students_cannot_author_questions(client, student):
    assert client.post(QUESTIONS, json=SINGLE, headers=auth(student)).status_code == 403


def test_fill_in_validation_ignores_case(client, instructor, student):
    body = {"type": "fill_in", "content": "Capital of France?", "correct_answers": ["Paris"]}
    question_id = client.post(QUESTIONS, json=body, headers=auth(instructor)).json()["id"]

    result = client.post(f"{QUESTIONS}/{question_id}/validate", json={"answer": "PARIS"}, headers=auth(student))
    assert result.status_code == 200
    assert result.json()["is_correct"] is True
    assert result.json()["user_answer"] == "PARIS"
    assert result.json()["correct_answer"] == ["Paris"]


def test_case_sensitive_fill_in(client, instructor, student):
    body = {"type": "fill_in", "content": "Symbol for sodium?", "correct_answers": ["Na"], "case_sensitive": True}
    question_id = client.post(QUESTIONS, json=body, headers=auth(instructor)).json()["id"]
    result = client.post(f"{QUESTIONS}/{question_id}/validate", json={"answer": "NA"}, headers=auth(student))
    assert result.json()["is_correct"] is False


def test_bulk_create_skips_invalid_items(client, db, instructor):
    items = [
        SINGLE,
        {"type": "fill_in", "content": "blank", "correct_answers": []},
        {"type": "multiple_choice", "content": "primes", "options": [
            {"id": 1, "text": "2", "is_correct": True}, {"id": 2, "text": "4"}]},
        {"content": "no type"},
    ]
    response = client.post(f"{QUESTIONS}/bulk", json=items, headers=auth(instructor))
    assert response.status_code == 201
    assert [q["type"] for q in response.json()] == ["single_choice", "multiple_choice"]
    assert db.query(models.Question).count() == 2


def test_update_reapplies_rules(client, instructor):
    question_id = client.post(QUESTIONS, json=SINGLE, headers=auth(instructor)).json()["id"]
    bad = client.patch(
        f"{QUESTIONS}/{question_id}",
        json={"resource": {"options": [{"id": 1, "text": "x"}, {"id": 2, "text": "y"}]}},
        headers=auth(instructor),
    )
    assert bad.status_code == 400

    good = client.patch(f"{QUESTIONS}/{question_id}", json={"difficulty": "hard"}, headers=auth(instructor))
    assert good.json()["difficulty"] == "hard"


def test_update_with_nulls_keeps_existing_values(client, instructor):
    question_id = client.post(QUESTIONS, json=SINGLE, headers=auth(instructor)).json()["id"]
    response = client.patch(
        f"{QUESTIONS}/{question_id}",
        json={"content": None, "resource": {"options": None, "explanation": None}},
        headers=auth(instructor),
    )
    assert response.status_code == 200
    assert response.json()["content"] == "2 + 2 = ?"

    malformed = client.patch(f"{QUESTIONS}/{question_id}", json={"resource": {"options": [{"id": "x"}]}},
                             headers=auth(instructor))
    assert malformed.status_code == 400


def test_delete_detaches_from_quizzes(client, db, admin, make_course, make_quiz):
    lesson, questions = make_quiz(make_course())
    response = client.delete(f"{QUESTIONS}/{questions[0].id}", headers=auth(admin))
    assert response.status_code == 204
    db.expire_all()
    quiz = db.get(models.LessonQuiz, lesson.resource_id)
    assert quiz.question_ids == [q.id for q in questions[1:]]


def test_quiz_question_management(client, instructor, make_course, make_quiz):
    lesson, questions = make_quiz(make_course(), questions=[])
    new = client.post(f"/v1/lessons/{lesson.id}/questions", json=SINGLE, headers=auth(instructor))
    assert new.status_code == 201

    listed = client.get(f"/v1/lessons/{lesson.id}/questions", headers=auth(instructor)).json()
    assert listed["question_ids"] == [new.json()["id"]]

    missing = client.post(f"/v1/lessons/{lesson.id}/questions/attach", json={"question_ids": [999]},
                          headers=auth(instructor))
    assert missing.status_code == 404

    detached = client.delete(f"/v1/lessons/{lesson.id}/questions/{new.json()['id']}", headers=auth(instructor))
    assert detached.json()["question_ids"] == []

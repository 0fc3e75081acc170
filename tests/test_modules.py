from coursehub import models

from .conftest import auth

MODULES = "/v1/modules"
LESSONS = "/v1/lessons"


def add_module(client, user, course, title="Week 1"):
    response = client.post(MODULES, json={"course_id": course.id, "title": title}, headers=auth(user))
    assert response.status_code == 201, response.text
    return response.json()


def add_theory(client, user, module, title):
    response = client.post(LESSONS, json={"type": "theory", "module_id": module["id"], "title": title,
                                          "content_html": f"<p>{title}</p>"},
                           headers=auth(user))
    assert response.status_code == 201, response.text
    return response.json()


def test_modules_are_numbered_per_course(client, db, instructor, make_course):
    course = make_course()
    first = add_module(client, instructor, course)
    second = add_module(client, instructor, course, "Week 2")
    assert (first["position"], second["position"]) == (0, 1)

    listed = client.get(f"{MODULES}/course/{course.id}", headers=auth(instructor)).json()
    assert [m["title"] for m in listed] == ["Week 1", "Week 2"]
    db.expire_all()
    assert db.get(models.Course, course.id).total_modules == 2


def test_only_the_owner_adds_modules(client, make_user, make_course):
    course = make_course()
    stranger = make_user("other-instructor", "instructor")
    response = client.post(MODULES, json={"course_id": course.id, "title": "Mine"}, headers=auth(stranger))
    assert response.status_code == 403


def test_reorder_must_name_exactly_the_module_lessons(client, instructor, make_course):
    course = make_course()
    module = add_module(client, instructor, course)
    a, b, c = (add_theory(client, instructor, module, title) for title in ("A", "B", "C"))

    partial = client.put(f"{MODULES}/{module['id']}/lessons/reorder", json={"lesson_ids": [c["id"], a["id"]]},
                         headers=auth(instructor))
    assert partial.status_code == 400
    repeated = client.put(f"{MODULES}/{module['id']}/lessons/reorder",
                          json={"lesson_ids": [c["id"], a["id"], a["id"]]}, headers=auth(instructor))
    assert repeated.status_code == 400

    reordered = client.put(f"{MODULES}/{module['id']}/lessons/reorder",
                           json={"lesson_ids": [c["id"], a["id"], b["id"]]}, headers=auth(instructor))
    assert [(lesson["title"], lesson["position"]) for lesson in reordered.json()] == [("C", 0), ("A", 1), ("B", 2)]


def test_add_lesson_needs_the_same_course(client, instructor, make_course):
    mine = make_course("Mine")
    other = make_course("Other")
    module = add_module(client, instructor, mine)
    target = add_module(client, instructor, mine, "Week 2")
    foreign = add_theory(client, instructor, add_module(client, instructor, other), "Foreign")
    local = add_theory(client, instructor, module, "Local")

    rejected = client.post(f"{MODULES}/{target['id']}/lessons", json={"lesson_id": foreign["id"]},
                           headers=auth(instructor))
    assert rejected.status_code == 400

    moved = client.post(f"{MODULES}/{target['id']}/lessons", json={"lesson_id": local["id"]},
                        headers=auth(instructor))
    assert [lesson["id"] for lesson in moved.json()] == [local["id"]]
    assert client.get(f"{MODULES}/{module['id']}/lessons", headers=auth(instructor)).json() == []


def test_remove_lesson_keeps_positions_dense(client, instructor, make_course):
    course = make_course()
    module = add_module(client, instructor, course)
    first, second = add_theory(client, instructor, module, "One"), add_theory(client, instructor, module, "Two")

    remaining = client.delete(f"{MODULES}/{module['id']}/lessons/{first['id']}", headers=auth(instructor)).json()
    assert [(lesson["id"], lesson["position"]) for lesson in remaining] == [(second["id"], 0)]


def test_delete_module_removes_its_lessons(client, db, instructor, make_course):
    course = make_course()
    module = add_module(client, instructor, course)
    add_theory(client, instructor, module, "Gone")

    assert client.delete(f"{MODULES}/{module['id']}", headers=auth(instructor)).status_code == 204
    db.expire_all()
    assert db.query(models.Lesson).count() == 0
    assert db.query(models.LessonTheory).count() == 0
    assert db.get(models.Course, course.id).total_modules == 0

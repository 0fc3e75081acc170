from coursehub import models

from .conftest import auth

COURSES = "/v1/courses"


def course_body(category, **overrides):
    body = {
        "title": "Data Science",
        "slug": "data-science",
        "category_id": category.id,
        "pricing": {"price": 300, "sale_price": 250},
        "tags": ["python"],
    }
    body.update(overrides)
    return body


def test_instructor_creates_course(client, instructor, category):
    response = client.post(COURSES, json=course_body(category), headers=auth(instructor))
    assert response.status_code == 201, response.text
    course = response.json()
    assert course["instructor_id"] == instructor.id
    assert course["instructor_name"] == "Prof"
    assert course["pricing"]["sale_price"] == 250
    assert course["is_published"] is False


def test_invalid_category(client, instructor, category):
    response = client.post(COURSES, json=course_body(category, category_id=999), headers=auth(instructor))
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid category"


def test_student_cannot_create(client, student, category):
    assert client.post(COURSES, json=course_body(category), headers=auth(student)).status_code == 403


def test_only_owner_updates(client, make_user, make_course):
    course = make_course()
    intruder = make_user("other-instructor", "instructor")
    response = client.patch(f"{COURSES}/{course.id}", json={"title": "Mine"}, headers=auth(intruder))
    assert response.status_code == 403


def test_update_ignores_explicit_nulls(client, instructor, make_course):
    course = make_course("Kept")
    response = client.patch(f"{COURSES}/{course.id}", json={"title": None, "description": "New text"},
                            headers=auth(instructor))
    assert response.status_code == 200
    assert response.json()["title"] == "Kept"
    assert response.json()["description"] == "New text"


def test_publish_and_filter(client, instructor, make_course):
    draft = make_course("Draft", published=False)
    make_course("Live")
    client.patch(f"{COURSES}/{draft.id}/publish", headers=auth(instructor))

    page = client.get(f"{COURSES}/published?sortBy=title:asc").json()
    assert [c["title"] for c in page["results"]] == ["Draft", "Live"]
    assert page["totalResults"] == 2


def test_search_and_price_filter(client, make_course):
    make_course("Intro to Rust", price=100)
    make_course("Advanced Rust", price=400)
    make_course("Cooking", price=50)

    found = client.get(f"{COURSES}/search?q=rust").json()
    assert found["totalResults"] == 2
    cheap = client.get(f"{COURSES}?max_price=150&sortBy=price:asc").json()
    assert [c["title"] for c in cheap["results"]] == ["Cooking", "Intro to Rust"]


def test_overview_requires_enrollment(client, student, make_course, make_quiz, enroll):
    course = make_course(is_free=True)
    make_quiz(course)
    response = client.get(f"{COURSES}/{course.id}/overview", headers=auth(student))
    assert response.status_code == 403
    assert response.json()["message"] == "User is not enrolled in this course"

    enroll(student, course)
    overview = client.get(f"{COURSES}/{course.id}/overview", headers=auth(student)).json()
    assert overview["total_lessons"] == 1
    assert overview["modules"][0]["lessons"][0]["type"] == "quiz"


def test_rating_is_a_running_average(client, make_user, make_course, enroll):
    course = make_course(is_free=True)
    first, second = make_user("r1"), make_user("r2")
    enroll(first, course)
    enroll(second, course)
    client.post(f"{COURSES}/{course.id}/rate", json={"rating": 5}, headers=auth(first))
    rated = client.post(f"{COURSES}/{course.id}/rate", json={"rating": 2}, headers=auth(second)).json()
    assert rated["rating"] == 3.5
    assert rated["total_ratings"] == 2


def test_delete_cascades(client, db, instructor, make_course, make_quiz):
    course = make_course()
    lesson, _ = make_quiz(course)
    assert client.delete(f"{COURSES}/{course.id}", headers=auth(instructor)).status_code == 204
    db.expire_all()
    assert db.query(models.Module).count() == 0
    assert db.query(models.Lesson).count() == 0
    assert db.query(models.LessonQuiz).count() == 0

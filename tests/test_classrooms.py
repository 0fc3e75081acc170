from .conftest import auth

ROOMS = "/v1/classrooms"


def create_room(client, owner, member_ids=()):
    response = client.post(ROOMS, json={"name": "Algebra", "member_ids": list(member_ids)}, headers=auth(owner))
    assert response.status_code == 201, response.text
    return response.json()


def roles(room):
    return {m["user_id"]: m["role"] for m in room["members"]}


def test_creator_becomes_admin(client, instructor, student):
    room = create_room(client, instructor, [student.id])
    assert roles(room) == {instructor.id: "admin", student.id: "student"}


def test_removing_last_admin_is_rejected(client, instructor, student):
    room = create_room(client, instructor, [student.id])
    response = client.delete(f"{ROOMS}/{room['id']}/members/{instructor.id}", headers=auth(instructor))
    assert response.status_code == 400
    assert response.json()["message"] == "Classroom must have at least one admin"


def test_demoting_last_admin_is_rejected(client, instructor):
    room = create_room(client, instructor)
    response = client.patch(f"{ROOMS}/{room['id']}/members/{instructor.id}", json={"role": "student"},
                            headers=auth(instructor))
    assert response.status_code == 400


def test_admin_can_leave_when_another_admin_exists(client, instructor, student):
    room = create_room(client, instructor, [student.id])
    client.patch(f"{ROOMS}/{room['id']}/members/{student.id}", json={"role": "admin"}, headers=auth(instructor))

    response = client.delete(f"{ROOMS}/{room['id']}/members/{instructor.id}", headers=auth(instructor))
    assert response.status_code == 200
    assert roles(response.json()) == {student.id: "admin"}


def test_student_can_leave_but_not_kick(client, instructor, student, make_user):
    other = make_user("erin")
    room = create_room(client, instructor, [student.id, other.id])

    kick = client.delete(f"{ROOMS}/{room['id']}/members/{other.id}", headers=auth(student))
    assert kick.status_code == 403
    leave = client.delete(f"{ROOMS}/{room['id']}/members/{student.id}", headers=auth(student))
    assert leave.status_code == 200
    assert student.id not in roles(leave.json())


def test_duplicate_member_rejected(client, instructor, student):
    room = create_room(client, instructor, [student.id])
    response = client.post(f"{ROOMS}/{room['id']}/members", json={"user_id": student.id}, headers=auth(instructor))
    assert response.status_code == 400


def test_non_member_cannot_read(client, instructor, student):
    room = create_room(client, instructor)
    assert client.get(f"{ROOMS}/{room['id']}", headers=auth(student)).status_code == 403


def test_assign_course_and_materials(client, instructor, make_course):
    room = create_room(client, instructor)
    course = make_course()
    assigned = client.post(f"{ROOMS}/{room['id']}/courses", json={"course_id": course.id}, headers=auth(instructor))
    assert assigned.json()["assigned_courses"] == [course.id]

    material = client.post(f"{ROOMS}/{room['id']}/materials", json={"name": "Notes", "url": "https://x.io/n.pdf"},
                           headers=auth(instructor))
    assert material.status_code == 201
    listed = client.get(f"{ROOMS}/{room['id']}/materials", headers=auth(instructor)).json()
    assert [m["name"] for m in listed] == ["Notes"]


def test_messages_are_for_members(client, instructor, student, make_user):
    outsider = make_user("frank")
    room = create_room(client, instructor, [student.id])

    denied = client.post("/v1/messages", json={"classroom_id": room["id"], "content": "hi"}, headers=auth(outsider))
    assert denied.status_code == 403

    sent = client.post("/v1/messages", json={"classroom_id": room["id"], "content": "hello"}, headers=auth(student))
    assert sent.status_code == 201
    message_id = sent.json()["id"]

    read = client.post("/v1/messages/read", json={"message_ids": [message_id]}, headers=auth(instructor))
    assert read.json() == {"marked": 1}
    listed = client.get(f"/v1/messages/classroom/{room['id']}", headers=auth(instructor)).json()
    assert set(listed["results"][0]["read_by"]) == {student.id, instructor.id}

    edit = client.patch(f"/v1/messages/{message_id}", json={"content": "hello all"}, headers=auth(instructor))
    assert edit.status_code == 403
    edit = client.patch(f"/v1/messages/{message_id}", json={"content": "hello all"}, headers=auth(student))
    assert edit.json()["is_edited"] is True


def test_former_member_cannot_edit_message(client, instructor, student):
    room = create_room(client, instructor, [student.id])
    sent = client.post("/v1/messages", json={"classroom_id": room["id"], "content": "hello"}, headers=auth(student))
    client.delete(f"{ROOMS}/{room['id']}/members/{student.id}", headers=auth(student))

    edit = client.patch(f"/v1/messages/{sent.json()['id']}", json={"content": "edited"}, headers=auth(student))
    assert edit.status_code == 403
    assert edit.json()["message"] == "Not a member of this classroom"

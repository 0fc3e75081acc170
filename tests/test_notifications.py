from .conftest import auth

NOTIFICATIONS = "/v1/notifications"


def test_bulk_create_and_read_flow(client, admin, student, make_user):
    other = make_user("ivy")
    created = client.post(f"{NOTIFICATIONS}/bulk",
                          json={"recipient_ids": [student.id, other.id, student.id], "content": "Maintenance"},
                          headers=auth(admin))
    assert created.status_code == 201
    assert len(created.json()) == 2

    mine = client.get(f"{NOTIFICATIONS}/my?is_read=false", headers=auth(student)).json()
    assert mine["totalResults"] == 1
    notification_id = mine["results"][0]["id"]

    assert client.get(f"{NOTIFICATIONS}/{notification_id}", headers=auth(other)).status_code == 403
    read = client.patch(f"{NOTIFICATIONS}/{notification_id}/read", headers=auth(student))
    assert read.json()["is_read"] is True


def test_mark_all_read_and_clear(client, admin, student):
    for text in ("one", "two"):
        client.post(NOTIFICATIONS, json={"recipient_id": student.id, "content": text}, headers=auth(admin))

    assert client.patch(f"{NOTIFICATIONS}/read-all", headers=auth(student)).json() == {"updated": 2}
    assert client.delete(f"{NOTIFICATIONS}/my", headers=auth(student)).json() == {"deleted": 2}
    assert client.get(f"{NOTIFICATIONS}/my", headers=auth(student)).json()["totalResults"] == 0


def test_only_admin_creates(client, student):
    response = client.post(NOTIFICATIONS, json={"recipient_id": student.id, "content": "hi"}, headers=auth(student))
    assert response.status_code == 403


def test_unknown_recipient(client, admin):
    response = client.post(NOTIFICATIONS, json={"recipient_id": 404, "content": "hi"}, headers=auth(admin))
    assert response.status_code == 400

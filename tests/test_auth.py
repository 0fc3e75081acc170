from coursehub import models

from .conftest import auth


def test_register_login_me(client):
    registered = client.post("/register", json={"username": "newbie", "password": "secret1", "name": "New"})
    assert registered.status_code == 201, registered.text
    assert registered.json()["role"] == "student"
    assert registered.json()["wallet_balance"] == 0

    login = client.post("/v1/auth/login", json={"username": "newbie", "password": "secret1"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["user"]["username"] == "newbie"

    me = client.get("/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["name"] == "New"


def test_duplicate_username(client):
    body = {"username": "twin", "password": "secret1"}
    client.post("/register", json=body)
    response = client.post("/register", json=body)
    assert response.status_code == 400
    assert response.json() == {"code": 400, "message": "Username already taken"}


def test_wrong_password(client):
    client.post("/register", json={"username": "grace", "password": "secret1"})
    response = client.post("/login", json={"username": "grace", "password": "nope123"})
    assert response.status_code == 401


def test_missing_token_is_401(client):
    response = client.get("/v1/users/me")
    assert response.status_code == 401
    assert set(response.json()) == {"code", "message"}


def test_inactive_user_rejected(client, admin, student):
    toggled = client.patch(f"/v1/users/{student.id}/toggle-active", headers=auth(admin))
    assert toggled.json()["is_active"] is False
    assert client.get("/v1/users/me", headers=auth(student)).status_code == 401


def test_user_admin_endpoints(client, admin, student):
    assert client.get("/v1/users", headers=auth(student)).status_code == 403
    listed = client.get("/v1/users?role=student", headers=auth(admin)).json()
    assert [u["username"] for u in listed["results"]] == ["alice"]

    promoted = client.patch(f"/v1/users/{student.id}/role", json={"role": "instructor"}, headers=auth(admin))
    assert promoted.json()["role"] == "instructor"


def test_update_me(client, student):
    response = client.patch("/v1/users/me", json={"name": "Alice L.", "email": "a@example.com"},
                            headers=auth(student))
    assert response.json()["name"] == "Alice L."
    assert response.json()["email"] == "a@example.com"


def test_admin_creates_and_updates_users(client, admin):
    created = client.post("/v1/users", json={"username": "mentor", "password": "secret1", "role": "instructor"},
                          headers=auth(admin))
    assert created.status_code == 201
    assert created.json()["role"] == "instructor"

    updated = client.patch(f"/v1/users/{created.json()['id']}", json={"name": "Mentor", "is_active": False,
                                                                      "email": None},
                           headers=auth(admin))
    assert updated.json()["name"] == "Mentor"
    assert updated.json()["is_active"] is False

    demote_self = client.patch(f"/v1/users/{admin.id}", json={"role": "student"}, headers=auth(admin))
    assert demote_self.status_code == 400


def test_admin_wallet_adjustment_writes_ledger(client, db, admin, student):
    added = client.patch(f"/v1/users/{student.id}/wallet", json={"amount": 50, "operation": "add"},
                         headers=auth(admin))
    assert added.json()["wallet_balance"] == 550

    overdraw = client.patch(f"/v1/users/{student.id}/wallet", json={"amount": 1000, "operation": "subtract"},
                            headers=auth(admin))
    assert overdraw.status_code == 400

    ledger = db.query(models.Transaction).filter_by(user_id=student.id).all()
    assert [(tx.type, tx.amount, tx.balance_after) for tx in ledger] == [("deposit", 50, 550)]
    assert client.patch(f"/v1/users/{student.id}/wallet", json={"amount": 5, "operation": "add"},
                        headers=auth(student)).status_code == 403


def test_delete_user(client, db, admin, student, make_user):
    learner = make_user("kim")
    assert client.delete(f"/v1/users/{learner.id}", headers=auth(admin)).status_code == 204
    db.expire_all()
    assert db.get(models.User, learner.id) is None

    client.post("/v1/transactions/deposit", json={"amount": 10}, headers=auth(student))
    kept = client.delete(f"/v1/users/{student.id}", headers=auth(admin))
    assert kept.status_code == 400
    assert client.delete(f"/v1/users/{admin.id}", headers=auth(admin)).status_code == 400


def test_user_stats(client, admin, student, instructor):
    stats = client.get("/v1/users/stats", headers=auth(admin)).json()
    assert stats["totalUsers"] == 3
    assert stats["usersByRole"] == {"student": 1, "instructor": 1, "admin": 1}
    assert stats["totalWalletBalance"] == 500

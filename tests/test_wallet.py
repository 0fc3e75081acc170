from coursehub import models

from .conftest import auth

TX = "/v1/transactions"


def test_deposit_and_balance(client, student):
    response = client.post(f"{TX}/deposit", json={"amount": 250}, headers=auth(student))
    assert response.status_code == 201
    assert response.json()["type"] == "deposit"
    assert response.json()["balance_after"] == 750

    balance = client.get(f"{TX}/balance", headers=auth(student)).json()
    assert balance == {"balance": 750, "currency": "VND"}


def test_non_positive_amount_is_a_validation_error(client, student):
    response = client.post(f"{TX}/deposit", json={"amount": 0}, headers=auth(student))
    assert response.status_code == 400
    assert response.json()["code"] == 400


def test_withdraw_more_than_balance(client, db, student):
    response = client.post(f"{TX}/withdraw", json={"amount": 501}, headers=auth(student))
    assert response.status_code == 400
    db.expire_all()
    assert db.get(models.User, student.id).wallet_balance == 500

    ok = client.post(f"{TX}/withdraw", json={"amount": 500}, headers=auth(student))
    assert ok.json()["balance_after"] == 0


def test_admin_transaction_moves_wallet_and_delete_reverses(client, db, admin, student):
    response = client.post(
        TX,
        json={"user_id": student.id, "type": "deposit", "amount": 100, "update_wallet": True},
        headers=auth(admin),
    )
    assert response.status_code == 201
    tx_id = response.json()["id"]
    db.expire_all()
    assert db.get(models.User, student.id).wallet_balance == 600

    assert client.delete(f"{TX}/{tx_id}", headers=auth(admin)).status_code == 204
    db.expire_all()
    assert db.get(models.User, student.id).wallet_balance == 500
    assert db.get(models.Transaction, tx_id) is None


def test_admin_transaction_without_wallet_move(client, db, admin, student):
    response = client.post(
        TX, json={"user_id": student.id, "type": "payment", "amount": 40}, headers=auth(admin),
    )
    assert response.json()["balance_after"] == 500
    assert response.json()["wallet_moved"] is False

    assert client.delete(f"{TX}/{response.json()['id']}", headers=auth(admin)).status_code == 204
    db.expire_all()
    assert db.get(models.User, student.id).wallet_balance == 500


def test_deleting_external_payment_leaves_wallet_alone(client, db, admin, student, make_course):
    course = make_course(price=200)
    order = client.post("/v1/orders", json={"course_ids": [course.id], "payment_method": "card"},
                        headers=auth(student)).json()
    client.post(f"/v1/orders/{order['id']}/process", headers=auth(admin))
    payment = db.query(models.Transaction).filter_by(user_id=student.id, type="payment").one()
    assert payment.wallet_moved is False

    assert client.delete(f"{TX}/{payment.id}", headers=auth(admin)).status_code == 204
    db.expire_all()
    assert db.get(models.User, student.id).wallet_balance == 500


def test_students_see_only_their_transactions(client, student, make_user):
    other = make_user("dave", balance=100)
    client.post(f"{TX}/deposit", json={"amount": 10}, headers=auth(student))
    client.post(f"{TX}/deposit", json={"amount": 20}, headers=auth(other))

    page = client.get(TX, headers=auth(student)).json()
    assert page["totalResults"] == 1
    assert client.get(f"{TX}/user/{other.id}", headers=auth(student)).status_code == 403


def test_summary(client, student):
    client.post(f"{TX}/deposit", json={"amount": 100}, headers=auth(student))
    client.post(f"{TX}/withdraw", json={"amount": 30}, headers=auth(student))
    summary = client.get(f"{TX}/summary", headers=auth(student)).json()
    assert summary["total_deposits"] == 100
    assert summary["total_withdrawals"] == 30
    assert summary["transaction_count"] == 2
    assert summary["current_balance"] == 570


def test_stats_are_admin_only(client, student, admin):
    assert client.get(f"{TX}/stats", headers=auth(student)).status_code == 403
    assert client.get(f"{TX}/stats", headers=auth(admin)).status_code == 200

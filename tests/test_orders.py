from coursehub import models

from .conftest import auth

ORDERS = "/v1/orders"


def place(client, user, course_ids, payment_method="wallet"):
    return client.post(ORDERS, json={"course_ids": course_ids, "payment_method": payment_method},
                       headers=auth(user))


def balance_of(db, user):
    db.expire_all()
    return db.get(models.User, user.id).wallet_balance


def test_purchase_deducts_sale_price_and_enrolls(client, db, student, make_course):
    course = make_course(price=200, sale_price=150)

    order = place(client, student, [course.id]).json()
    assert order["status"] == "pending"
    assert order["total_amount"] == 150
    assert order["items"] == [{"course_id": course.id, "price": 150}]

    paid = client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))
    assert paid.status_code == 200, paid.text
    assert paid.json()["status"] == "completed"
    assert paid.json()["paid_at"] is not None

    assert balance_of(db, student) == 350
    enrollments = db.query(models.Enrollment).filter_by(user_id=student.id).all()
    assert [e.course_id for e in enrollments] == [course.id]
    tx = db.query(models.Transaction).filter_by(user_id=student.id).one()
    assert (tx.type, tx.amount, tx.balance_after, tx.reference_id) == ("payment", 150, 350, order["id"])
    assert db.query(models.Notification).filter_by(recipient_id=student.id).count() == 1


def test_list_price_used_without_sale(client, db, student, make_course):
    course = make_course(price=120)
    order = place(client, student, [course.id]).json()
    client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))
    assert balance_of(db, student) == 380


def test_duplicates_and_enrolled_courses_are_dropped(client, db, student, make_course, enroll):
    owned = make_course("Owned", price=50)
    fresh = make_course("Fresh", price=70)
    enroll(student, owned)

    order = place(client, student, [owned.id, fresh.id, fresh.id]).json()
    assert order["items"] == [{"course_id": fresh.id, "price": 70}]

    client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))
    assert db.query(models.Enrollment).filter_by(user_id=student.id, course_id=fresh.id).count() == 1
    assert db.query(models.Enrollment).filter_by(user_id=student.id).count() == 2


def test_order_with_nothing_left_is_rejected(client, student, make_course, enroll):
    course = make_course(price=50)
    enroll(student, course)
    response = place(client, student, [course.id])
    assert response.status_code == 400


def test_unpublished_course_cannot_be_ordered(client, student, make_course):
    course = make_course(price=50, published=False)
    assert place(client, student, [course.id]).status_code == 400


def test_insufficient_balance_keeps_order_pending(client, db, make_user, make_course):
    poor = make_user("bob", balance=10)
    course = make_course(price=100)
    order = place(client, poor, [course.id]).json()

    response = client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(poor))
    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient wallet balance"

    db.expire_all()
    assert db.get(models.Order, order["id"]).status == "pending"
    assert balance_of(db, poor) == 10
    assert db.query(models.Enrollment).filter_by(user_id=poor.id).count() == 0
    assert db.query(models.Transaction).filter_by(user_id=poor.id).count() == 0


def test_paying_twice_is_rejected(client, db, student, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id]).json()
    client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))

    again = client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))
    assert again.status_code == 400
    assert balance_of(db, student) == 400


def test_cannot_pay_someone_elses_order(client, student, make_user, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id]).json()
    other = make_user("carol", balance=1000)
    assert client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(other)).status_code == 403


def test_cancel_pending_order(client, student, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id]).json()
    response = client.post(f"{ORDERS}/{order['id']}/cancel", headers=auth(student))
    assert response.json()["status"] == "cancelled"
    assert client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student)).status_code == 400


def test_refund_restores_wallet_and_removes_enrollment(client, db, admin, student, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id]).json()
    client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))

    response = client.post(f"{ORDERS}/{order['id']}/refund", json={"reason": "changed mind"}, headers=auth(admin))
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "refunded"
    assert balance_of(db, student) == 500
    assert db.query(models.Enrollment).filter_by(user_id=student.id).count() == 0
    refund = db.query(models.Transaction).filter_by(user_id=student.id, type="refund").one()
    assert refund.balance_after == 500


def test_admin_edit_cannot_mark_order_paid(client, db, admin, student, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id]).json()

    forged = client.patch(f"{ORDERS}/{order['id']}", json={"status": "completed"}, headers=auth(admin))
    assert forged.status_code == 400
    refund = client.post(f"{ORDERS}/{order['id']}/refund", json={}, headers=auth(admin))
    assert refund.status_code == 400
    assert balance_of(db, student) == 500

    failed = client.patch(f"{ORDERS}/{order['id']}", json={"status": "failed"}, headers=auth(admin))
    assert failed.json()["status"] == "failed"


def test_paid_order_status_is_locked(client, admin, student, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id]).json()
    client.post(f"{ORDERS}/{order['id']}/pay", headers=auth(student))

    reopened = client.patch(f"{ORDERS}/{order['id']}", json={"status": "pending"}, headers=auth(admin))
    assert reopened.status_code == 400
    assert reopened.json()["message"] == "Paid orders can only be changed by a refund"


def test_external_payment_processed_by_admin(client, db, admin, student, make_course):
    course = make_course(price=100)
    order = place(client, student, [course.id], payment_method="card").json()

    assert client.post(f"{ORDERS}/{order['id']}/process", headers=auth(student)).status_code == 403
    response = client.post(f"{ORDERS}/{order['id']}/process", headers=auth(admin))
    assert response.json()["status"] == "completed"
    assert balance_of(db, student) == 500
    assert db.query(models.Enrollment).filter_by(user_id=student.id, course_id=course.id).count() == 1


def test_purchase_shortcut(client, db, student, make_course):
    course = make_course(price=80, sale_price=60)
    response = client.post("/v1/transactions/purchase", json={"course_id": course.id}, headers=auth(student))
    assert response.status_code == 201, response.text
    assert response.json()["status"] == "completed"
    assert balance_of(db, student) == 440


def test_my_orders_are_paginated(client, student, make_course):
    for title in ("A", "B", "C"):
        place(client, student, [make_course(title, price=10).id])
    page = client.get(f"{ORDERS}/my?limit=2&page=2", headers=auth(student)).json()
    assert page["totalResults"] == 3
    assert page["totalPages"] == 2
    assert len(page["results"]) == 1

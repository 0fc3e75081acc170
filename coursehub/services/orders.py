"""Orders: checkout, payment, cancellation and refund.

Paying an order is a single unit of work: the wallet debit, the payment
transaction, the enrollments and the buyer's notification are committed
together or not at all.
"""
import logging
import uuid

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from . import enrollments as enrollment_service
from . import wallet as wallet_service
from .common import apply_fields, ensure_owner_or_admin, get_or_404
from .courses import effective_price
from .notifications import notify

logger = logging.getLogger(__name__)


def _order_code() -> str:
    return f"ORD-{uuid.uuid4().hex[:10].upper()}"


def create_order(db: Session, user: models.User, body: schemas.OrderCreate) -> models.Order:
    items = []
    currency = None
    for course_id in dict.fromkeys(body.course_ids):
        course = db.get(models.Course, course_id)
        if course is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, f"Course not found: {course_id}")
        if not course.is_published:
            raise ApiError(status.HTTP_400_BAD_REQUEST, f"Course {course_id} is not available for purchase")
        if enrollment_service.find_enrollment(db, user.id, course.id):
            continue
        items.append({"course_id": course.id, "price": effective_price(course)})
        currency = currency or course.currency
    if not items:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Already enrolled in all selected courses")

    order = models.Order(
        code=_order_code(),
        user_id=user.id,
        status="pending",
        total_amount=round(sum(item["price"] for item in items), 2),
        currency=currency or user.wallet_currency,
        items=items,
        payment_method=body.payment_method,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def _complete(db: Session, order: models.Order, balance_after: float, wallet_moved: bool):
    """Write the payment, enrollments and notification for a paid order (no commit)."""
    wallet_service.record(
        db, order.user_id, "payment", order.total_amount, balance_after,
        reference_id=order.id, description=f"Payment for order {order.code}", wallet_moved=wallet_moved,
    )
    for course_id in order.course_ids:
        course = db.get(models.Course, course_id)
        if course is None or enrollment_service.find_enrollment(db, order.user_id, course_id):
            continue
        enrollment_service.enroll(db, order.user_id, course)
    order.status = "completed"
    order.paid_at = models.utcnow()
    notify(db, order.user_id, f"Your order {order.code} has been paid. Enjoy your courses!")


def _pending(order: models.Order):
    if order.status != "pending":
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Order is not pending")


def pay_with_wallet(db: Session, order_id: int, user: models.User) -> models.Order:
    order = get_or_404(db, models.Order, order_id, "Order not found")
    if order.user_id != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden")
    _pending(order)

    try:
        if order.total_amount > 0:
            balance = wallet_service.debit(db, user.id, order.total_amount)
        else:
            balance = wallet_service.current_balance(db, user.id)
        order.payment_method = "wallet"
        _complete(db, order, balance, wallet_moved=True)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Order %s paid from wallet by user %s: %s %s", order.code, user.id,
                order.total_amount, order.currency)
    return order


def purchase_course(db: Session, user: models.User, course_id: int) -> models.Order:
    order = create_order(db, user, schemas.OrderCreate(course_ids=[course_id], payment_method="wallet"))
    try:
        return pay_with_wallet(db, order.id, user)
    except ApiError:
        # leave no dangling checkout behind a failed shortcut
        order.status = "failed"
        db.commit()
        raise


def process_payment(db: Session, order_id: int) -> models.Order:
    """Confirm an order paid outside the wallet (card, bank transfer...)."""
    order = get_or_404(db, models.Order, order_id, "Order not found")
    _pending(order)
    if order.payment_method == "wallet":
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Wallet orders must be paid from the wallet")
    try:
        _complete(db, order, wallet_service.current_balance(db, order.user_id), wallet_moved=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Order %s confirmed via %s", order.code, order.payment_method)
    return order


def cancel_order(db: Session, order_id: int, user: models.User) -> models.Order:
    order = get_or_404(db, models.Order, order_id, "Order not found")
    ensure_owner_or_admin(user, order.user_id)
    _pending(order)
    order.status = "cancelled"
    db.commit()
    db.refresh(order)
    return order


def refund_order(db: Session, order_id: int, body: schemas.RefundIn) -> models.Order:
    order = get_or_404(db, models.Order, order_id, "Order not found")
    if order.status != "completed":
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Only completed orders can be refunded")

    try:
        balance = wallet_service.credit(db, order.user_id, order.total_amount)
        description = f"Refund for order {order.code}"
        if body.reason:
            description = f"{description}: {body.reason}"
        wallet_service.record(db, order.user_id, "refund", order.total_amount, balance,
                              reference_id=order.id, description=description)
        for course_id in order.course_ids:
            enrollment = enrollment_service.find_enrollment(db, order.user_id, course_id)
            if enrollment is not None:
                enrollment_service.unenroll(db, enrollment)
        order.status = "refunded"
        notify(db, order.user_id, f"Your order {order.code} has been refunded.")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Order %s refunded: %s %s back to user %s", order.code, order.total_amount,
                order.currency, order.user_id)
    return order


def query_orders(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Order)
    if user.role != "admin":
        query = query.filter(models.Order.user_id == user.id)
    elif filters.get("user_id"):
        query = query.filter(models.Order.user_id == filters["user_id"])
    if filters.get("status"):
        query = query.filter(models.Order.status == filters["status"])
    if filters.get("payment_method"):
        query = query.filter(models.Order.payment_method == filters["payment_method"])
    return paginate(query, models.Order, **page)


def orders_by_user(db: Session, user_id: int, user: models.User, page: dict):
    ensure_owner_or_admin(user, user_id)
    query = db.query(models.Order).filter(models.Order.user_id == user_id)
    return paginate(query, models.Order, **page)


def get_order(db: Session, order_id: int, user: models.User) -> models.Order:
    order = get_or_404(db, models.Order, order_id, "Order not found")
    ensure_owner_or_admin(user, order.user_id)
    return order


def get_order_by_code(db: Session, code: str, user: models.User) -> models.Order:
    order = db.query(models.Order).filter(models.Order.code == code).first()
    if order is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Order not found")
    ensure_owner_or_admin(user, order.user_id)
    return order


def update_order(db: Session, order_id: int, body: schemas.OrderUpdate) -> models.Order:
    order = get_or_404(db, models.Order, order_id, "Order not found")
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if order.status in ("completed", "refunded") and updates.get("status", order.status) != order.status:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Paid orders can only be changed by a refund")
    apply_fields(order, updates)
    db.commit()
    db.refresh(order)
    return order


def delete_order(db: Session, order_id: int):
    order = get_or_404(db, models.Order, order_id, "Order not found")
    db.delete(order)
    db.commit()


def order_stats(db: Session) -> dict:
    by_status = db.query(models.Order.status, func.count(models.Order.id)).group_by(models.Order.status).all()
    revenue = (
        db.query(func.sum(models.Order.total_amount))
        .filter(models.Order.status == "completed")
        .scalar()
    )
    return {
        "totalOrders": db.query(models.Order).count(),
        "ordersByStatus": {key: count for key, count in by_status},
        "totalRevenue": float(revenue or 0),
    }

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import ensure_owner_or_admin, get_or_404


def notify(db: Session, recipient_id: int, content: str, type: str = "system") -> models.Notification:
    """Queue a notification in the current unit of work (no commit)."""
    notification = models.Notification(recipient_id=recipient_id, content=content, type=type, is_read=False)
    db.add(notification)
    return notification


def _check_recipients(db: Session, recipient_ids):
    found = {row.id for row in db.query(models.User.id).filter(models.User.id.in_(recipient_ids))}
    missing = sorted(set(recipient_ids) - found)
    if missing:
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"Recipient not found: {missing[0]}")


def create_notification(db: Session, body: schemas.NotificationCreate) -> models.Notification:
    _check_recipients(db, [body.recipient_id])
    notification = models.Notification(**body.model_dump())
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def bulk_create(db: Session, body: schemas.BulkNotificationCreate) -> list:
    recipient_ids = list(dict.fromkeys(body.recipient_ids))
    _check_recipients(db, recipient_ids)
    created = [notify(db, recipient_id, body.content, body.type) for recipient_id in recipient_ids]
    db.commit()
    return created


def query_notifications(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Notification)
    if user.role != "admin":
        query = query.filter(models.Notification.recipient_id == user.id)
    elif filters.get("recipient_id"):
        query = query.filter(models.Notification.recipient_id == filters["recipient_id"])
    if filters.get("is_read") is not None:
        query = query.filter(models.Notification.is_read.is_(filters["is_read"]))
    if filters.get("type"):
        query = query.filter(models.Notification.type == filters["type"])
    return paginate(query, models.Notification, default_limit=20, **page)


def my_notifications(db: Session, user: models.User, page: dict, is_read=None):
    query = db.query(models.Notification).filter(models.Notification.recipient_id == user.id)
    if is_read is not None:
        query = query.filter(models.Notification.is_read.is_(is_read))
    return paginate(query, models.Notification, default_limit=20, **page)


def get_notification(db: Session, notification_id: int, user: models.User) -> models.Notification:
    notification = get_or_404(db, models.Notification, notification_id, "Notification not found")
    ensure_owner_or_admin(user, notification.recipient_id)
    return notification


def update_notification(db: Session, notification_id: int, body: schemas.NotificationUpdate, user: models.User):
    notification = get_notification(db, notification_id, user)
    if body.is_read is not None:
        notification.is_read = body.is_read
    if body.content is not None:
        if user.role != "admin":
            raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden")
        notification.content = body.content
    db.commit()
    db.refresh(notification)
    return notification


def mark_as_read(db: Session, notification_id: int, user: models.User):
    notification = get_notification(db, notification_id, user)
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user: models.User) -> int:
    count = (
        db.query(models.Notification)
        .filter(models.Notification.recipient_id == user.id, models.Notification.is_read.is_(False))
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return count


def delete_notification(db: Session, notification_id: int, user: models.User):
    notification = get_notification(db, notification_id, user)
    db.delete(notification)
    db.commit()


def delete_my_notifications(db: Session, user: models.User) -> int:
    count = (
        db.query(models.Notification)
        .filter(models.Notification.recipient_id == user.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count


def notification_stats(db: Session) -> dict:
    by_type = (
        db.query(models.Notification.type, func.count(models.Notification.id))
        .group_by(models.Notification.type)
        .all()
    )
    total = db.query(models.Notification).count()
    unread = db.query(models.Notification).filter(models.Notification.is_read.is_(False)).count()
    return {
        "totalNotifications": total,
        "unreadNotifications": unread,
        "readNotifications": total - unread,
        "notificationsByType": {key: count for key, count in by_type},
    }

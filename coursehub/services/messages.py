from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .classrooms import get_classroom, is_classroom_admin, is_member
from .common import get_or_404


def _member_classroom_ids(db: Session, user_id: int):
    return db.query(models.ClassroomMember.classroom_id).filter(models.ClassroomMember.user_id == user_id)


def create_message(db: Session, user: models.User, body: schemas.MessageCreate) -> models.Message:
    classroom = get_or_404(db, models.Classroom, body.classroom_id, "Classroom not found")
    if not is_member(classroom, user):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not a member of this classroom")
    if body.type == "system" and not is_classroom_admin(classroom, user):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Only classroom admins can post system messages")
    message = models.Message(
        classroom_id=classroom.id,
        sender_id=user.id,
        content=body.content,
        type=body.type,
        read_by=[user.id],
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def messages_by_classroom(db: Session, classroom_id: int, user: models.User, page: dict):
    get_classroom(db, classroom_id, user)
    query = db.query(models.Message).filter(models.Message.classroom_id == classroom_id)
    return paginate(query, models.Message, default_sort="created_at:asc", default_limit=20, **page)


def messages_by_sender(db: Session, sender_id: int, user: models.User, page: dict):
    query = db.query(models.Message).filter(models.Message.sender_id == sender_id)
    if user.role != "admin":
        query = query.filter(models.Message.classroom_id.in_(_member_classroom_ids(db, user.id)))
    return paginate(query, models.Message, default_limit=20, **page)


def my_messages(db: Session, user: models.User, page: dict):
    query = db.query(models.Message).filter(models.Message.sender_id == user.id)
    return paginate(query, models.Message, default_limit=20, **page)


def search_messages(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Message)
    if user.role != "admin":
        query = query.filter(models.Message.classroom_id.in_(_member_classroom_ids(db, user.id)))
    if filters.get("q"):
        query = query.filter(models.Message.content.ilike(f"%{filters['q']}%"))
    if filters.get("classroom_id"):
        query = query.filter(models.Message.classroom_id == filters["classroom_id"])
    if filters.get("type"):
        query = query.filter(models.Message.type == filters["type"])
    return paginate(query, models.Message, default_limit=20, **page)


def get_message(db: Session, message_id: int, user: models.User) -> models.Message:
    message = get_or_404(db, models.Message, message_id, "Message not found")
    get_classroom(db, message.classroom_id, user)
    return message


def update_message(db: Session, message_id: int, body: schemas.MessageUpdate, user: models.User):
    message = get_or_404(db, models.Message, message_id, "Message not found")
    if message.sender_id != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Only the sender can edit this message")
    if not is_member(get_or_404(db, models.Classroom, message.classroom_id, "Classroom not found"), user):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not a member of this classroom")
    message.content = body.content
    message.is_edited = True
    db.commit()
    db.refresh(message)
    return message


def delete_message(db: Session, message_id: int, user: models.User):
    message = get_or_404(db, models.Message, message_id, "Message not found")
    if message.sender_id != user.id:
        classroom = get_or_404(db, models.Classroom, message.classroom_id, "Classroom not found")
        if not is_classroom_admin(classroom, user):
            raise ApiError(status.HTTP_403_FORBIDDEN, "Not allowed to delete this message")
    db.delete(message)
    db.commit()


def mark_read(db: Session, message_ids: list, user: models.User) -> int:
    """Add the caller to ``read_by`` of every listed message they can see."""
    allowed = {row.classroom_id for row in _member_classroom_ids(db, user.id)}
    marked = 0
    for message in db.query(models.Message).filter(models.Message.id.in_(message_ids)).all():
        if message.classroom_id not in allowed and user.role != "admin":
            continue
        if user.id not in (message.read_by or []):
            message.read_by = list(message.read_by or []) + [user.id]
            marked += 1
    db.commit()
    return marked


def message_stats(db: Session) -> dict:
    by_type = db.query(models.Message.type, func.count(models.Message.id)).group_by(models.Message.type).all()
    return {
        "totalMessages": db.query(models.Message).count(),
        "editedMessages": db.query(models.Message).filter(models.Message.is_edited.is_(True)).count(),
        "messagesByType": {key: count for key, count in by_type},
    }

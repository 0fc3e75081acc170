import logging

from fastapi import status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import settings
from ..errors import ApiError
from ..pagination import paginate
from ..security import create_access_token, hash_password, verify_password
from . import enrollments as enrollment_service
from . import wallet as wallet_service
from .common import apply_fields, get_or_404

logger = logging.getLogger(__name__)


def _new_user(db: Session, user_in: schemas.UserCreate, role: str = "student", is_active: bool = True):
    if db.query(models.User).filter(models.User.username == user_in.username).first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Username already taken")
    user = models.User(
        username=user_in.username,
        email=user_in.email,
        name=user_in.name,
        hashed_password=hash_password(user_in.password),
        role=role,
        is_active=is_active,
        wallet_balance=0,
        wallet_currency=settings.DEFAULT_CURRENCY,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def register(db: Session, user_in: schemas.UserCreate) -> models.User:
    user = _new_user(db, user_in)
    logger.info("Registered user %s", user.username)
    return user


def create_user(db: Session, body: schemas.AdminUserCreate) -> models.User:
    user = _new_user(db, body, role=body.role, is_active=body.is_active)
    logger.info("Admin created %s %s", user.role, user.username)
    return user


def login(db: Session, credentials: schemas.LoginIn) -> dict:
    user = db.query(models.User).filter(models.User.username == credentials.username).first()
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Incorrect username or password")
    if not user.is_active:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Account is disabled")
    token = create_access_token(data={"sub": user.username, "role": user.role, "id": user.id})
    return {"access_token": token, "token_type": "bearer", "user": user}


def _apply_profile(user: models.User, body: schemas.UserUpdate):
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    password = updates.pop("password", None)
    apply_fields(user, updates)
    if password:
        user.hashed_password = hash_password(password)


def update_me(db: Session, user: models.User, body: schemas.UserUpdate) -> models.User:
    _apply_profile(user, body)
    db.commit()
    db.refresh(user)
    return user


def query_users(db: Session, filters: dict, page: dict):
    query = db.query(models.User)
    if filters.get("role"):
        query = query.filter(models.User.role == filters["role"])
    if filters.get("is_active") is not None:
        query = query.filter(models.User.is_active.is_(filters["is_active"]))
    if filters.get("q"):
        pattern = f"%{filters['q']}%"
        query = query.filter(or_(models.User.username.ilike(pattern), models.User.name.ilike(pattern),
                                 models.User.email.ilike(pattern)))
    return paginate(query, models.User, **page)


def get_user(db: Session, user_id: int) -> models.User:
    return get_or_404(db, models.User, user_id, "User not found")


def set_role(db: Session, user_id: int, role: str) -> models.User:
    if role not in models.ROLES:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid role")
    user = get_user(db, user_id)
    user.role = role
    db.commit()
    db.refresh(user)
    logger.info("User %s role set to %s", user.username, role)
    return user


def toggle_active(db: Session, user_id: int, admin: models.User) -> models.User:
    user = get_user(db, user_id)
    if user.id == admin.id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "You cannot deactivate yourself")
    user.is_active = not user.is_active
    db.commit()
    db.refresh(user)
    logger.info("User %s active=%s", user.username, user.is_active)
    return user


def update_user(db: Session, user_id: int, body: schemas.AdminUserUpdate, admin: models.User) -> models.User:
    user = get_user(db, user_id)
    if user.id == admin.id and (body.role not in (None, "admin") or body.is_active is False):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "You cannot demote or deactivate yourself")
    _apply_profile(user, body)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int, admin: models.User):
    """Remove an account with no teaching or payment history, plus its learning data."""
    user = get_user(db, user_id)
    if user.id == admin.id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "You cannot delete yourself")
    for model, column in ((models.Course, models.Course.instructor_id),
                          (models.Order, models.Order.user_id),
                          (models.Transaction, models.Transaction.user_id)):
        if db.query(model.id).filter(column == user.id).first():
            raise ApiError(status.HTTP_400_BAD_REQUEST,
                           "User has courses or payment history; deactivate the account instead")

    memberships = db.query(models.ClassroomMember).filter(models.ClassroomMember.user_id == user.id).all()
    for membership in memberships:
        if membership.role != "admin":
            continue
        admins = (
            db.query(models.ClassroomMember)
            .filter(models.ClassroomMember.classroom_id == membership.classroom_id,
                    models.ClassroomMember.role == "admin")
            .count()
        )
        if admins == 1:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Classroom must have at least one admin")

    for enrollment in db.query(models.Enrollment).filter(models.Enrollment.user_id == user.id).all():
        enrollment_service.unenroll(db, enrollment)
    for model, column in ((models.Attempt, models.Attempt.user_id),
                          (models.ClassroomMember, models.ClassroomMember.user_id),
                          (models.Message, models.Message.sender_id),
                          (models.Notification, models.Notification.recipient_id)):
        db.query(model).filter(column == user.id).delete(synchronize_session=False)
    for model, column in ((models.Question, models.Question.created_by),
                          (models.Classroom, models.Classroom.created_by),
                          (models.ClassroomMaterial, models.ClassroomMaterial.uploaded_by)):
        db.query(model).filter(column == user.id).update({column: None}, synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by admin %s", user.username, admin.id)


def adjust_wallet(db: Session, user_id: int, body: schemas.WalletAdjustIn) -> models.User:
    user = get_user(db, user_id)
    try:
        if body.operation == "add":
            balance = wallet_service.credit(db, user.id, body.amount)
            tx_type = "deposit"
        else:
            balance = wallet_service.debit(db, user.id, body.amount)
            tx_type = "withdrawal"
    except ApiError:
        db.rollback()
        raise
    wallet_service.record(db, user.id, tx_type, body.amount, balance,
                          description=body.description or "Wallet adjusted by admin")
    db.commit()
    db.refresh(user)
    logger.info("Admin %s %s to wallet of user %s, balance now %s", body.operation, body.amount, user.id, balance)
    return user


def user_stats(db: Session) -> dict:
    by_role = db.query(models.User.role, func.count(models.User.id)).group_by(models.User.role).all()
    active = db.query(models.User).filter(models.User.is_active.is_(True)).count()
    total = db.query(models.User).count()
    return {
        "totalUsers": total,
        "activeUsers": active,
        "inactiveUsers": total - active,
        "usersByRole": dict({role: 0 for role in models.ROLES}, **dict(by_role)),
        "totalWalletBalance": float(db.query(func.sum(models.User.wallet_balance)).scalar() or 0),
    }


def seed_admin(db: Session) -> bool:
    if db.query(models.User).filter(models.User.username == settings.ADMIN_USERNAME).first():
        return False
    db.add(models.User(
        username=settings.ADMIN_USERNAME,
        email=settings.ADMIN_EMAIL,
        name="Administrator",
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        role="admin",
        wallet_currency=settings.DEFAULT_CURRENCY,
    ))
    db.commit()
    return True

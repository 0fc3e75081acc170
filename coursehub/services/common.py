from fastapi import status
from sqlalchemy.orm import Session

from .. import models
from ..errors import ApiError


def get_or_404(db: Session, model, object_id: int, message: str):
    obj = db.get(model, object_id)
    if obj is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, message)
    return obj


def ensure_owner_or_admin(user: models.User, owner_id: int, message: str = "Forbidden"):
    if user.role != "admin" and owner_id != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, message)


def apply_fields(obj, data: dict, nullable=()):
    """Copy ``data`` onto ``obj``; an explicit ``None`` only clears the fields named in ``nullable``."""
    for key, value in data.items():
        if value is None and key not in nullable:
            continue
        setattr(obj, key, value)
    return obj

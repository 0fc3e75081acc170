from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])
admin_only = require_role("admin")


@router.post("", response_model=schemas.NotificationOut, status_code=status.HTTP_201_CREATED)
def create_notification(body: schemas.NotificationCreate, db: Session = Depends(get_db),
                        _: models.User = Depends(admin_only)):
    return notification_service.create_notification(db, body)


@router.post("/bulk", response_model=List[schemas.NotificationOut], status_code=status.HTTP_201_CREATED)
def bulk_create(body: schemas.BulkNotificationCreate, db: Session = Depends(get_db),
                _: models.User = Depends(admin_only)):
    return notification_service.bulk_create(db, body)


@router.get("", response_model=schemas.Page[schemas.NotificationOut])
def list_notifications(recipient_id: Optional[int] = None, is_read: Optional[bool] = None,
                       type: Optional[str] = None, page: dict = Depends(page_params),
                       db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    filters = {"recipient_id": recipient_id, "is_read": is_read, "type": type}
    return notification_service.query_notifications(db, filters, page, current_user)


@router.get("/my", response_model=schemas.Page[schemas.NotificationOut])
def my_notifications(is_read: Optional[bool] = None, page: dict = Depends(page_params),
                     db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return notification_service.my_notifications(db, current_user, page, is_read)


@router.delete("/my")
def delete_my_notifications(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return {"deleted": notification_service.delete_my_notifications(db, current_user)}


@router.patch("/read-all")
def mark_all_read(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return {"updated": notification_service.mark_all_read(db, current_user)}


@router.get("/stats")
def notification_stats(db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return notification_service.notification_stats(db)


@router.get("/{notification_id}", response_model=schemas.NotificationOut)
def read_notification(notification_id: int, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return notification_service.get_notification(db, notification_id, current_user)


@router.patch("/{notification_id}", response_model=schemas.NotificationOut)
def update_notification(notification_id: int, body: schemas.NotificationUpdate, db: Session = Depends(get_db),
                        current_user: models.User = Depends(get_current_user)):
    return notification_service.update_notification(db, notification_id, body, current_user)


@router.patch("/{notification_id}/read", response_model=schemas.NotificationOut)
def mark_as_read(notification_id: int, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return notification_service.mark_as_read(db, notification_id, current_user)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: int, db: Session = Depends(get_db),
                        current_user: models.User = Depends(get_current_user)):
    notification_service.delete_notification(db, notification_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])
admin_only = require_role("admin")


@router.get("/me", response_model=schemas.UserOut)
def read_me(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=schemas.UserOut)
def update_me(body: schemas.UserUpdate, db: Session = Depends(get_db),
              current_user: models.User = Depends(get_current_user)):
    return user_service.update_me(db, current_user, body)


@router.post("", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(body: schemas.AdminUserCreate, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return user_service.create_user(db, body)


@router.get("", response_model=schemas.Page[schemas.UserOut])
def list_users(role: Optional[str] = None, is_active: Optional[bool] = None, q: Optional[str] = None,
               page: dict = Depends(page_params), db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return user_service.query_users(db, {"role": role, "is_active": is_active, "q": q}, page)


@router.get("/stats")
def user_stats(db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return user_service.user_stats(db)


@router.get("/{user_id}", response_model=schemas.UserOut)
def read_user(user_id: int, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return user_service.get_user(db, user_id)


@router.patch("/{user_id}/role", response_model=schemas.UserOut)
def set_role(user_id: int, body: schemas.RoleIn, db: Session = Depends(get_db),
             _: models.User = Depends(admin_only)):
    return user_service.set_role(db, user_id, body.role)


@router.patch("/{user_id}/toggle-active", response_model=schemas.UserOut)
def toggle_active(user_id: int, db: Session = Depends(get_db), admin: models.User = Depends(admin_only)):
    return user_service.toggle_active(db, user_id, admin)


@router.patch("/{user_id}", response_model=schemas.UserOut)
def update_user(user_id: int, body: schemas.AdminUserUpdate, db: Session = Depends(get_db),
                admin: models.User = Depends(admin_only)):
    return user_service.update_user(db, user_id, body, admin)


@router.patch("/{user_id}/wallet", response_model=schemas.UserOut)
def adjust_wallet(user_id: int, body: schemas.WalletAdjustIn, db: Session = Depends(get_db),
                  _: models.User = Depends(admin_only)):
    return user_service.adjust_wallet(db, user_id, body)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, db: Session = Depends(get_db), admin: models.User = Depends(admin_only)):
    user_service.delete_user(db, user_id, admin)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import users as user_service

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    return user_service.register(db, user_in)


@router.post("/login", response_model=schemas.TokenOut)
def login(credentials: schemas.LoginIn, db: Session = Depends(get_db)):
    return user_service.login(db, credentials)

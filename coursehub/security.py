from datetime import datetime as dt, timedelta

from fastapi import Depends, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import get_db
from .errors import ApiError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = dt.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> models.User:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Please authenticate")
    username = payload.get("sub")
    user = db.query(models.User).filter(models.User.username == username).first()
    if not user or not user.is_active:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Please authenticate")
    return user


def require_role(*roles: str):
    """Dependency factory: only let users whose role is in ``roles`` through."""

    def checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in roles:
            raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden")
        return current_user

    return checker

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user
from ..services import attempts as attempt_service

router = APIRouter(prefix="/attempts", tags=["attempts"])


@router.post("", response_model=schemas.AttemptOut, status_code=status.HTTP_201_CREATED)
def start_attempt(body: schemas.AttemptStart, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    return attempt_service.start_attempt(db, current_user, body.quiz_lesson_id)


@router.get("", response_model=schemas.Page[schemas.AttemptOut])
def list_attempts(quiz_lesson_id: Optional[int] = None, user_id: Optional[int] = None,
                  page: dict = Depends(page_params), db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    filters = {"quiz_lesson_id": quiz_lesson_id, "user_id": user_id}
    return attempt_service.query_attempts(db, filters, page, current_user)


@router.get("/best/{quiz_lesson_id}", response_model=schemas.AttemptOut)
def best_attempt(quiz_lesson_id: int, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return attempt_service.best_attempt(db, quiz_lesson_id, current_user)


@router.get("/{attempt_id}", response_model=schemas.AttemptOut)
def read_attempt(attempt_id: int, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return attempt_service.get_attempt(db, attempt_id, current_user)


@router.post("/{attempt_id}/submit", response_model=schemas.AttemptOut)
def submit_attempt(attempt_id: int, body: schemas.AttemptSubmit, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return attempt_service.submit_attempt(db, attempt_id, body, current_user)


@router.delete("/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attempt(attempt_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    attempt_service.delete_attempt(db, attempt_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

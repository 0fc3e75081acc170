from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import questions as question_service

router = APIRouter(prefix="/questions", tags=["questions"])
teaching = require_role("instructor", "admin")


@router.post("", response_model=schemas.QuestionOut, status_code=status.HTTP_201_CREATED)
def create_question(body: schemas.QuestionCreate, db: Session = Depends(get_db),
                    current_user: models.User = Depends(teaching)):
    return question_service.create_question(db, current_user, body)


@router.post("/bulk", response_model=List[schemas.QuestionOut], status_code=status.HTTP_201_CREATED)
def bulk_create_questions(items: List[dict] = Body(...), db: Session = Depends(get_db),
                          current_user: models.User = Depends(teaching)):
    return question_service.bulk_create_questions(db, current_user, items)


@router.get("", response_model=schemas.Page[schemas.QuestionOut])
def list_questions(type: Optional[str] = None, difficulty: Optional[str] = None, content: Optional[str] = None,
                   page: dict = Depends(page_params), db: Session = Depends(get_db),
                   _: models.User = Depends(teaching)):
    return question_service.query_questions(db, {"type": type, "difficulty": difficulty, "content": content}, page)


@router.get("/search", response_model=schemas.Page[schemas.QuestionOut])
def search_questions(q: str, type: Optional[str] = None, page: dict = Depends(page_params),
                     db: Session = Depends(get_db), _: models.User = Depends(teaching)):
    return question_service.query_questions(db, {"content": q, "type": type}, page)


@router.get("/stats")
def question_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return question_service.question_stats(db)


@router.get("/course/{course_id}", response_model=schemas.Page[schemas.QuestionOut])
def questions_by_course(course_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                        current_user: models.User = Depends(teaching)):
    return question_service.questions_by_course(db, course_id, current_user, page)


@router.get("/{question_id}", response_model=schemas.QuestionDetailOut)
def read_question(question_id: int, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    return question_service.get_question_detail(db, question_id, current_user)


@router.patch("/{question_id}", response_model=schemas.QuestionOut)
def update_question(question_id: int, body: schemas.QuestionUpdate, db: Session = Depends(get_db),
                    current_user: models.User = Depends(teaching)):
    return question_service.update_question(db, question_id, body, current_user)


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(question_id: int, db: Session = Depends(get_db),
                    current_user: models.User = Depends(teaching)):
    question_service.delete_question(db, question_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{question_id}/validate", response_model=schemas.AnswerCheckOut)
def validate_answer(question_id: int, body: schemas.AnswerCheckIn, db: Session = Depends(get_db),
                    _: models.User = Depends(get_current_user)):
    return question_service.validate_answer(db, question_id, body.answer)

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import lessons as lesson_service

router = APIRouter(prefix="/lessons", tags=["lessons"])
teaching = require_role("instructor", "admin")


@router.post("", response_model=schemas.LessonOut, status_code=status.HTTP_201_CREATED)
def create_lesson(body: schemas.LessonCreate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return lesson_service.create_lesson(db, current_user, body)


@router.get("", response_model=schemas.Page[schemas.LessonOut])
def list_lessons(module_id: Optional[int] = None, course_id: Optional[int] = None, type: Optional[str] = None,
                 is_preview: Optional[bool] = None, title: Optional[str] = None,
                 page: dict = Depends(page_params), db: Session = Depends(get_db),
                 _: models.User = Depends(teaching)):
    filters = {"module_id": module_id, "course_id": course_id, "type": type, "is_preview": is_preview,
               "title": title}
    return lesson_service.query_lessons(db, filters, page)


@router.get("/stats")
def lesson_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return lesson_service.lesson_stats(db)


@router.get("/module/{module_id}", response_model=List[schemas.LessonOut])
def lessons_by_module(module_id: int, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return lesson_service.lessons_by_module(db, module_id, current_user)


@router.get("/course/{course_id}", response_model=List[schemas.LessonOut])
def lessons_by_course(course_id: int, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return lesson_service.lessons_by_course(db, course_id, current_user)


@router.get("/{lesson_id}", response_model=schemas.LessonOut)
def read_lesson(lesson_id: int, db: Session = Depends(get_db),
                current_user: models.User = Depends(get_current_user)):
    return lesson_service.get_lesson(db, lesson_id, current_user)


@router.get("/{lesson_id}/content", response_model=schemas.LessonContentOut)
def lesson_content(lesson_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return lesson_service.lesson_content(db, lesson_id, current_user)


@router.patch("/{lesson_id}", response_model=schemas.LessonOut)
def update_lesson(lesson_id: int, body: schemas.LessonUpdate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return lesson_service.update_lesson(db, lesson_id, body, current_user)


@router.patch("/{lesson_id}/preview", response_model=schemas.LessonOut)
def set_preview(lesson_id: int, body: schemas.PreviewIn, db: Session = Depends(get_db),
                current_user: models.User = Depends(teaching)):
    return lesson_service.set_preview(db, lesson_id, body.is_preview, current_user)


@router.delete("/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lesson(lesson_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(teaching)):
    lesson_service.delete_lesson(db, lesson_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- quiz questions ---

@router.get("/{lesson_id}/questions")
def quiz_questions(lesson_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return lesson_service.quiz_questions(db, lesson_id, current_user)


@router.post("/{lesson_id}/questions", response_model=schemas.QuestionOut, status_code=status.HTTP_201_CREATED)
def add_quiz_question(lesson_id: int, body: schemas.QuestionCreate, db: Session = Depends(get_db),
                      current_user: models.User = Depends(teaching)):
    return lesson_service.add_new_question(db, lesson_id, body, current_user)


@router.post("/{lesson_id}/questions/attach")
def attach_questions(lesson_id: int, body: schemas.QuestionIdsIn, db: Session = Depends(get_db),
                     current_user: models.User = Depends(teaching)):
    return lesson_service.attach_questions(db, lesson_id, body.question_ids, current_user)


@router.delete("/{lesson_id}/questions/{question_id}")
def detach_question(lesson_id: int, question_id: int, db: Session = Depends(get_db),
                    current_user: models.User = Depends(teaching)):
    return lesson_service.detach_question(db, lesson_id, question_id, current_user)

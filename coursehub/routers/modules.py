from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import lessons as lesson_service
from ..services import modules as module_service

router = APIRouter(prefix="/modules", tags=["modules"])
teaching = require_role("instructor", "admin")


@router.post("", response_model=schemas.ModuleOut, status_code=status.HTTP_201_CREATED)
def create_module(body: schemas.ModuleCreate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return module_service.create_module(db, current_user, body)


@router.get("", response_model=schemas.Page[schemas.ModuleOut])
def list_modules(course_id: Optional[int] = None, title: Optional[str] = None, page: dict = Depends(page_params),
                 db: Session = Depends(get_db), _: models.User = Depends(get_current_user)):
    return module_service.query_modules(db, {"course_id": course_id, "title": title}, page)


@router.get("/stats")
def module_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return module_service.module_stats(db)


@router.get("/course/{course_id}", response_model=List[schemas.ModuleOut])
def modules_by_course(course_id: int, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return module_service.modules_by_course(db, course_id, current_user)


@router.get("/{module_id}", response_model=schemas.ModuleOut)
def read_module(module_id: int, db: Session = Depends(get_db),
                current_user: models.User = Depends(get_current_user)):
    return module_service.get_module(db, module_id, current_user)


@router.patch("/{module_id}", response_model=schemas.ModuleOut)
def update_module(module_id: int, body: schemas.ModuleUpdate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return module_service.update_module(db, module_id, body, current_user)


@router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_module(module_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(teaching)):
    module_service.delete_module(db, module_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{module_id}/lessons", response_model=List[schemas.LessonOut])
def module_lessons(module_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return lesson_service.lessons_by_module(db, module_id, current_user)


@router.post("/{module_id}/lessons", response_model=List[schemas.LessonOut])
def add_lesson(module_id: int, body: schemas.LessonIdIn, db: Session = Depends(get_db),
               current_user: models.User = Depends(teaching)):
    return module_service.add_lesson(db, module_id, body.lesson_id, current_user)


@router.put("/{module_id}/lessons/reorder", response_model=List[schemas.LessonOut])
def reorder_lessons(module_id: int, body: schemas.ReorderIn, db: Session = Depends(get_db),
                    current_user: models.User = Depends(teaching)):
    return module_service.reorder_lessons(db, module_id, body.lesson_ids, current_user)


@router.delete("/{module_id}/lessons/{lesson_id}", response_model=List[schemas.LessonOut])
def remove_lesson(module_id: int, lesson_id: int, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return module_service.remove_lesson(db, module_id, lesson_id, current_user)

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import classrooms as classroom_service

router = APIRouter(prefix="/classrooms", tags=["classrooms"])


@router.post("", response_model=schemas.ClassroomOut, status_code=status.HTTP_201_CREATED)
def create_classroom(body: schemas.ClassroomCreate, db: Session = Depends(get_db),
                     current_user: models.User = Depends(get_current_user)):
    return classroom_service.create_classroom(db, current_user, body)


@router.get("", response_model=schemas.Page[schemas.ClassroomOut])
def list_classrooms(name: Optional[str] = None, created_by: Optional[int] = None,
                    page: dict = Depends(page_params), db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    return classroom_service.query_classrooms(db, {"name": name, "created_by": created_by}, page, current_user)


@router.get("/my", response_model=schemas.Page[schemas.ClassroomOut])
def my_classrooms(page: dict = Depends(page_params), db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    return classroom_service.my_classrooms(db, current_user, page)


@router.get("/stats")
def classroom_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return classroom_service.classroom_stats(db)


@router.get("/{classroom_id}", response_model=schemas.ClassroomOut)
def read_classroom(classroom_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return classroom_service.get_classroom(db, classroom_id, current_user)


@router.patch("/{classroom_id}", response_model=schemas.ClassroomOut)
def update_classroom(classroom_id: int, body: schemas.ClassroomUpdate, db: Session = Depends(get_db),
                     current_user: models.User = Depends(get_current_user)):
    return classroom_service.update_classroom(db, classroom_id, body, current_user)


@router.delete("/{classroom_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_classroom(classroom_id: int, db: Session = Depends(get_db),
                     current_user: models.User = Depends(get_current_user)):
    classroom_service.delete_classroom(db, classroom_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- members ---

@router.post("/{classroom_id}/members", response_model=schemas.ClassroomOut)
def add_member(classroom_id: int, body: schemas.MemberIn, db: Session = Depends(get_db),
               current_user: models.User = Depends(get_current_user)):
    return classroom_service.add_member(db, classroom_id, body, current_user)


@router.patch("/{classroom_id}/members/{user_id}", response_model=schemas.ClassroomOut)
def update_member_role(classroom_id: int, user_id: int, body: schemas.MemberRoleIn,
                       db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return classroom_service.update_member_role(db, classroom_id, user_id, body, current_user)


@router.delete("/{classroom_id}/members/{user_id}", response_model=schemas.ClassroomOut)
def remove_member(classroom_id: int, user_id: int, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    return classroom_service.remove_member(db, classroom_id, user_id, current_user)


# --- courses ---

@router.post("/{classroom_id}/courses", response_model=schemas.ClassroomOut)
def assign_course(classroom_id: int, body: schemas.CourseAssignIn, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    return classroom_service.assign_course(db, classroom_id, body.course_id, current_user)


@router.delete("/{classroom_id}/courses/{course_id}", response_model=schemas.ClassroomOut)
def remove_course(classroom_id: int, course_id: int, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    return classroom_service.remove_course(db, classroom_id, course_id, current_user)


# --- materials ---

@router.post("/{classroom_id}/materials", response_model=schemas.MaterialOut,
             status_code=status.HTTP_201_CREATED)
def add_material(classroom_id: int, body: schemas.MaterialIn, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    return classroom_service.add_material(db, classroom_id, body, current_user)


@router.get("/{classroom_id}/materials", response_model=List[schemas.MaterialOut])
def list_materials(classroom_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return classroom_service.list_materials(db, classroom_id, current_user)


@router.delete("/{classroom_id}/materials/{material_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_material(classroom_id: int, material_id: int, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    classroom_service.delete_material(db, classroom_id, material_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

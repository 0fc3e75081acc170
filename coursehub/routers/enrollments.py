from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import enrollments as enrollment_service

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post("", response_model=schemas.EnrollmentOut, status_code=status.HTTP_201_CREATED)
def create_enrollment(body: schemas.EnrollmentCreate, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return enrollment_service.create_enrollment(db, current_user, body.course_id)


@router.get("", response_model=schemas.Page[schemas.EnrollmentOut])
def list_enrollments(course_id: Optional[int] = None, user_id: Optional[int] = None,
                     status: Optional[str] = None, page: dict = Depends(page_params),
                     db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    filters = {"course_id": course_id, "user_id": user_id, "status": status}
    return enrollment_service.query_enrollments(db, filters, page, current_user)


@router.get("/my", response_model=schemas.Page[schemas.EnrollmentOut])
def my_enrollments(page: dict = Depends(page_params), db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return enrollment_service.enrollments_by_student(db, current_user.id, current_user, page)


@router.get("/stats")
def enrollment_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return enrollment_service.enrollment_stats(db)


@router.get("/course/{course_id}", response_model=schemas.Page[schemas.EnrollmentOut])
def enrollments_by_course(course_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                          current_user: models.User = Depends(get_current_user)):
    return enrollment_service.enrollments_by_course(db, course_id, current_user, page)


@router.get("/student/{student_id}", response_model=schemas.Page[schemas.EnrollmentOut])
def enrollments_by_student(student_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                           current_user: models.User = Depends(get_current_user)):
    return enrollment_service.enrollments_by_student(db, student_id, current_user, page)


@router.get("/{enrollment_id}", response_model=schemas.EnrollmentOut)
def read_enrollment(enrollment_id: int, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    return enrollment_service.get_enrollment(db, enrollment_id, current_user)


@router.patch("/{enrollment_id}", response_model=schemas.EnrollmentOut)
def update_enrollment(enrollment_id: int, body: schemas.EnrollmentUpdate, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    return enrollment_service.update_enrollment(db, enrollment_id, body, current_user)


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_enrollment(enrollment_id: int, db: Session = Depends(get_db),
                      current_user: models.User = Depends(get_current_user)):
    enrollment_service.delete_enrollment(db, enrollment_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{enrollment_id}/progress")
def enrollment_progress(enrollment_id: int, db: Session = Depends(get_db),
                        current_user: models.User = Depends(get_current_user)):
    return enrollment_service.enrollment_progress(db, enrollment_id, current_user)


@router.post("/{enrollment_id}/complete-lesson", response_model=schemas.EnrollmentOut)
def complete_lesson(enrollment_id: int, body: schemas.CompleteLessonIn, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    return enrollment_service.complete_lesson(db, enrollment_id, body.lesson_id, current_user)


@router.patch("/{enrollment_id}/position", response_model=schemas.EnrollmentOut)
def update_position(enrollment_id: int, body: schemas.Position, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    return enrollment_service.update_position(db, enrollment_id, body, current_user)


@router.post("/{enrollment_id}/complete", response_model=schemas.EnrollmentOut)
def complete_enrollment(enrollment_id: int, db: Session = Depends(get_db),
                        current_user: models.User = Depends(get_current_user)):
    return enrollment_service.complete_enrollment(db, enrollment_id, current_user)

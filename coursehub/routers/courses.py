from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import get_current_user, require_role
from ..services import courses as course_service
from ..services import enrollments as enrollment_service
from ..services import lessons as lesson_service
from ..services import questions as question_service

router = APIRouter(prefix="/courses", tags=["courses"])
teaching = require_role("instructor", "admin")


@router.post("", response_model=schemas.CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(body: schemas.CourseCreate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return course_service.create_course(db, current_user, body)


@router.get("", response_model=schemas.Page[schemas.CourseOut])
def list_courses(title: Optional[str] = None, instructor_id: Optional[int] = None,
                 category_id: Optional[int] = None, level: Optional[str] = None,
                 is_published: Optional[bool] = None, min_price: Optional[float] = None,
                 max_price: Optional[float] = None, page: dict = Depends(page_params),
                 db: Session = Depends(get_db)):
    filters = {
        "title": title,
        "instructor_id": instructor_id,
        "category_id": category_id,
        "level": level,
        "is_published": is_published,
        "min_price": min_price,
        "max_price": max_price,
    }
    return course_service.query_courses(db, filters, page)


@router.get("/search", response_model=schemas.Page[schemas.CourseOut])
def search_courses(q: str, page: dict = Depends(page_params), db: Session = Depends(get_db)):
    return course_service.query_courses(db, {"q": q, "is_published": True}, page)


@router.get("/featured", response_model=schemas.Page[schemas.CourseOut])
def featured_courses(page: dict = Depends(page_params), db: Session = Depends(get_db)):
    return course_service.query_courses(db, {"is_featured": True, "is_published": True}, page)


@router.get("/published", response_model=schemas.Page[schemas.CourseOut])
def published_courses(page: dict = Depends(page_params), db: Session = Depends(get_db)):
    return course_service.query_courses(db, {"is_published": True}, page)


@router.get("/my", response_model=schemas.Page[schemas.CourseOut])
def my_courses(page: dict = Depends(page_params), db: Session = Depends(get_db),
               current_user: models.User = Depends(teaching)):
    return course_service.query_courses(db, {"instructor_id": current_user.id}, page)


@router.get("/stats")
def course_stats(db: Session = Depends(get_db), _: models.User = Depends(require_role("admin"))):
    return course_service.course_stats(db)


@router.get("/slug/{slug}", response_model=schemas.CourseOut)
def read_course_by_slug(slug: str, db: Session = Depends(get_db)):
    return course_service.get_course_by_slug(db, slug)


@router.get("/instructor/{instructor_id}", response_model=schemas.Page[schemas.CourseOut])
def courses_by_instructor(instructor_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db)):
    return course_service.query_courses(db, {"instructor_id": instructor_id}, page)


@router.get("/category/{category_id}", response_model=schemas.Page[schemas.CourseOut])
def courses_by_category(category_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db)):
    return course_service.query_courses(db, {"category_id": category_id}, page)


@router.get("/{course_id}", response_model=schemas.CourseOut)
def read_course(course_id: int, db: Session = Depends(get_db)):
    return course_service.get_course(db, course_id)


@router.patch("/{course_id}", response_model=schemas.CourseOut)
def update_course(course_id: int, body: schemas.CourseUpdate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(teaching)):
    return course_service.update_course(db, course_id, body, current_user)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(course_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(teaching)):
    course_service.delete_course(db, course_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{course_id}/publish", response_model=schemas.CourseOut)
def publish_course(course_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(teaching)):
    return course_service.set_published(db, course_id, current_user, True)


@router.patch("/{course_id}/unpublish", response_model=schemas.CourseOut)
def unpublish_course(course_id: int, db: Session = Depends(get_db),
                     current_user: models.User = Depends(teaching)):
    return course_service.set_published(db, course_id, current_user, False)


@router.post("/{course_id}/rate", response_model=schemas.CourseOut)
def rate_course(course_id: int, body: schemas.RatingIn, db: Session = Depends(get_db),
                current_user: models.User = Depends(get_current_user)):
    return course_service.rate_course(db, course_id, body.rating, current_user)


@router.get("/{course_id}/modules", response_model=List[schemas.ModuleOut])
def course_modules(course_id: int, db: Session = Depends(get_db)):
    return course_service.course_modules(db, course_id)


@router.get("/{course_id}/overview")
def course_overview(course_id: int, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    return course_service.course_overview(db, course_id, current_user)


@router.get("/{course_id}/lessons", response_model=List[schemas.LessonOut])
def course_lessons(course_id: int, db: Session = Depends(get_db),
                   current_user: models.User = Depends(get_current_user)):
    return lesson_service.lessons_by_course(db, course_id, current_user)


@router.get("/{course_id}/questions", response_model=schemas.Page[schemas.QuestionOut])
def course_questions(course_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                     current_user: models.User = Depends(teaching)):
    return question_service.questions_by_course(db, course_id, current_user, page)


@router.get("/{course_id}/enrollments", response_model=schemas.Page[schemas.EnrollmentOut])
def course_enrollments(course_id: int, page: dict = Depends(page_params), db: Session = Depends(get_db),
                       current_user: models.User = Depends(teaching)):
    return enrollment_service.enrollments_by_course(db, course_id, current_user, page)

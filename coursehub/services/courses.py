from fastapi import status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import apply_fields, get_or_404


def effective_price(course: models.Course) -> float:
    """What a buyer pays today: free -> 0, a real discount -> sale price, else list price."""
    if course.is_free:
        return 0.0
    price = course.price or 0
    sale = course.sale_price or 0
    if 0 < sale < price:
        return float(sale)
    return float(price)


def ensure_course_owner(user: models.User, course: models.Course, action: str = "modify"):
    if user.role != "admin" and course.instructor_id != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, f"Not authorized to {action} this course")


def is_enrolled(db: Session, user_id: int, course_id: int) -> bool:
    return (
        db.query(models.Enrollment.id)
        .filter(models.Enrollment.user_id == user_id, models.Enrollment.course_id == course_id)
        .first()
        is not None
    )


def can_access_course(db: Session, user: models.User, course: models.Course) -> bool:
    return user.role == "admin" or course.instructor_id == user.id or is_enrolled(db, user.id, course.id)


def _check_category(db: Session, category_id: int):
    if db.get(models.Category, category_id) is None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid category")


def _check_slug(db: Session, slug: str, exclude_id: int = None):
    query = db.query(models.Course.id).filter(models.Course.slug == slug)
    if exclude_id is not None:
        query = query.filter(models.Course.id != exclude_id)
    if query.first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Course slug already taken")


def create_course(db: Session, instructor: models.User, body: schemas.CourseCreate) -> models.Course:
    _check_category(db, body.category_id)
    _check_slug(db, body.slug)
    data = body.model_dump(exclude={"pricing"})
    course = models.Course(instructor_id=instructor.id, **data, **body.pricing.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def get_course(db: Session, course_id: int) -> models.Course:
    return get_or_404(db, models.Course, course_id, "Course not found")


def get_course_by_slug(db: Session, slug: str) -> models.Course:
    course = db.query(models.Course).filter(models.Course.slug == slug).first()
    if not course:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Course not found")
    return course


def update_course(db: Session, course_id: int, body: schemas.CourseUpdate, user: models.User):
    course = get_course(db, course_id)
    ensure_course_owner(user, course, "update")

    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if "category_id" in updates:
        _check_category(db, updates["category_id"])
    if "slug" in updates and updates["slug"] != course.slug:
        _check_slug(db, updates["slug"], exclude_id=course.id)
    if "is_featured" in updates and user.role != "admin":
        updates.pop("is_featured")
    pricing = updates.pop("pricing", None)
    if pricing is not None:
        updates.update(pricing)

    apply_fields(course, updates)
    db.commit()
    db.refresh(course)
    return course


def delete_course_tree(db: Session, course_id: int):
    """Delete modules, lessons and lesson resources of a course (no commit)."""
    from .lessons import delete_lesson_rows

    for lesson in db.query(models.Lesson).filter(models.Lesson.course_id == course_id).all():
        delete_lesson_rows(db, lesson)
    db.query(models.Module).filter(models.Module.course_id == course_id).delete(synchronize_session=False)


def delete_course(db: Session, course_id: int, user: models.User):
    course = get_course(db, course_id)
    ensure_course_owner(user, course, "delete")
    delete_course_tree(db, course.id)
    db.query(models.Enrollment).filter(models.Enrollment.course_id == course.id).delete(synchronize_session=False)
    db.query(models.ClassroomCourse).filter(models.ClassroomCourse.course_id == course.id).delete(
        synchronize_session=False
    )
    db.delete(course)
    db.commit()


def set_published(db: Session, course_id: int, user: models.User, published: bool):
    course = get_course(db, course_id)
    ensure_course_owner(user, course, "publish" if published else "unpublish")
    course.is_published = published
    db.commit()
    db.refresh(course)
    return course


def rate_course(db: Session, course_id: int, rating: float, user: models.User):
    course = get_course(db, course_id)
    if user.role != "admin" and not is_enrolled(db, user.id, course.id):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Only enrolled students can rate this course")
    total = course.total_ratings or 0
    course.rating = round(((course.rating or 0) * total + rating) / (total + 1), 2)
    course.total_ratings = total + 1
    db.commit()
    db.refresh(course)
    return course


def query_courses(db: Session, filters: dict, page: dict):
    query = db.query(models.Course)
    if filters.get("title"):
        query = query.filter(models.Course.title.ilike(f"%{filters['title']}%"))
    if filters.get("q"):
        pattern = f"%{filters['q']}%"
        query = query.filter(or_(models.Course.title.ilike(pattern), models.Course.description.ilike(pattern)))
    for key in ("instructor_id", "category_id", "level", "is_published", "is_featured"):
        if filters.get(key) is not None:
            query = query.filter(getattr(models.Course, key) == filters[key])
    if filters.get("min_price") is not None:
        query = query.filter(models.Course.price >= filters["min_price"])
    if filters.get("max_price") is not None:
        query = query.filter(models.Course.price <= filters["max_price"])
    return paginate(query, models.Course, **page)


def course_modules(db: Session, course_id: int):
    get_course(db, course_id)
    return (
        db.query(models.Module)
        .filter(models.Module.course_id == course_id)
        .order_by(models.Module.position, models.Module.id)
        .all()
    )


def course_overview(db: Session, course_id: int, user: models.User) -> dict:
    course = get_course(db, course_id)
    if not can_access_course(db, user, course):
        raise ApiError(status.HTTP_403_FORBIDDEN, "User is not enrolled in this course")

    lessons = (
        db.query(models.Lesson)
        .filter(models.Lesson.course_id == course_id)
        .order_by(models.Lesson.position, models.Lesson.id)
        .all()
    )
    modules = []
    for module in course_modules(db, course_id):
        modules.append({
            "id": module.id,
            "title": module.title,
            "position": module.position,
            "lessons": [
                {"id": l.id, "title": l.title, "type": l.type, "is_preview": l.is_preview}
                for l in lessons if l.module_id == module.id
            ],
        })
    return {
        "course": schemas.CourseOut.model_validate(course).model_dump(),
        "modules": modules,
        "total_lessons": len(lessons),
    }


def course_stats(db: Session) -> dict:
    by_level = db.query(models.Course.level, func.count(models.Course.id)).group_by(models.Course.level).all()
    total = db.query(models.Course).count()
    published = db.query(models.Course).filter(models.Course.is_published.is_(True)).count()
    return {
        "totalCourses": total,
        "publishedCourses": published,
        "draftCourses": total - published,
        "freeCourses": db.query(models.Course).filter(models.Course.is_free.is_(True)).count(),
        "coursesByLevel": {level: count for level, count in by_level},
        "averageRating": round(db.query(func.avg(models.Course.rating)).scalar() or 0, 2),
    }

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import get_or_404
from .courses import can_access_course, ensure_course_owner, get_course


def _load(db: Session, module_id: int):
    module = get_or_404(db, models.Module, module_id, "Module not found")
    return module, get_course(db, module.course_id)


def module_lessons(db: Session, module_id: int):
    return (
        db.query(models.Lesson)
        .filter(models.Lesson.module_id == module_id)
        .order_by(models.Lesson.position, models.Lesson.id)
        .all()
    )


def create_module(db: Session, user: models.User, body: schemas.ModuleCreate) -> models.Module:
    course = get_course(db, body.course_id)
    ensure_course_owner(user, course, "add modules to")
    position = db.query(func.count(models.Module.id)).filter(models.Module.course_id == course.id).scalar()
    module = models.Module(course_id=course.id, title=body.title, position=position)
    db.add(module)
    course.total_modules = (course.total_modules or 0) + 1
    db.commit()
    db.refresh(module)
    return module


def query_modules(db: Session, filters: dict, page: dict):
    query = db.query(models.Module)
    if filters.get("course_id"):
        query = query.filter(models.Module.course_id == filters["course_id"])
    if filters.get("title"):
        query = query.filter(models.Module.title.ilike(f"%{filters['title']}%"))
    return paginate(query, models.Module, default_sort="position:asc", **page)


def get_module(db: Session, module_id: int, user: models.User) -> models.Module:
    module, course = _load(db, module_id)
    if not can_access_course(db, user, course):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not authorized to access this module")
    return module


def modules_by_course(db: Session, course_id: int, user: models.User):
    course = get_course(db, course_id)
    if not course.is_published and not can_access_course(db, user, course):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not authorized to access modules of this course")
    return (
        db.query(models.Module)
        .filter(models.Module.course_id == course_id)
        .order_by(models.Module.position, models.Module.id)
        .all()
    )


def update_module(db: Session, module_id: int, body: schemas.ModuleUpdate, user: models.User):
    module, course = _load(db, module_id)
    ensure_course_owner(user, course, "update modules of")
    if body.title is not None:
        module.title = body.title
    db.commit()
    db.refresh(module)
    return module


def delete_module(db: Session, module_id: int, user: models.User):
    from .lessons import delete_lesson_rows

    module, course = _load(db, module_id)
    ensure_course_owner(user, course, "delete modules of")
    for lesson in module_lessons(db, module.id):
        delete_lesson_rows(db, lesson)
    db.delete(module)
    course.total_modules = max((course.total_modules or 0) - 1, 0)
    db.commit()


def add_lesson(db: Session, module_id: int, lesson_id: int, user: models.User):
    module, course = _load(db, module_id)
    ensure_course_owner(user, course, "modify modules of")
    lesson = get_or_404(db, models.Lesson, lesson_id, "Lesson not found")
    if lesson.course_id != module.course_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Lesson does not belong to the same course as the module")
    if lesson.module_id != module.id:
        lesson.module_id = module.id
        lesson.position = len(module_lessons(db, module.id))
    db.commit()
    return module_lessons(db, module.id)


def remove_lesson(db: Session, module_id: int, lesson_id: int, user: models.User):
    module, course = _load(db, module_id)
    ensure_course_owner(user, course, "modify modules of")
    lesson = get_or_404(db, models.Lesson, lesson_id, "Lesson not found")
    if lesson.module_id != module.id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Lesson is not part of this module")
    lesson.module_id = None
    for position, remaining in enumerate(l for l in module_lessons(db, module.id) if l.id != lesson.id):
        remaining.position = position
    db.commit()
    return module_lessons(db, module.id)


def reorder_lessons(db: Session, module_id: int, lesson_ids: list, user: models.User):
    module, course = _load(db, module_id)
    ensure_course_owner(user, course, "modify modules of")
    lessons = {lesson.id: lesson for lesson in module_lessons(db, module.id)}
    if len(lesson_ids) != len(set(lesson_ids)) or set(lesson_ids) != set(lessons):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Some lessons do not exist or do not belong to this module")
    for position, lesson_id in enumerate(lesson_ids):
        lessons[lesson_id].position = position
    db.commit()
    return module_lessons(db, module.id)


def module_stats(db: Session) -> dict:
    total = db.query(models.Module).count()
    lessons = db.query(models.Lesson).filter(models.Lesson.module_id.isnot(None)).count()
    return {
        "totalModules": total,
        "totalLessonsInModules": lessons,
        "averageLessonsPerModule": round(lessons / total, 2) if total else 0,
    }

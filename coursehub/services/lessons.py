"""Lessons and their type-specific resources (video / theory / quiz)."""
import random

from fastapi import status
from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError, describe_validation_errors
from ..pagination import paginate
from . import questions as question_service
from .common import apply_fields, get_or_404
from .courses import can_access_course, ensure_course_owner, get_course

LESSON_RESOURCES = {
    "video": models.LessonVideo,
    "theory": models.LessonTheory,
    "quiz": models.LessonQuiz,
}

RESOURCE_FIELDS = {
    "video": {"provider", "url", "duration", "transcript"},
    "theory": {"content_html", "attachments", "reading_time_minutes"},
    "quiz": {"time_limit", "pass_score", "shuffle_questions"},
}

RESOURCE_UPDATES = {
    "video": schemas.VideoResourceUpdate,
    "theory": schemas.TheoryResourceUpdate,
    "quiz": schemas.QuizResourceUpdate,
}


def load_resource(db: Session, lesson: models.Lesson):
    return db.get(LESSON_RESOURCES[lesson.type], lesson.resource_id)


def get_lesson_row(db: Session, lesson_id: int) -> models.Lesson:
    return get_or_404(db, models.Lesson, lesson_id, "Lesson not found")


def get_quiz(db: Session, lesson: models.Lesson) -> models.LessonQuiz:
    if lesson.type != "quiz":
        raise ApiError(status.HTTP_404_NOT_FOUND, "Quiz not found")
    quiz = db.get(models.LessonQuiz, lesson.resource_id)
    if quiz is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Quiz not found")
    return quiz


def _ensure_viewable(db: Session, user: models.User, lesson: models.Lesson, course=None):
    course = course or get_course(db, lesson.course_id)
    if not lesson.is_preview and not can_access_course(db, user, course):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Access denied. Must be enrolled in the course.")
    return course


def _owned_lesson(db: Session, lesson_id: int, user: models.User, action: str):
    lesson = get_lesson_row(db, lesson_id)
    ensure_course_owner(user, get_course(db, lesson.course_id), action)
    return lesson


# --- create ---

def create_lesson(db: Session, user: models.User, body) -> models.Lesson:
    module = db.get(models.Module, body.module_id)
    if module is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Module not found")
    ensure_course_owner(user, get_course(db, module.course_id), "create lessons for")

    data = body.model_dump()
    resource_data = {key: data[key] for key in RESOURCE_FIELDS[body.type]}
    resource = LESSON_RESOURCES[body.type](**resource_data)
    db.add(resource)
    db.flush()

    position = db.query(func.count(models.Lesson.id)).filter(models.Lesson.module_id == module.id).scalar()
    lesson = models.Lesson(
        module_id=module.id,
        course_id=module.course_id,
        title=body.title,
        slug=body.slug,
        type=body.type,
        resource_id=resource.id,
        is_preview=body.is_preview,
        position=position,
    )
    db.add(lesson)
    db.commit()
    db.refresh(lesson)
    return lesson


# --- read ---

def serialize_quiz(db: Session, quiz: models.LessonQuiz, reveal: bool) -> dict:
    question_map = {
        q.id: q
        for q in db.query(models.Question).filter(models.Question.id.in_(quiz.question_ids)).all()
    }
    items = []
    for question_id in quiz.question_ids:
        question = question_map.get(question_id)
        if question is None:
            continue
        resource = question_service.load_resource(db, question)
        items.append({
            "id": question.id,
            "type": question.type,
            "difficulty": question.difficulty,
            "content": question.content,
            "image_url": question.image_url,
            "detail": question_service.serialize_resource(question.type, resource, reveal=reveal),
        })
    if quiz.shuffle_questions and not reveal:
        random.shuffle(items)
    return {
        "id": quiz.id,
        "time_limit": quiz.time_limit,
        "pass_score": quiz.pass_score,
        "shuffle_questions": quiz.shuffle_questions,
        "question_ids": quiz.question_ids,
        "questions": items,
    }


def serialize_resource(db: Session, lesson: models.Lesson, reveal: bool) -> dict:
    resource = load_resource(db, lesson)
    if resource is None:
        return None
    if lesson.type == "quiz":
        return serialize_quiz(db, resource, reveal)
    data = {"id": resource.id}
    for key in RESOURCE_FIELDS[lesson.type]:
        data[key] = getattr(resource, key)
    return data


def get_lesson(db: Session, lesson_id: int, user: models.User) -> models.Lesson:
    lesson = get_lesson_row(db, lesson_id)
    _ensure_viewable(db, user, lesson)
    return lesson


def lesson_content(db: Session, lesson_id: int, user: models.User) -> dict:
    lesson = get_lesson_row(db, lesson_id)
    course = _ensure_viewable(db, user, lesson)
    reveal = user.role == "admin" or course.instructor_id == user.id

    enrollment = (
        db.query(models.Enrollment)
        .filter(models.Enrollment.user_id == user.id, models.Enrollment.course_id == course.id)
        .first()
    )
    if enrollment is not None:
        enrollment.last_accessed_at = models.utcnow()
        db.commit()
    return {"lesson": lesson, "resource": serialize_resource(db, lesson, reveal)}


def query_lessons(db: Session, filters: dict, page: dict):
    query = db.query(models.Lesson)
    for key in ("module_id", "course_id", "type", "is_preview"):
        if filters.get(key) is not None:
            query = query.filter(getattr(models.Lesson, key) == filters[key])
    if filters.get("title"):
        query = query.filter(models.Lesson.title.ilike(f"%{filters['title']}%"))
    return paginate(query, models.Lesson, default_sort="position:asc", **page)


def lessons_by_module(db: Session, module_id: int, user: models.User):
    from .modules import module_lessons

    module = get_or_404(db, models.Module, module_id, "Module not found")
    course = get_course(db, module.course_id)
    lessons = module_lessons(db, module.id)
    if can_access_course(db, user, course):
        return lessons
    if not course.is_published:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not authorized to access lessons in this module")
    return [lesson for lesson in lessons if lesson.is_preview]


def lessons_by_course(db: Session, course_id: int, user: models.User):
    course = get_course(db, course_id)
    lessons = (
        db.query(models.Lesson)
        .filter(models.Lesson.course_id == course_id)
        .order_by(models.Lesson.module_id, models.Lesson.position, models.Lesson.id)
        .all()
    )
    if can_access_course(db, user, course):
        return lessons
    if not course.is_published:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not authorized to access lessons in this course")
    return [lesson for lesson in lessons if lesson.is_preview]


# --- update / delete ---

def update_lesson(db: Session, lesson_id: int, body: schemas.LessonUpdate, user: models.User):
    lesson = _owned_lesson(db, lesson_id, user, "update lessons of")
    updates = body.model_dump(exclude_unset=True)
    resource_updates = updates.pop("resource", None) or {}

    unknown = set(resource_updates) - RESOURCE_FIELDS[lesson.type]
    if unknown:
        raise ApiError(status.HTTP_400_BAD_REQUEST,
                       f"Invalid fields for a {lesson.type} lesson: {', '.join(sorted(unknown))}")
    try:
        resource_updates = RESOURCE_UPDATES[lesson.type].model_validate(resource_updates)
    except ValidationError as exc:
        raise ApiError(status.HTTP_400_BAD_REQUEST, describe_validation_errors(exc.errors()))

    apply_fields(lesson, updates)
    apply_fields(load_resource(db, lesson), resource_updates.model_dump(exclude_unset=True),
                 nullable=("time_limit",))
    db.commit()
    db.refresh(lesson)
    return lesson


def set_preview(db: Session, lesson_id: int, is_preview: bool, user: models.User):
    lesson = _owned_lesson(db, lesson_id, user, "modify lessons of")
    lesson.is_preview = is_preview
    db.commit()
    db.refresh(lesson)
    return lesson


def delete_lesson_rows(db: Session, lesson: models.Lesson):
    """Remove a lesson, its resource and its attempts without committing."""
    resource = load_resource(db, lesson)
    if resource is not None:
        db.delete(resource)
    db.query(models.Attempt).filter(models.Attempt.quiz_lesson_id == lesson.id).delete(synchronize_session=False)
    db.delete(lesson)


def delete_lesson(db: Session, lesson_id: int, user: models.User):
    lesson = _owned_lesson(db, lesson_id, user, "delete lessons of")
    delete_lesson_rows(db, lesson)
    db.commit()


def lesson_stats(db: Session) -> dict:
    by_type = db.query(models.Lesson.type, func.count(models.Lesson.id)).group_by(models.Lesson.type).all()
    return {
        "totalLessons": db.query(models.Lesson).count(),
        "previewLessons": db.query(models.Lesson).filter(models.Lesson.is_preview.is_(True)).count(),
        "lessonsByType": {lesson_type: count for lesson_type, count in by_type},
    }


# --- quiz questions ---

def quiz_questions(db: Session, lesson_id: int, user: models.User) -> dict:
    lesson = get_lesson_row(db, lesson_id)
    course = _ensure_viewable(db, user, lesson)
    reveal = user.role == "admin" or course.instructor_id == user.id
    return serialize_quiz(db, get_quiz(db, lesson), reveal)


def _append_slot(quiz: models.LessonQuiz, question_id: int):
    quiz.slots.append(models.QuizQuestion(question_id=question_id, position=len(quiz.slots)))


def add_new_question(db: Session, lesson_id: int, body, user: models.User) -> models.Question:
    lesson = _owned_lesson(db, lesson_id, user, "modify quizzes of")
    quiz = get_quiz(db, lesson)
    question = question_service.build_question(db, user.id, body)
    _append_slot(quiz, question.id)
    db.commit()
    db.refresh(question)
    return question


def attach_questions(db: Session, lesson_id: int, question_ids: list, user: models.User) -> dict:
    lesson = _owned_lesson(db, lesson_id, user, "modify quizzes of")
    quiz = get_quiz(db, lesson)
    existing = {q.id for q in db.query(models.Question.id).filter(models.Question.id.in_(question_ids))}
    missing = sorted(set(question_ids) - existing)
    if missing:
        raise ApiError(status.HTTP_404_NOT_FOUND, f"Question not found: {missing[0]}")
    for question_id in question_ids:
        if question_id not in quiz.question_ids:
            _append_slot(quiz, question_id)
    db.commit()
    return serialize_quiz(db, quiz, reveal=True)


def detach_question(db: Session, lesson_id: int, question_id: int, user: models.User) -> dict:
    lesson = _owned_lesson(db, lesson_id, user, "modify quizzes of")
    quiz = get_quiz(db, lesson)
    slot = next((s for s in quiz.slots if s.question_id == question_id), None)
    if slot is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Question is not part of this quiz")
    quiz.slots.remove(slot)
    for position, remaining in enumerate(quiz.slots):
        remaining.position = position
    db.commit()
    return serialize_quiz(db, quiz, reveal=True)

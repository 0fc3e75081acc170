"""Quiz attempts: start, grade on submit, list.

An attempt is ``in_progress`` until ``submitted_at`` is set, after which it is
frozen. At most one in-progress attempt exists per (user, quiz lesson).
"""
import logging

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from . import enrollments as enrollment_service
from . import questions as question_service
from .common import ensure_owner_or_admin, get_or_404
from .courses import can_access_course, get_course
from .lessons import get_quiz

logger = logging.getLogger(__name__)


def _quiz_lesson(db: Session, lesson_id: int) -> models.Lesson:
    lesson = db.get(models.Lesson, lesson_id)
    if lesson is None or lesson.type != "quiz":
        raise ApiError(status.HTTP_404_NOT_FOUND, "Quiz not found")
    return lesson


def _open_attempt(db: Session, user_id: int, lesson_id: int):
    return (
        db.query(models.Attempt)
        .filter(
            models.Attempt.user_id == user_id,
            models.Attempt.quiz_lesson_id == lesson_id,
            models.Attempt.submitted_at.is_(None),
        )
        .first()
    )


def start_attempt(db: Session, user: models.User, quiz_lesson_id: int) -> models.Attempt:
    lesson = _quiz_lesson(db, quiz_lesson_id)
    get_quiz(db, lesson)
    if not can_access_course(db, user, get_course(db, lesson.course_id)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not enrolled in this course")

    existing = _open_attempt(db, user.id, lesson.id)
    if existing is not None:
        return existing

    attempt = models.Attempt(
        user_id=user.id,
        quiz_lesson_id=lesson.id,
        score=0,
        is_passed=False,
        answers=[],
        started_at=models.utcnow(),
    )
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        # a parallel start won the open-attempt index
        db.rollback()
        existing = _open_attempt(db, user.id, lesson.id)
        if existing is None:
            raise
        return existing
    db.refresh(attempt)
    return attempt


def grade(db: Session, quiz: models.LessonQuiz, answers: list) -> tuple:
    """Grade every quiz question; returns (graded answers, score, correct count)."""
    given = {}
    for item in answers:
        given.setdefault(item.question_id, item.answer)

    question_ids = quiz.question_ids
    questions = {
        q.id: q for q in db.query(models.Question).filter(models.Question.id.in_(question_ids)).all()
    }
    graded = []
    correct = 0
    for question_id in question_ids:
        question = questions.get(question_id)
        answer = given.get(question_id)
        is_correct = False
        if question is not None:
            resource = question_service.load_resource(db, question)
            is_correct = question_service.evaluate_answer(question.type, resource, answer)
        correct += is_correct
        graded.append({"question_id": question_id, "answer": answer, "is_correct": is_correct})

    total = len(question_ids)
    score = round(correct * 100 / total, 2) if total else 0.0
    return graded, score, correct


def submit_attempt(db: Session, attempt_id: int, body: schemas.AttemptSubmit, user: models.User):
    attempt = get_or_404(db, models.Attempt, attempt_id, "Attempt not found")
    if attempt.user_id != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden")
    if attempt.submitted_at is not None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Attempt already submitted")

    lesson = _quiz_lesson(db, attempt.quiz_lesson_id)
    quiz = get_quiz(db, lesson)
    graded, score, correct = grade(db, quiz, body.answers)
    is_passed = score >= (quiz.pass_score or 0)
    now = models.utcnow()

    # only the first submission flips submitted_at
    updated = (
        db.query(models.Attempt)
        .filter(models.Attempt.id == attempt.id, models.Attempt.submitted_at.is_(None))
        .update(
            {
                models.Attempt.answers: graded,
                models.Attempt.score: score,
                models.Attempt.is_passed: is_passed,
                models.Attempt.submitted_at: now,
                models.Attempt.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Attempt already submitted")

    if is_passed:
        enrollment = enrollment_service.find_enrollment(db, user.id, lesson.course_id)
        if enrollment is not None:
            enrollment_service.mark_lesson_completed(db, enrollment, lesson.id)
    db.commit()
    db.refresh(attempt)
    logger.info(
        "Attempt %s submitted by user %s: %s/%s correct, score=%s passed=%s",
        attempt.id, user.id, correct, len(graded), score, is_passed,
    )
    return attempt


def query_attempts(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Attempt)
    if user.role != "admin":
        query = query.filter(models.Attempt.user_id == user.id)
    elif filters.get("user_id"):
        query = query.filter(models.Attempt.user_id == filters["user_id"])
    if filters.get("quiz_lesson_id"):
        query = query.filter(models.Attempt.quiz_lesson_id == filters["quiz_lesson_id"])
    return paginate(query, models.Attempt, **page)


def get_attempt(db: Session, attempt_id: int, user: models.User) -> models.Attempt:
    attempt = get_or_404(db, models.Attempt, attempt_id, "Attempt not found")
    ensure_owner_or_admin(user, attempt.user_id)
    return attempt


def delete_attempt(db: Session, attempt_id: int, user: models.User):
    attempt = get_attempt(db, attempt_id, user)
    db.delete(attempt)
    db.commit()


def best_attempt(db: Session, quiz_lesson_id: int, user: models.User):
    _quiz_lesson(db, quiz_lesson_id)
    attempt = (
        db.query(models.Attempt)
        .filter(
            models.Attempt.user_id == user.id,
            models.Attempt.quiz_lesson_id == quiz_lesson_id,
            models.Attempt.submitted_at.isnot(None),
        )
        .order_by(models.Attempt.score.desc(), models.Attempt.submitted_at.asc())
        .first()
    )
    if attempt is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "No submitted attempt for this quiz")
    return attempt

"""Question bank: typed question resources, write-time rules and answer grading.

A question is a shell row (type, stem, difficulty) plus one detail row in the
table its ``type`` selects. Grading dispatches on the same tag.
"""
import logging

from fastapi import status
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError, describe_validation_errors
from ..pagination import paginate
from .common import apply_fields, get_or_404

logger = logging.getLogger(__name__)

RESOURCE_MODELS = {
    "single_choice": models.QuestionSingleChoice,
    "multiple_choice": models.QuestionMultipleChoice,
    "fill_in": models.QuestionFillIn,
}

_question_adapter = TypeAdapter(schemas.QuestionCreate)


# --- write-time rules ---

def check_resource(qtype: str, data: dict):
    """Raise 400 unless ``data`` is a valid detail payload for ``qtype``."""
    if qtype in ("single_choice", "multiple_choice"):
        options = data.get("options") or []
        if len(options) < 2:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Choice questions must have at least 2 options")
        ids = [opt["id"] for opt in options]
        if len(set(ids)) != len(ids):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Option ids must be unique")
        correct = sum(1 for opt in options if opt.get("is_correct"))
        if qtype == "single_choice" and correct != 1:
            raise ApiError(status.HTTP_400_BAD_REQUEST,
                           "Single choice questions must have exactly one correct answer")
        if qtype == "multiple_choice" and correct < 1:
            raise ApiError(status.HTTP_400_BAD_REQUEST,
                           "Multiple choice questions must have at least one correct answer")
    elif qtype == "fill_in":
        answers = [a for a in data.get("correct_answers") or [] if isinstance(a, str) and a.strip()]
        if not answers:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Fill-in questions must have at least one correct answer")
    else:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid question type")


# --- grading ---

def _option_id(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def correct_answer_of(qtype: str, resource):
    if qtype == "single_choice":
        return next((opt["id"] for opt in resource.options if opt.get("is_correct")), None)
    if qtype == "multiple_choice":
        return [opt["id"] for opt in resource.options if opt.get("is_correct")]
    return list(resource.correct_answers)


def evaluate_answer(qtype: str, resource, answer) -> bool:
    """Grade one answer against a question resource. Malformed answers are just wrong."""
    if resource is None or answer is None:
        return False
    if qtype == "single_choice":
        expected = correct_answer_of(qtype, resource)
        return expected is not None and _option_id(answer) == expected
    if qtype == "multiple_choice":
        if not isinstance(answer, (list, tuple)):
            return False
        given = [_option_id(a) for a in answer]
        if None in given or len(set(given)) != len(given):
            return False
        return set(given) == set(correct_answer_of(qtype, resource))
    if qtype == "fill_in":
        if not isinstance(answer, str):
            return False
        given = answer.strip()
        for accepted in resource.correct_answers:
            accepted = accepted.strip()
            if resource.case_sensitive:
                if given == accepted:
                    return True
            elif given.casefold() == accepted.casefold():
                return True
        return False
    return False


# --- serialization ---

def serialize_resource(qtype: str, resource, reveal: bool = True) -> dict:
    if resource is None:
        return None
    data = {"id": resource.id, "explanation": resource.explanation if reveal else ""}
    if qtype in ("single_choice", "multiple_choice"):
        data["options"] = [
            opt if reveal else {k: v for k, v in opt.items() if k != "is_correct"}
            for opt in resource.options
        ]
    else:
        data["case_sensitive"] = resource.case_sensitive
        if reveal:
            data["correct_answers"] = list(resource.correct_answers)
    return data


def load_resource(db: Session, question: models.Question):
    model = RESOURCE_MODELS.get(question.type)
    return db.get(model, question.resource_id) if model else None


def can_see_answers(user: models.User, question: models.Question) -> bool:
    return user.role == "admin" or question.created_by == user.id


# --- CRUD ---

def build_question(db: Session, user_id: int, body) -> models.Question:
    """Create shell + detail rows and flush; the caller owns the commit."""
    data = body.model_dump()
    qtype = data["type"]
    check_resource(qtype, data)

    if qtype == "fill_in":
        resource = models.QuestionFillIn(
            correct_answers=[a.strip() for a in data["correct_answers"] if a.strip()],
            case_sensitive=data["case_sensitive"],
            explanation=data["explanation"],
        )
    else:
        resource = RESOURCE_MODELS[qtype](options=data["options"], explanation=data["explanation"])
    db.add(resource)
    db.flush()

    question = models.Question(
        type=qtype,
        difficulty=data["difficulty"],
        content=data["content"],
        image_url=data["image_url"],
        resource_id=resource.id,
        created_by=user_id,
    )
    db.add(question)
    db.flush()
    return question


def create_question(db: Session, user: models.User, body) -> models.Question:
    question = build_question(db, user.id, body)
    db.commit()
    db.refresh(question)
    return question


def bulk_create_questions(db: Session, user: models.User, items: list) -> list:
    created = []
    for index, raw in enumerate(items):
        try:
            body = _question_adapter.validate_python(raw)
            created.append(build_question(db, user.id, body))
        except (ValidationError, ApiError) as exc:
            logger.warning("Skipping question #%s in bulk create: %s", index, exc)
    db.commit()
    return created


def get_question(db: Session, question_id: int):
    question = get_or_404(db, models.Question, question_id, "Question not found")
    return question, load_resource(db, question)


def get_question_detail(db: Session, question_id: int, user: models.User) -> dict:
    question, resource = get_question(db, question_id)
    return {
        "question": question,
        "detail": serialize_resource(question.type, resource, reveal=can_see_answers(user, question)),
    }


def _ensure_can_edit(user: models.User, question: models.Question):
    if user.role != "admin" and question.created_by != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not authorized to modify this question")


def update_question(db: Session, question_id: int, body: schemas.QuestionUpdate, user: models.User):
    question, resource = get_question(db, question_id)
    _ensure_can_edit(user, question)

    updates = body.model_dump(exclude_unset=True)
    resource_updates = updates.pop("resource", None)
    apply_fields(question, updates)

    if resource_updates:
        if question.type == "fill_in":
            allowed = {"correct_answers", "case_sensitive", "explanation"}
        else:
            allowed = {"options", "explanation"}
        resource_updates = {k: v for k, v in resource_updates.items() if k in allowed and v is not None}
        if question.type in ("single_choice", "multiple_choice") and "options" in resource_updates:
            try:
                options = TypeAdapter(list[schemas.OptionIn]).validate_python(resource_updates["options"])
            except ValidationError as exc:
                raise ApiError(status.HTTP_400_BAD_REQUEST, describe_validation_errors(exc.errors()))
            resource_updates["options"] = [opt.model_dump() for opt in options]
        merged = {
            "options": resource.options if question.type != "fill_in" else None,
            "correct_answers": resource.correct_answers if question.type == "fill_in" else None,
        }
        merged.update(resource_updates)
        check_resource(question.type, merged)
        apply_fields(resource, resource_updates)

    db.commit()
    db.refresh(question)
    return question


def delete_question(db: Session, question_id: int, user: models.User):
    question, resource = get_question(db, question_id)
    _ensure_can_edit(user, question)

    db.query(models.QuizQuestion).filter(models.QuizQuestion.question_id == question.id).delete(
        synchronize_session=False
    )
    if resource is not None:
        db.delete(resource)
    db.delete(question)
    db.commit()


def query_questions(db: Session, filters: dict, page: dict, ids=None):
    query = db.query(models.Question)
    if ids is not None:
        query = query.filter(models.Question.id.in_(ids))
    if filters.get("type"):
        query = query.filter(models.Question.type == filters["type"])
    if filters.get("difficulty"):
        query = query.filter(models.Question.difficulty == filters["difficulty"])
    if filters.get("content"):
        query = query.filter(models.Question.content.ilike(f"%{filters['content']}%"))
    return paginate(query, models.Question, **page)


def questions_by_course(db: Session, course_id: int, user: models.User, page: dict):
    course = get_or_404(db, models.Course, course_id, "Course not found")
    if user.role != "admin" and course.instructor_id != user.id:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not authorized to access questions for this course")

    quiz_ids = [
        row.resource_id
        for row in db.query(models.Lesson.resource_id).filter(
            models.Lesson.course_id == course_id, models.Lesson.type == "quiz"
        )
    ]
    ids = {
        row.question_id
        for row in db.query(models.QuizQuestion.question_id).filter(models.QuizQuestion.quiz_id.in_(quiz_ids))
    }
    return query_questions(db, {}, page, ids=ids)


def validate_answer(db: Session, question_id: int, answer) -> dict:
    question, resource = get_question(db, question_id)
    return {
        "question_id": question.id,
        "is_correct": evaluate_answer(question.type, resource, answer),
        "correct_answer": correct_answer_of(question.type, resource) if resource else None,
        "explanation": resource.explanation if resource else "",
        "user_answer": answer,
    }


def question_stats(db: Session) -> dict:
    by_type = db.query(models.Question.type, func.count(models.Question.id)).group_by(models.Question.type).all()
    by_difficulty = (
        db.query(models.Question.difficulty, func.count(models.Question.id))
        .group_by(models.Question.difficulty)
        .all()
    )
    return {
        "totalQuestions": db.query(models.Question).count(),
        "questionsByType": {key: count for key, count in by_type},
        "questionsByDifficulty": {key: count for key, count in by_difficulty},
        "questionsInQuizzes": db.query(models.QuizQuestion).count(),
    }

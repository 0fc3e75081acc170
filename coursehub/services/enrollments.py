from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import ensure_owner_or_admin, get_or_404
from .courses import effective_price, ensure_course_owner, get_course


def find_enrollment(db: Session, user_id: int, course_id: int):
    return (
        db.query(models.Enrollment)
        .filter(models.Enrollment.user_id == user_id, models.Enrollment.course_id == course_id)
        .first()
    )


def course_lesson_ids(db: Session, course_id: int) -> set:
    return {row.id for row in db.query(models.Lesson.id).filter(models.Lesson.course_id == course_id)}


def enroll(db: Session, user_id: int, course: models.Course) -> models.Enrollment:
    """Add an enrollment row and bump the course's student count (no commit)."""
    enrollment = models.Enrollment(
        user_id=user_id,
        course_id=course.id,
        completed_lessons=[],
        current_position={},
        total_lessons=len(course_lesson_ids(db, course.id)),
        progress_percent=0,
        status="active",
    )
    db.add(enrollment)
    course.students = (course.students or 0) + 1
    return enrollment


def unenroll(db: Session, enrollment: models.Enrollment):
    course = db.get(models.Course, enrollment.course_id)
    if course is not None:
        course.students = max((course.students or 0) - 1, 0)
    db.delete(enrollment)


def recalc_progress(db: Session, enrollment: models.Enrollment):
    lesson_ids = course_lesson_ids(db, enrollment.course_id)
    done = [lesson_id for lesson_id in enrollment.completed_lessons or [] if lesson_id in lesson_ids]
    enrollment.completed_lessons = done
    enrollment.total_lessons = len(lesson_ids)
    enrollment.progress_percent = round(len(done) * 100 / len(lesson_ids), 2) if lesson_ids else 0
    if lesson_ids and len(done) == len(lesson_ids):
        enrollment.status = "completed"
    return enrollment


def mark_lesson_completed(db: Session, enrollment: models.Enrollment, lesson_id: int):
    if lesson_id not in (enrollment.completed_lessons or []):
        enrollment.completed_lessons = list(enrollment.completed_lessons or []) + [lesson_id]
    enrollment.last_accessed_at = models.utcnow()
    return recalc_progress(db, enrollment)


def create_enrollment(db: Session, user: models.User, course_id: int) -> models.Enrollment:
    course = get_course(db, course_id)
    if find_enrollment(db, user.id, course.id):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Already enrolled in this course")
    if effective_price(course) > 0 and user.role != "admin" and course.instructor_id != user.id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Course must be purchased")
    enrollment = enroll(db, user.id, course)
    db.commit()
    db.refresh(enrollment)
    return enrollment


def get_enrollment(db: Session, enrollment_id: int, user: models.User) -> models.Enrollment:
    enrollment = get_or_404(db, models.Enrollment, enrollment_id, "Enrollment not found")
    ensure_owner_or_admin(user, enrollment.user_id)
    return enrollment


def query_enrollments(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Enrollment)
    if user.role != "admin":
        query = query.filter(models.Enrollment.user_id == user.id)
    elif filters.get("user_id"):
        query = query.filter(models.Enrollment.user_id == filters["user_id"])
    if filters.get("course_id"):
        query = query.filter(models.Enrollment.course_id == filters["course_id"])
    if filters.get("status"):
        query = query.filter(models.Enrollment.status == filters["status"])
    return paginate(query, models.Enrollment, **page)


def enrollments_by_course(db: Session, course_id: int, user: models.User, page: dict):
    ensure_course_owner(user, get_course(db, course_id), "view enrollments of")
    query = db.query(models.Enrollment).filter(models.Enrollment.course_id == course_id)
    return paginate(query, models.Enrollment, **page)


def enrollments_by_student(db: Session, student_id: int, user: models.User, page: dict):
    ensure_owner_or_admin(user, student_id)
    query = db.query(models.Enrollment).filter(models.Enrollment.user_id == student_id)
    return paginate(query, models.Enrollment, **page)


def update_enrollment(db: Session, enrollment_id: int, body: schemas.EnrollmentUpdate, user: models.User):
    enrollment = get_enrollment(db, enrollment_id, user)
    if body.status is not None:
        if user.role != "admin":
            raise ApiError(status.HTTP_403_FORBIDDEN, "Forbidden")
        enrollment.status = body.status
    if body.current_position is not None:
        enrollment.current_position = body.current_position.model_dump()
        enrollment.last_accessed_at = models.utcnow()
    db.commit()
    db.refresh(enrollment)
    return enrollment


def delete_enrollment(db: Session, enrollment_id: int, user: models.User):
    enrollment = get_enrollment(db, enrollment_id, user)
    unenroll(db, enrollment)
    db.commit()


def complete_lesson(db: Session, enrollment_id: int, lesson_id: int, user: models.User):
    enrollment = get_enrollment(db, enrollment_id, user)
    lesson = get_or_404(db, models.Lesson, lesson_id, "Lesson not found")
    if lesson.course_id != enrollment.course_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Lesson does not belong to this course")
    mark_lesson_completed(db, enrollment, lesson.id)
    db.commit()
    db.refresh(enrollment)
    return enrollment


def update_position(db: Session, enrollment_id: int, body: schemas.Position, user: models.User):
    enrollment = get_enrollment(db, enrollment_id, user)
    if body.lesson_id is not None:
        lesson = get_or_404(db, models.Lesson, body.lesson_id, "Lesson not found")
        if lesson.course_id != enrollment.course_id:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Lesson does not belong to this course")
    enrollment.current_position = body.model_dump()
    enrollment.last_accessed_at = models.utcnow()
    db.commit()
    db.refresh(enrollment)
    return enrollment


def complete_enrollment(db: Session, enrollment_id: int, user: models.User):
    enrollment = get_enrollment(db, enrollment_id, user)
    recalc_progress(db, enrollment)
    if enrollment.progress_percent < 100 and user.role != "admin":
        raise ApiError(status.HTTP_400_BAD_REQUEST, "All lessons must be completed first")
    enrollment.status = "completed"
    db.commit()
    db.refresh(enrollment)
    return enrollment


def enrollment_progress(db: Session, enrollment_id: int, user: models.User) -> dict:
    enrollment = get_enrollment(db, enrollment_id, user)
    recalc_progress(db, enrollment)
    db.commit()
    return {
        "enrollment_id": enrollment.id,
        "course_id": enrollment.course_id,
        "completed_lessons": enrollment.completed_lessons,
        "completed_count": len(enrollment.completed_lessons),
        "total_lessons": enrollment.total_lessons,
        "progress_percent": enrollment.progress_percent,
        "status": enrollment.status,
        "current_position": enrollment.current_position,
    }


def enrollment_stats(db: Session) -> dict:
    by_status = (
        db.query(models.Enrollment.status, func.count(models.Enrollment.id))
        .group_by(models.Enrollment.status)
        .all()
    )
    return {
        "totalEnrollments": db.query(models.Enrollment).count(),
        "enrollmentsByStatus": {key: count for key, count in by_status},
        "averageProgress": round(db.query(func.avg(models.Enrollment.progress_percent)).scalar() or 0, 2),
    }

import logging

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import get_or_404

logger = logging.getLogger(__name__)

LAST_ADMIN_MESSAGE = "Classroom must have at least one admin"


def get_member(classroom: models.Classroom, user_id: int):
    return next((m for m in classroom.members if m.user_id == user_id), None)


def is_member(classroom: models.Classroom, user: models.User) -> bool:
    return get_member(classroom, user.id) is not None


def is_classroom_admin(classroom: models.Classroom, user: models.User) -> bool:
    if user.role == "admin":
        return True
    member = get_member(classroom, user.id)
    return member is not None and member.role == "admin"


def _admin_count(classroom: models.Classroom) -> int:
    return sum(1 for m in classroom.members if m.role == "admin")


def _load(db: Session, classroom_id: int) -> models.Classroom:
    return get_or_404(db, models.Classroom, classroom_id, "Classroom not found")


def _ensure_admin(classroom: models.Classroom, user: models.User):
    if not is_classroom_admin(classroom, user):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Only classroom admins can do this")


def _ensure_user(db: Session, user_id: int):
    if db.get(models.User, user_id) is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, f"User not found: {user_id}")


def create_classroom(db: Session, user: models.User, body: schemas.ClassroomCreate) -> models.Classroom:
    classroom = models.Classroom(name=body.name, description=body.description, created_by=user.id)
    classroom.members.append(models.ClassroomMember(user_id=user.id, role="admin"))
    for member_id in dict.fromkeys(body.member_ids):
        if member_id == user.id:
            continue
        _ensure_user(db, member_id)
        classroom.members.append(models.ClassroomMember(user_id=member_id, role="student"))
    db.add(classroom)
    db.commit()
    db.refresh(classroom)
    logger.info("Classroom %s created by user %s with %s members", classroom.id, user.id, len(classroom.members))
    return classroom


def query_classrooms(db: Session, filters: dict, page: dict, user: models.User):
    query = db.query(models.Classroom)
    if user.role != "admin":
        query = query.join(models.ClassroomMember).filter(models.ClassroomMember.user_id == user.id)
    if filters.get("name"):
        query = query.filter(models.Classroom.name.ilike(f"%{filters['name']}%"))
    if filters.get("created_by"):
        query = query.filter(models.Classroom.created_by == filters["created_by"])
    return paginate(query, models.Classroom, **page)


def my_classrooms(db: Session, user: models.User, page: dict):
    query = (
        db.query(models.Classroom)
        .join(models.ClassroomMember)
        .filter(models.ClassroomMember.user_id == user.id)
    )
    return paginate(query, models.Classroom, **page)


def get_classroom(db: Session, classroom_id: int, user: models.User) -> models.Classroom:
    classroom = _load(db, classroom_id)
    if user.role != "admin" and not is_member(classroom, user):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Not a member of this classroom")
    return classroom


def update_classroom(db: Session, classroom_id: int, body: schemas.ClassroomUpdate, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    for key, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(classroom, key, value)
    db.commit()
    db.refresh(classroom)
    return classroom


def delete_classroom(db: Session, classroom_id: int, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    db.query(models.Message).filter(models.Message.classroom_id == classroom.id).delete(synchronize_session=False)
    db.delete(classroom)
    db.commit()
    logger.info("Classroom %s deleted by user %s", classroom_id, user.id)


# --- members ---

def add_member(db: Session, classroom_id: int, body: schemas.MemberIn, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    _ensure_user(db, body.user_id)
    if get_member(classroom, body.user_id) is not None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "User is already a member of this classroom")
    classroom.members.append(models.ClassroomMember(user_id=body.user_id, role=body.role))
    db.commit()
    db.refresh(classroom)
    return classroom


def update_member_role(db: Session, classroom_id: int, member_id: int, body: schemas.MemberRoleIn,
                       user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    member = get_member(classroom, member_id)
    if member is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Member not found")
    if member.role == "admin" and body.role != "admin" and _admin_count(classroom) == 1:
        raise ApiError(status.HTTP_400_BAD_REQUEST, LAST_ADMIN_MESSAGE)
    member.role = body.role
    db.commit()
    db.refresh(classroom)
    return classroom


def remove_member(db: Session, classroom_id: int, member_id: int, user: models.User):
    classroom = _load(db, classroom_id)
    if member_id != user.id:
        _ensure_admin(classroom, user)
    member = get_member(classroom, member_id)
    if member is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Member not found")
    if member.role == "admin" and _admin_count(classroom) == 1:
        raise ApiError(status.HTTP_400_BAD_REQUEST, LAST_ADMIN_MESSAGE)
    classroom.members.remove(member)
    db.commit()
    db.refresh(classroom)
    logger.info("User %s removed from classroom %s by user %s", member_id, classroom.id, user.id)
    return classroom


# --- courses ---

def assign_course(db: Session, classroom_id: int, course_id: int, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    get_or_404(db, models.Course, course_id, "Course not found")
    if course_id in classroom.assigned_courses:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Course already assigned to this classroom")
    classroom.course_links.append(models.ClassroomCourse(course_id=course_id))
    db.commit()
    db.refresh(classroom)
    return classroom


def remove_course(db: Session, classroom_id: int, course_id: int, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    link = next((c for c in classroom.course_links if c.course_id == course_id), None)
    if link is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Course is not assigned to this classroom")
    classroom.course_links.remove(link)
    db.commit()
    db.refresh(classroom)
    return classroom


# --- materials ---

def add_material(db: Session, classroom_id: int, body: schemas.MaterialIn, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    material = models.ClassroomMaterial(name=body.name, url=body.url, uploaded_by=user.id)
    classroom.materials.append(material)
    db.commit()
    db.refresh(material)
    return material


def list_materials(db: Session, classroom_id: int, user: models.User):
    return get_classroom(db, classroom_id, user).materials


def delete_material(db: Session, classroom_id: int, material_id: int, user: models.User):
    classroom = _load(db, classroom_id)
    _ensure_admin(classroom, user)
    material = next((m for m in classroom.materials if m.id == material_id), None)
    if material is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Material not found")
    classroom.materials.remove(material)
    db.commit()


def classroom_stats(db: Session) -> dict:
    total = db.query(models.Classroom).count()
    members = db.query(func.count(models.ClassroomMember.id)).scalar() or 0
    return {
        "totalClassrooms": total,
        "totalMembers": members,
        "averageMembers": round(members / total, 2) if total else 0,
        "totalMaterials": db.query(func.count(models.ClassroomMaterial.id)).scalar() or 0,
        "totalAssignedCourses": db.query(func.count(models.ClassroomCourse.id)).scalar() or 0,
    }

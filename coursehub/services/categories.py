from fastapi import status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import ApiError
from ..pagination import paginate
from .common import apply_fields, get_or_404

DEFAULT_CATEGORIES = [
    {"name": "Programming", "slug": "programming", "type": "course", "icon": "code", "color": "#3B82F6"},
    {"name": "Design", "slug": "design", "type": "course", "icon": "palette", "color": "#EC4899"},
    {"name": "Business", "slug": "business", "type": "course", "icon": "briefcase", "color": "#10B981"},
    {"name": "Languages", "slug": "languages", "type": "course", "icon": "globe", "color": "#F59E0B"},
    {"name": "General Knowledge", "slug": "general-knowledge", "type": "quiz", "icon": "book", "color": "#6B7280"},
]


def _check_unique(db: Session, name: str = None, slug: str = None, exclude_id: int = None):
    for column, value, label in ((models.Category.name, name, "name"), (models.Category.slug, slug, "slug")):
        if value is None:
            continue
        query = db.query(models.Category.id).filter(column == value)
        if exclude_id is not None:
            query = query.filter(models.Category.id != exclude_id)
        if query.first():
            raise ApiError(status.HTTP_400_BAD_REQUEST, f"Category {label} already taken")


def _check_parent(db: Session, parent_id: int, category_id: int = None):
    if parent_id is None:
        return
    if parent_id == category_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "A category cannot be its own parent")
    if db.get(models.Category, parent_id) is None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Parent category not found")


def create_category(db: Session, body: schemas.CategoryCreate) -> models.Category:
    _check_unique(db, body.name, body.slug)
    _check_parent(db, body.parent_id)
    category = models.Category(**body.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def query_categories(db: Session, filters: dict, page: dict):
    query = db.query(models.Category)
    if filters.get("name"):
        query = query.filter(models.Category.name.ilike(f"%{filters['name']}%"))
    for key in ("type", "is_active", "parent_id"):
        if filters.get(key) is not None:
            query = query.filter(getattr(models.Category, key) == filters[key])
    return paginate(query, models.Category, default_sort="sort_order:asc", **page)


def get_category(db: Session, category_id: int) -> models.Category:
    return get_or_404(db, models.Category, category_id, "Category not found")


def get_category_by_slug(db: Session, slug: str) -> models.Category:
    category = db.query(models.Category).filter(models.Category.slug == slug).first()
    if category is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Category not found")
    return category


def update_category(db: Session, category_id: int, body: schemas.CategoryUpdate) -> models.Category:
    category = get_category(db, category_id)
    updates = body.model_dump(exclude_unset=True)
    _check_unique(db, updates.get("name"), updates.get("slug"), exclude_id=category.id)
    if updates.get("parent_id") is not None:
        _check_parent(db, updates["parent_id"], category.id)
    apply_fields(category, updates, nullable=("parent_id",))
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int):
    category = get_category(db, category_id)
    if category.subcategories:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot delete a category that has subcategories")
    if db.query(models.Course.id).filter(models.Course.category_id == category.id).first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot delete a category that has courses")
    db.delete(category)
    db.commit()


def categories_by_type(db: Session, category_type: str, include_inactive: bool = False):
    if category_type not in models.CATEGORY_TYPES:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid category type")
    query = db.query(models.Category).filter(models.Category.type == category_type)
    if not include_inactive:
        query = query.filter(models.Category.is_active.is_(True))
    return query.order_by(models.Category.sort_order, models.Category.name).all()


def parent_categories(db: Session, category_type: str = None):
    query = db.query(models.Category).filter(models.Category.parent_id.is_(None))
    if category_type:
        query = query.filter(models.Category.type == category_type)
    return query.order_by(models.Category.sort_order, models.Category.name).all()


def subcategories(db: Session, parent_id: int):
    get_category(db, parent_id)
    return (
        db.query(models.Category)
        .filter(models.Category.parent_id == parent_id)
        .order_by(models.Category.sort_order, models.Category.name)
        .all()
    )


def toggle_status(db: Session, category_id: int) -> models.Category:
    category = get_category(db, category_id)
    category.is_active = not category.is_active
    db.commit()
    db.refresh(category)
    return category


def update_sort_order(db: Session, category_id: int, sort_order: int) -> models.Category:
    category = get_category(db, category_id)
    category.sort_order = sort_order
    db.commit()
    db.refresh(category)
    return category


def category_stats(db: Session) -> dict:
    query = db.query(models.Category)
    total = query.count()
    active = query.filter(models.Category.is_active.is_(True)).count()
    parents = query.filter(models.Category.parent_id.is_(None)).count()
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "course": query.filter(models.Category.type == "course").count(),
        "quiz": query.filter(models.Category.type == "quiz").count(),
        "parents": parents,
        "subcategories": total - parents,
    }


def seed_default_categories(db: Session) -> int:
    created = 0
    for position, data in enumerate(DEFAULT_CATEGORIES):
        if db.query(models.Category.id).filter(models.Category.slug == data["slug"]).first():
            continue
        db.add(models.Category(sort_order=position, **data))
        created += 1
    db.commit()
    return created

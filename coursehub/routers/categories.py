from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..pagination import page_params
from ..security import require_role
from ..services import categories as category_service

router = APIRouter(prefix="/categories", tags=["categories"])
admin_only = require_role("admin")


@router.post("", response_model=schemas.CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(body: schemas.CategoryCreate, db: Session = Depends(get_db),
                    _: models.User = Depends(admin_only)):
    return category_service.create_category(db, body)


@router.get("", response_model=schemas.Page[schemas.CategoryOut])
def list_categories(name: Optional[str] = None, type: Optional[str] = None, is_active: Optional[bool] = None,
                    parent_id: Optional[int] = None, page: dict = Depends(page_params),
                    db: Session = Depends(get_db)):
    filters = {"name": name, "type": type, "is_active": is_active, "parent_id": parent_id}
    return category_service.query_categories(db, filters, page)


@router.get("/stats")
def category_stats(db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return category_service.category_stats(db)


@router.get("/parents", response_model=List[schemas.CategoryOut])
def parent_categories(type: Optional[str] = None, db: Session = Depends(get_db)):
    return category_service.parent_categories(db, type)


@router.get("/type/{category_type}", response_model=List[schemas.CategoryOut])
def categories_by_type(category_type: str, include_inactive: bool = False, db: Session = Depends(get_db)):
    return category_service.categories_by_type(db, category_type, include_inactive)


@router.get("/slug/{slug}", response_model=schemas.CategoryOut)
def read_category_by_slug(slug: str, db: Session = Depends(get_db)):
    return category_service.get_category_by_slug(db, slug)


@router.get("/{category_id}", response_model=schemas.CategoryOut)
def read_category(category_id: int, db: Session = Depends(get_db)):
    return category_service.get_category(db, category_id)


@router.get("/{category_id}/subcategories", response_model=List[schemas.CategoryOut])
def read_subcategories(category_id: int, db: Session = Depends(get_db)):
    return category_service.subcategories(db, category_id)


@router.patch("/{category_id}", response_model=schemas.CategoryOut)
def update_category(category_id: int, body: schemas.CategoryUpdate, db: Session = Depends(get_db),
                    _: models.User = Depends(admin_only)):
    return category_service.update_category(db, category_id, body)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: int, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    category_service.delete_category(db, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{category_id}/toggle-status", response_model=schemas.CategoryOut)
def toggle_status(category_id: int, db: Session = Depends(get_db), _: models.User = Depends(admin_only)):
    return category_service.toggle_status(db, category_id)


@router.patch("/{category_id}/sort-order", response_model=schemas.CategoryOut)
def update_sort_order(category_id: int, body: schemas.SortOrderIn, db: Session = Depends(get_db),
                      _: models.User = Depends(admin_only)):
    return category_service.update_sort_order(db, category_id, body.sort_order)

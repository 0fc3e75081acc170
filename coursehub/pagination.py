import math
from typing import Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query


def apply_sort(query: Query, model, sort_by: str = None, default: str = "created_at:desc") -> Query:
    """Apply a ``field:asc|desc[,field:asc|desc]`` sort string; unknown fields are skipped."""
    orderings = []
    for part in (sort_by or default).split(","):
        field, _, direction = part.strip().partition(":")
        column = getattr(model, field, None)
        if not field or column is None or not hasattr(column, "asc"):
            continue
        orderings.append(desc(column) if direction.lower() == "desc" else asc(column))
    if not orderings:
        orderings.append(desc(model.id))
    return query.order_by(*orderings)


def paginate(query: Query, model, sort_by: str = None, limit: int = None, page: int = None,
             default_sort: str = "created_at:desc", default_limit: int = 10) -> dict:
    limit = limit if limit and limit > 0 else default_limit
    page = page if page and page > 0 else 1

    total = query.order_by(None).count()
    results = apply_sort(query, model, sort_by, default_sort).offset((page - 1) * limit).limit(limit).all()
    return {
        "results": results,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
        "totalResults": total,
    }


def page_params(sortBy: Optional[str] = None, limit: Optional[int] = None, page: Optional[int] = None) -> dict:
    """Query-string dependency: ``?sortBy=field:desc&limit=10&page=1``."""
    return {"sort_by": sortBy, "limit": limit, "page": page}

from dataclasses import dataclass, field
import math
from typing import Any

from sqlalchemy.orm import Query

from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


@dataclass(slots=True)
class PageResult:
    items: list[Any] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    total: int = 0
    total_pages: int = 0


def normalize_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    page = max(1, int(page or 1))
    limit = max(1, min(MAX_PAGE_SIZE, int(limit or DEFAULT_PAGE_SIZE)))
    return page, limit


def paginate(query: Query, page: int | None, limit: int | None) -> PageResult:
    page, limit = normalize_paging(page, limit)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return PageResult(
        items=items,
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
    )

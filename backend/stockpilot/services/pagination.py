# Overview: Offset pagination shared by the order and movement listings.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from flask import current_app


@dataclass
class Page:
    items: list = field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1
    limit: int = 10

    def to_dict(self, serialize: Callable[[Any], dict], key: str = "items") -> dict:
        return {
            key: [serialize(item) for item in self.items],
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "current_page": self.current_page,
            "limit": self.limit,
        }


def normalize_page_args(page: int | None, limit: int | None) -> tuple[int, int]:
    """Clamp page >= 1 and 1 <= limit <= MAX_PAGE_SIZE (defaults from config)."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)
    page = max(page or 1, 1)
    limit = min(max(limit or default_limit, 1), max_limit)
    return page, limit


def paginate(query, *, page: int | None = None, limit: int | None = None) -> Page:
    page, limit = normalize_page_args(page, limit)

    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit if total > 0 else 0

    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(
        items=items,
        total_count=total,
        total_pages=total_pages,
        current_page=page,
        limit=limit,
    )

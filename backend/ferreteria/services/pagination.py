# Overview: Page container and clamped offset pagination for list endpoints.

from __future__ import annotations

import math
from dataclasses import dataclass

from flask import current_app


@dataclass
class Page:
    items: list
    page: int
    page_size: int
    total: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self, serialize=None) -> dict:
        serialize = serialize or (lambda item: item.to_dict())
        return {
            "items": [serialize(i) for i in self.items],
            "pagination": {
                "page": self.page,
                "page_size": self.page_size,
                "total": self.total,
                "total_pages": self.total_pages,
                "has_next": self.has_next,
                "has_prev": self.has_prev,
            },
        }


def paginate(query, page: int | None, page_size: int | None) -> Page:
    """
    Apply offset pagination to an already-ordered query.

    page_size defaults to MOVEMENTS_PAGE_SIZE and is capped at
    MAX_PAGE_SIZE. page is clamped into [1, total_pages]; an empty result
    still has one page.
    """
    max_size = current_app.config.get("MAX_PAGE_SIZE", 200)
    page_size = int(page_size or current_app.config.get("MOVEMENTS_PAGE_SIZE", 20))
    page_size = max(1, min(page_size, max_size))

    total = query.order_by(None).count()
    total_pages = max(1, math.ceil(total / page_size))
    page = max(1, min(int(page or 1), total_pages))

    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return Page(items=items, page=page, page_size=page_size, total=total, total_pages=total_pages)

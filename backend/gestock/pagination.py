# Overview: Unified list pagination ({page, limit, total, totalPages}).

from __future__ import annotations

import math

from flask import current_app, has_app_context

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _limits() -> tuple[int, int]:
    if has_app_context():
        return (
            int(current_app.config.get("DEFAULT_PAGE_SIZE", DEFAULT_PAGE_SIZE)),
            int(current_app.config.get("MAX_PAGE_SIZE", MAX_PAGE_SIZE)),
        )
    return DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def page_params(page, limit) -> tuple[int, int]:
    """Lenient parsing: junk, zero and negatives fall back to defaults; limit is capped."""
    default_size, max_size = _limits()
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = default_size
    if page < 1:
        page = 1
    if limit < 1:
        limit = default_size
    return page, min(limit, max_size)


def paginate(query, page, limit) -> tuple[list, dict]:
    """
    Apply offset pagination to an ordered SQLAlchemy query.

    Returns (rows, pagination) where pagination is
    {"page", "limit", "total", "totalPages"}.
    """
    page, limit = page_params(page, limit)
    total = query.order_by(None).count()
    rows = query.limit(limit).offset((page - 1) * limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if total else 0,
    }

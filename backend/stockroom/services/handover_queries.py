# Overview: Read-side queries over handover records (lists, filters, counters).

from __future__ import annotations

import math

from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..models import HandOver
from ..models.handovers import (
    HANDOVER_STATUS_HANDED_OVER,
    HANDOVER_STATUS_PENDING,
    HANDOVER_STATUS_REJECTED,
    HANDOVER_STATUS_RETURNED,
    HANDOVER_STATUSES,
)
from ..time_utils import utcnow


DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100
RECENT_HANDOVERS_COUNT = 5


def _newest_first(query):
    return query.order_by(HandOver.created_at.desc(), HandOver.id.desc())


def _check_status(status: str | None) -> None:
    if status is not None and status not in HANDOVER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(HANDOVER_STATUSES)}")


def paginate(query, *, page: int, limit: int) -> tuple[list, dict]:
    """Slice a query; returns (items, {current, pages, total, limit})."""
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "current": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "limit": limit,
    }


def list_handovers(
    *,
    status: str | None = None,
    employee_id: int | None = None,
    product_id: int | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> dict:
    """
    Filtered, newest-first page of handovers.

    Returns {"handovers": [HandOver, ...], "pagination": {...}}.
    """
    _check_status(status)
    if page < 1:
        raise ValidationError("Page must be a positive integer")
    if limit < 1:
        raise ValidationError("Limit must be a positive integer")
    limit = min(limit, max_limit)

    query = db.session.query(HandOver)
    if status:
        query = query.filter(HandOver.status == status)
    if employee_id is not None:
        query = query.filter(HandOver.employee_id == employee_id)
    if product_id is not None:
        query = query.filter(HandOver.product_id == product_id)

    items, pagination = paginate(_newest_first(query), page=page, limit=limit)
    return {"handovers": items, "pagination": pagination}


def list_pending_handovers() -> list[HandOver]:
    return _newest_first(
        db.session.query(HandOver).filter(HandOver.status == HANDOVER_STATUS_PENDING)
    ).all()


def list_employee_handovers(employee_id: int, status: str | None = None) -> list[HandOver]:
    _check_status(status)
    query = db.session.query(HandOver).filter(HandOver.employee_id == employee_id)
    if status:
        query = query.filter(HandOver.status == status)
    return _newest_first(query).all()


def count_by_status() -> dict[str, int]:
    """Every status appears, zero when unused."""
    counts = {status: 0 for status in HANDOVER_STATUSES}
    rows = (
        db.session.query(HandOver.status, func.count(HandOver.id))
        .group_by(HandOver.status)
        .all()
    )
    for status, count in rows:
        counts[status] = count
    return counts


def count_overdue(now=None) -> int:
    now = now or utcnow()
    return (
        db.session.query(func.count(HandOver.id))
        .filter(
            HandOver.status == HANDOVER_STATUS_HANDED_OVER,
            HandOver.expected_return_date.isnot(None),
            HandOver.expected_return_date < now,
        )
        .scalar()
        or 0
    )


def handover_stats(now=None) -> dict:
    counts = count_by_status()
    recent = _newest_first(db.session.query(HandOver)).limit(RECENT_HANDOVERS_COUNT).all()
    return {
        "total": sum(counts.values()),
        "active": counts[HANDOVER_STATUS_HANDED_OVER],
        "pending": counts[HANDOVER_STATUS_PENDING],
        "returned": counts[HANDOVER_STATUS_RETURNED],
        "rejected": counts[HANDOVER_STATUS_REJECTED],
        "overdue": count_overdue(now),
        "recent": [h.to_dict() for h in recent],
    }

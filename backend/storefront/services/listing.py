# Overview: Shared list/search/pagination for the staff order and booking views.

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import or_

from ..errors import ValidationError
from ..extensions import db
from ..time_utils import parse_iso_datetime


def _parse_bound(value, field: str):
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", {"field": field})


def list_documents(
    model,
    *,
    business_id: int,
    number_column,
    status: str | None = None,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int = 1,
    per_page: int = 20,
    newest_first: bool = True,
) -> dict:
    """
    Tenant-scoped listing of orders or bookings.

    ``search`` matches the document number, customer email or customer
    name. A bare ``end_date`` (YYYY-MM-DD) includes the whole day.

    Returns:
        Dict with 'items', 'count' and 'pagination'
    """
    query = db.session.query(model).filter(model.business_id == business_id)

    if status:
        query = query.filter(model.status == status)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            number_column.ilike(pattern),
            model.customer_email.ilike(pattern),
            model.customer_name.ilike(pattern),
        ))

    start = _parse_bound(start_date, "start_date")
    if start is not None:
        query = query.filter(model.created_at >= start)

    end = _parse_bound(end_date, "end_date")
    if end is not None:
        if end_date and len(str(end_date).strip()) == 10:
            end = end + timedelta(days=1)
        query = query.filter(model.created_at < end)

    order_column = model.created_at.desc() if newest_first else model.created_at.asc()
    query = query.order_by(order_column, model.id.desc() if newest_first else model.id.asc())

    max_per_page = current_app.config.get("MAX_PAGE_SIZE", 100)
    per_page = min(max(per_page or 20, 1), max_per_page)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    documents = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [d.to_dict() for d in documents],
        "count": len(documents),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }

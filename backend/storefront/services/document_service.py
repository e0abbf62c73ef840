# Overview: Order/booking numbering, invoice tokens, and the shared timeline and row-lock helpers.

from __future__ import annotations

import secrets

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError
from ..extensions import db
from ..models import DocumentSequence, Store, TimelineEntry
from ..time_utils import period_code, utcnow
from .concurrency import lock_for_update


ORDER_DOCUMENT_TYPE = "ORDER"
BOOKING_DOCUMENT_TYPE = "BOOKING"
BOOKING_NUMBER_PREFIX = "BK"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_value(store_id: int, document_type: str, period: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(store_id=store_id, document_type=document_type, period=period)
        .scalar()
    )


def allocate_sequence(*, store_id: int, document_type: str, period: str) -> int:
    """
    Atomically allocate the next sequence value for a store/type/period.

    The UPDATE takes the row lock for the rest of the enclosing
    transaction. The first allocation of a period inserts the row inside a
    SAVEPOINT so a concurrent first insert only undoes that savepoint.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_value(store_id, document_type, period) - 1

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(
                store_id=store_id,
                document_type=document_type,
                period=period,
                next_number=2,
            ))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(
                f"Could not allocate {document_type} sequence for store {store_id}"
            )
        return _current_value(store_id, document_type, period) - 1


def next_order_number(store: Store, moment=None) -> str:
    """e.g. "A1B26100001": store prefix, YYMM, four-digit monthly sequence."""
    period = period_code(moment or utcnow())
    sequence = allocate_sequence(store_id=store.id, document_type=ORDER_DOCUMENT_TYPE, period=period)
    return f"{store.order_prefix}{period}{sequence:04d}"


def next_booking_number(store: Store, moment=None) -> str:
    period = period_code(moment or utcnow())
    sequence = allocate_sequence(store_id=store.id, document_type=BOOKING_DOCUMENT_TYPE, period=period)
    return f"{BOOKING_NUMBER_PREFIX}{store.order_prefix}{period}{sequence:04d}"


def generate_invoice_token() -> str:
    """32 hex characters (16 random bytes) granting public invoice access."""
    return secrets.token_hex(16)


def invoice_url(base_url: str, order) -> str:
    return f"{base_url.rstrip('/')}/invoice/{order.id}/{order.invoice_token}"


# =============================================================================
# Order/booking document helpers
# =============================================================================

def lock_document(model, document_id: int):
    """
    Re-read an order or booking under a row lock inside the current transaction.

    populate_existing refreshes an instance already in the identity map.
    """
    document = (
        lock_for_update(db.session.query(model).filter(model.id == document_id))
        .populate_existing()
        .first()
    )
    if document is None:
        raise NotFoundError(f"{model.__name__} not found")
    return document


def append_timeline(document, status: str, note: str | None, actor: str | None) -> TimelineEntry:
    """Append one entry; callers set ``document.status`` to the same value."""
    entry = TimelineEntry(status=status, note=note, updated_by=actor or "system")
    document.timeline.append(entry)
    return entry

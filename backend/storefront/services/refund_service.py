"""
Refund Calculator

Refunds are issued against the payment recorded on an order or booking.

INVARIANTS:
- payment_refunded_cents == sum of the document's refund records
- payment_refunded_cents <= payment_amount_cents
- a rejected refund leaves the document untouched

LIFECYCLE:
- partial refund: payment and document move to "partially_refunded"
- refund reaching the paid amount: both move to "refunded"
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import InvalidRefundAmount, RefundNotAllowed
from ..models import Booking, Order, RefundRecord
from ..validation import clean_text, coerce_int
from .concurrency import run_transaction_with_retry
from .document_service import append_timeline, lock_document
from .notification_service import get_notifier
from .pricing_service import format_money


# =============================================================================
# REFUND ELIGIBILITY CONSTANTS
# =============================================================================

ORDER_REFUNDABLE_STATUSES = {"delivered", "shipped", "partially_refunded"}
BOOKING_REFUNDABLE_STATUSES = {"completed", "cancelled", "no_show", "partially_refunded"}
REFUNDABLE_PAYMENT_STATUSES = {"completed", "partially_refunded"}

DEFAULT_REFUND_METHOD = "original"


@dataclass
class RefundResult:
    document: Order | Booking
    refund: RefundRecord
    remaining_cents: int
    fully_refunded: bool


def remaining_refundable(document) -> int:
    """Amount still refundable, never negative."""
    return max((document.payment_amount_cents or 0) - (document.payment_refunded_cents or 0), 0)


def _refundable_statuses(document) -> set[str]:
    if isinstance(document, Booking):
        return BOOKING_REFUNDABLE_STATUSES
    return ORDER_REFUNDABLE_STATUSES


def _status_eligible(document) -> bool:
    return (
        document.status in _refundable_statuses(document)
        and document.payment_status in REFUNDABLE_PAYMENT_STATUSES
    )


def can_be_refunded(document) -> bool:
    return remaining_refundable(document) > 0 and _status_eligible(document)


def validate_refund_amount(document, amount_cents: int) -> int:
    """
    Check ``amount_cents`` against what is left to refund.

    Returns:
        The remaining refundable amount before this refund

    Raises:
        InvalidRefundAmount: amount not positive, nothing left, or more than is left
    """
    remaining = remaining_refundable(document)
    details = {"amount_cents": amount_cents, "remaining_cents": remaining}
    if amount_cents <= 0:
        raise InvalidRefundAmount("Refund amount must be greater than zero", details)
    if remaining <= 0:
        raise InvalidRefundAmount("Payment has already been fully refunded", details)
    if amount_cents > remaining:
        raise InvalidRefundAmount("Refund amount exceeds refundable amount", details)
    return remaining


def record_refund(
    document,
    amount_cents: int,
    reason: str | None = None,
    method: str = DEFAULT_REFUND_METHOD,
    actor: str | None = None,
) -> tuple[RefundRecord, bool]:
    """
    Append a refund record and update the payment sub-document.

    Does not touch the document status or timeline; callers decide those.
    Runs in the caller's transaction.

    Returns:
        (refund record, whether the payment is now fully refunded)
    """
    validate_refund_amount(document, amount_cents)

    refund = RefundRecord(
        amount_cents=amount_cents,
        reason=reason,
        method=method or DEFAULT_REFUND_METHOD,
        processed_by=actor,
        meta={},
    )
    document.refunds.append(refund)
    document.payment_refunded_cents = (document.payment_refunded_cents or 0) + amount_cents

    fully_refunded = document.payment_refunded_cents >= document.payment_amount_cents
    document.payment_status = "refunded" if fully_refunded else "partially_refunded"
    return refund, fully_refunded


def refund_note(document, amount_cents: int, reason: str | None) -> str:
    return f"Refund processed: {format_money(amount_cents, document.currency)} - {reason or 'No reason provided'}"


def process_refund(
    document,
    amount_cents,
    reason: str | None = None,
    method: str | None = None,
    actor: str | None = None,
) -> RefundResult:
    """
    Refund part or all of an order's or booking's payment.

    Eligibility is checked before the amount. The whole change (refund
    record, payment totals, status and timeline entry) commits under a row
    lock, retried on transient conflicts. The refund confirmation is sent
    best-effort after commit.

    Raises:
        RefundNotAllowed: document status or payment status not eligible
        InvalidRefundAmount: amount not positive, nothing left, or over the remainder
    """
    amount_cents = coerce_int(amount_cents, "amount_cents")
    reason = clean_text(reason)
    model, document_id = type(document), document.id

    def _op():
        locked = lock_document(model, document_id)
        if not _status_eligible(locked):
            raise RefundNotAllowed(
                f"{model.__name__} is not eligible for refund",
                {"status": locked.status, "payment_status": locked.payment_status},
            )

        refund, fully_refunded = record_refund(locked, amount_cents, reason, method, actor)
        new_status = "refunded" if fully_refunded else "partially_refunded"
        locked.status = new_status
        append_timeline(locked, new_status, refund_note(locked, amount_cents, reason), actor)
        return locked, refund, fully_refunded

    locked, refund, fully_refunded = run_transaction_with_retry(_op)

    current_app.logger.info(
        "Refund of %s recorded on %s %s", amount_cents, model.__name__.lower(), document_id
    )
    get_notifier().dispatch("refund_confirmation", locked, refund)
    return RefundResult(
        document=locked,
        refund=refund,
        remaining_cents=remaining_refundable(locked),
        fully_refunded=fully_refunded,
    )

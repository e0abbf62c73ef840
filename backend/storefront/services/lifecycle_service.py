# Overview: Status and payment state machine for orders and bookings.

"""
Status changes are deliberately permissive: any member of the status set
may follow any other. The guards that matter (cancellation and refund
eligibility) are enforced by cancel_* and the refund calculator.

Every status change appends exactly one timeline entry whose status is
the new status. Payment-only changes do not touch the timeline unless
they auto-confirm an order.
"""

from __future__ import annotations

from flask import current_app

from ..errors import OrderNotCancellable, ValidationError
from ..models import Booking, Order
from ..time_utils import utcnow
from ..validation import clean_text, coerce_cents
from .concurrency import run_transaction_with_retry
from .document_service import append_timeline, lock_document
from .inventory_service import restore_stock
from .notification_service import get_notifier
from .pricing_service import format_money
from .refund_service import record_refund


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "partially_refunded",
    "refunded",
)

BOOKING_STATUSES = (
    "pending",
    "confirmed",
    "completed",
    "cancelled",
    "no_show",
    "partially_refunded",
    "refunded",
)

PAYMENT_STATUSES = (
    "pending",
    "processing",
    "completed",
    "failed",
    "cancelled",
    "partially_refunded",
    "refunded",
)

CANCELLABLE_STATUSES = {"pending", "confirmed"}

AUTO_CONFIRM_NOTE = "Payment confirmed - order confirmed automatically"


def allowed_statuses(document) -> tuple[str, ...]:
    return BOOKING_STATUSES if isinstance(document, Booking) else ORDER_STATUSES


def _label(document) -> str:
    return "Booking" if isinstance(document, Booking) else "Order"


def can_be_cancelled(document) -> bool:
    return document.status in CANCELLABLE_STATUSES


def _notify_status_change(document, previous_status: str) -> None:
    event = "booking_status_update" if isinstance(document, Booking) else "order_status_update"
    get_notifier().dispatch(event, document, previous_status)


# =============================================================================
# STATUS
# =============================================================================

def update_status(
    document,
    new_status: str,
    note: str | None = None,
    actor: str | None = None,
    notify_customer: bool = True,
):
    """
    Set the status of an order or booking and append a timeline entry.

    Args:
        document: Order or Booking
        new_status: Member of the document's status set
        note: Timeline note (default "Status updated to {status}")
        actor: Label recorded as updated_by
        notify_customer: Send the status-update notification when the
            status actually changed

    Returns:
        The refreshed document

    Raises:
        ValidationError: status not in the document's status set
    """
    new_status = (new_status or "").strip().lower()
    if new_status not in allowed_statuses(document):
        raise ValidationError(
            f"Invalid {_label(document).lower()} status",
            {"allowed": list(allowed_statuses(document)), "received": new_status},
        )
    note = clean_text(note) or f"Status updated to {new_status}"
    model, document_id = type(document), document.id

    def _op():
        locked = lock_document(model, document_id)
        previous = locked.status
        locked.status = new_status
        append_timeline(locked, new_status, note, actor)
        return locked, previous

    locked, previous = run_transaction_with_retry(_op)

    if notify_customer and previous != new_status:
        _notify_status_change(locked, previous)
    return locked


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_order(
    order: Order,
    reason: str | None = None,
    refund_amount_cents=None,
    actor: str | None = None,
    notify_customer: bool = True,
) -> Order:
    """
    Cancel a pending or confirmed order.

    In one unit of work: restore the stock taken at checkout, set the
    status to cancelled, and, when a refund amount is given and the payment
    is completed, record that refund against the payment. The order itself
    stays "cancelled"; only the payment status reflects the refund.

    Raises:
        OrderNotCancellable: order is past the confirmed stage
        InvalidRefundAmount: refund exceeds what was paid
    """
    reason = clean_text(reason)
    refund_amount = coerce_cents(refund_amount_cents, "refund_amount_cents", default=None)
    order_id = order.id

    def _op():
        locked = lock_document(Order, order_id)
        if not can_be_cancelled(locked):
            raise OrderNotCancellable(
                "Order cannot be cancelled in its current status",
                {"status": locked.status},
            )

        previous = locked.status
        restore_stock(locked)

        note = f"Order cancelled: {reason or 'No reason provided'}"
        refund = None
        if refund_amount and locked.payment_status == "completed":
            refund, _ = record_refund(locked, refund_amount, reason, actor=actor)
            note = f"{note} (refund of {format_money(refund_amount, locked.currency)} issued)"

        locked.status = "cancelled"
        append_timeline(locked, "cancelled", note, actor)
        return locked, refund, previous

    locked, refund, previous = run_transaction_with_retry(_op)
    current_app.logger.info("Order %s cancelled (was %s)", locked.order_number, previous)

    if notify_customer:
        notifier = get_notifier()
        notifier.dispatch("order_cancellation", locked, reason)
        if refund is not None:
            notifier.dispatch("refund_confirmation", locked, refund)
    return locked


def cancel_booking(
    booking: Booking,
    reason: str | None = None,
    actor: str | None = None,
    notify_customer: bool = True,
) -> Booking:
    """
    Cancel a pending or confirmed booking.

    Raises:
        OrderNotCancellable: booking is past the confirmed stage
    """
    reason = clean_text(reason)
    booking_id = booking.id

    def _op():
        locked = lock_document(Booking, booking_id)
        if not can_be_cancelled(locked):
            raise OrderNotCancellable(
                "Booking cannot be cancelled in its current status",
                {"status": locked.status},
            )
        previous = locked.status
        locked.status = "cancelled"
        append_timeline(locked, "cancelled", f"Booking cancelled: {reason or 'No reason provided'}", actor)
        return locked, previous

    locked, previous = run_transaction_with_retry(_op)

    if notify_customer:
        _notify_status_change(locked, previous)
    return locked


# =============================================================================
# PAYMENT
# =============================================================================

def update_payment_status(
    document,
    payment_status: str,
    transaction_id: str | None = None,
    gateway_response: dict | None = None,
    note: str | None = None,
    actor: str | None = None,
):
    """
    Move the payment sub-document to ``payment_status``.

    "completed" stamps processed_at. For orders, completing the payment of
    a pending order also confirms it (one timeline entry).

    Raises:
        ValidationError: unknown payment status or malformed gateway response
    """
    payment_status = (payment_status or "").strip().lower()
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            "Invalid payment status",
            {"allowed": list(PAYMENT_STATUSES), "received": payment_status},
        )
    if gateway_response is not None and not isinstance(gateway_response, dict):
        raise ValidationError("gateway_response must be an object")

    model, document_id = type(document), document.id
    transaction_id = clean_text(transaction_id)

    def _op():
        locked = lock_document(model, document_id)
        previous = locked.status
        locked.payment_status = payment_status
        if transaction_id:
            locked.payment_transaction_id = transaction_id
        if gateway_response:
            locked.payment_gateway_response = gateway_response

        if payment_status == "completed":
            locked.payment_processed_at = utcnow()
            if model is Order and locked.status == "pending":
                locked.status = "confirmed"
                append_timeline(locked, "confirmed", clean_text(note) or AUTO_CONFIRM_NOTE, actor)
        return locked, previous

    locked, previous = run_transaction_with_retry(_op)

    if locked.status != previous:
        _notify_status_change(locked, previous)
    return locked


# =============================================================================
# NOTES
# =============================================================================

def add_note(document, note: str, internal: bool = False):
    """
    Append to the customer-facing or internal notes.

    Existing text is kept; the new note follows a blank line.
    """
    note = clean_text(note)
    if not note:
        raise ValidationError("Note is required", {"field": "note"})
    model, document_id = type(document), document.id

    def _op():
        locked = lock_document(model, document_id)
        attr = "internal_note" if internal else "customer_note"
        existing = getattr(locked, attr)
        setattr(locked, attr, f"{existing}\n\n{note}" if existing else note)
        return locked

    return run_transaction_with_retry(_op)


# =============================================================================
# PAYMENT PROOF
# =============================================================================

def attach_payment_proof(document, proof_url: str):
    """Record the stored payment proof on a saved order or booking."""
    model, document_id = type(document), document.id

    def _op():
        locked = lock_document(model, document_id)
        locked.payment_proof_url = proof_url
        return locked

    return run_transaction_with_retry(_op)

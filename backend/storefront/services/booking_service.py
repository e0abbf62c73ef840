# Overview: Booking creation (transactional and sequential builders), booking queries and summary.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from flask import current_app

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Booking, BookingSlot, Store, TimelineEntry
from ..models.bookings import BOOKING_METADATA_KEYS
from ..time_utils import format_long_date, to_utc_z
from ..validation import clean_text, coerce_cents, coerce_int, coerce_positive_int, validate_metadata
from .concurrency import (
    WRITE_MODE_SEQUENTIAL,
    commit_step,
    is_transient_error,
    run_transaction_with_retry,
)
from .customer_service import resolve_customer
from .document_service import generate_invoice_token, next_booking_number
from .listing import list_documents
from .notification_service import get_notifier
from .order_service import CustomerInput, DEFAULT_ACTOR, ORDER_SOURCES, DEFAULT_SOURCE, parse_customer, parse_discount
from .pricing_service import PricingBreakdown, reconcile_booking_pricing
from .tenant_service import require_document_in_business


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass
class BookingRequest:
    customer: CustomerInput
    slot_id: int
    start_date: date
    end_date: date
    start_time: str | None = None
    end_time: str | None = None
    quantity: int = 1
    metadata: dict = field(default_factory=dict)
    payment_method: str | None = None
    discount_detail: dict | None = None
    discount_cents: int = 0
    client_subtotal: int | None = None
    client_total: int | None = None
    customer_note: str | None = None
    source: str = DEFAULT_SOURCE
    is_guest: bool = False


def _parse_date(value, field_name: str) -> date:
    text = clean_text(value)
    if not text:
        raise ValidationError(f"{field_name} is required", {"field": field_name})
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"{field_name} must be a YYYY-MM-DD date", {"field": field_name})


def parse_booking_request(data: dict, *, authenticated: bool = False) -> BookingRequest:
    """
    Validate a booking payload.

    Raises:
        ValidationError: missing customer fields, slot or dates; end before start
    """
    if not isinstance(data, dict):
        raise ValidationError("Booking data must be an object")

    customer = parse_customer(data.get("customer"))

    if data.get("slot_id") in (None, ""):
        raise ValidationError("slot_id is required", {"field": "slot_id"})
    slot_id = coerce_int(data.get("slot_id"), "slot_id")

    start = _parse_date(data.get("start_date"), "start_date")
    end = _parse_date(data.get("end_date"), "end_date")
    if end < start:
        raise ValidationError("end_date cannot be before start_date")

    quantity = data.get("quantity")
    quantity = 1 if quantity in (None, "") else coerce_positive_int(quantity, "quantity")

    payment = data.get("payment") or {}
    if not isinstance(payment, dict):
        raise ValidationError("payment must be an object")

    discount_detail, discount_cents = parse_discount(data.get("discount"))

    source = (clean_text(data.get("source")) or ("admin" if authenticated else DEFAULT_SOURCE)).lower()
    if source not in ORDER_SOURCES:
        raise ValidationError("Invalid booking source", {"allowed": sorted(ORDER_SOURCES)})

    return BookingRequest(
        customer=customer,
        slot_id=slot_id,
        start_date=start,
        end_date=end,
        start_time=clean_text(data.get("start_time")),
        end_time=clean_text(data.get("end_time")),
        quantity=quantity,
        metadata=validate_metadata(data.get("metadata"), BOOKING_METADATA_KEYS, "metadata"),
        payment_method=clean_text(payment.get("method")),
        discount_detail=discount_detail,
        discount_cents=discount_cents,
        client_subtotal=coerce_cents(data.get("subtotal_cents"), "subtotal_cents", default=None),
        client_total=coerce_cents(data.get("total_cents"), "total_cents", default=None),
        customer_note=clean_text(data.get("notes")),
        source=source,
        is_guest=bool(data.get("is_guest_order", not authenticated)),
    )


def is_date_available(availability: dict | None, day: date) -> bool:
    """
    Check a slot's static availability configuration for ``day``.

    "always" (or no configuration) allows every day; "scheduled" needs an
    available entry for the weekday; "custom" needs an available entry for
    the exact date.
    """
    availability = availability or {}
    kind = (availability.get("type") or "always").lower()

    if kind == "always":
        return True

    if kind == "scheduled":
        weekday = WEEKDAYS[day.weekday()]
        for entry in availability.get("schedule") or []:
            if str(entry.get("day", "")).strip().lower() == weekday:
                return bool(entry.get("available", True))
        return False

    if kind == "custom":
        wanted = day.isoformat()
        for entry in availability.get("custom_dates") or []:
            if str(entry.get("date", ""))[:10] == wanted:
                return bool(entry.get("available", True))
        return False

    return False


class BookingBuilder:
    """Steps shared by the transactional and sequential booking builders."""
    mode: str = ""

    def create_booking(
        self,
        store: Store,
        data: dict,
        payment_proof_url: str | None = None,
        actor: str | None = None,
    ) -> Booking:
        """
        Create a booking for ``store``.

        Raises:
            ValidationError: bad payload, bookings disabled, slot inactive,
                quantity over capacity or date unavailable
            NotFoundError: unknown slot
            AccessDeniedError: slot belongs to another store
            InvalidPricing, CustomerResolutionError
        """
        booking_request = parse_booking_request(data, authenticated=actor is not None)
        if not store.booking_enabled:
            raise ValidationError("Bookings are not enabled for this store")

        booking = self._persist(store, booking_request, payment_proof_url, actor)

        current_app.logger.info(
            "Booking %s created for store %s (%s)", booking.booking_number, booking.store_id, self.mode
        )
        get_notifier().dispatch("booking_confirmation", booking)
        return booking

    def _persist(self, store: Store, booking_request: BookingRequest, payment_proof_url, actor) -> Booking:
        raise NotImplementedError

    def _load_slot(self, store: Store, booking_request: BookingRequest) -> BookingSlot:
        slot = db.session.get(BookingSlot, booking_request.slot_id)
        if slot is None:
            raise NotFoundError("Booking slot not found", {"slot_id": booking_request.slot_id})
        if slot.store_id != store.id:
            raise AccessDeniedError("Booking slot does not belong to this store")
        if slot.status != "active":
            raise ValidationError("Booking slot is not available")
        if booking_request.quantity > slot.capacity:
            raise ValidationError(
                "Requested quantity exceeds slot capacity",
                {"quantity": booking_request.quantity, "capacity": slot.capacity},
            )
        if not is_date_available(slot.availability, booking_request.start_date):
            raise ValidationError(
                "Booking slot is not available on the requested date",
                {"start_date": booking_request.start_date.isoformat()},
            )
        return slot

    def _price(self, slot: BookingSlot, booking_request: BookingRequest) -> PricingBreakdown:
        return reconcile_booking_pricing(
            slot.price_cents,
            discount_cents=booking_request.discount_cents,
            client_subtotal=booking_request.client_subtotal,
            client_total=booking_request.client_total,
        )

    def _resolve_customer(self, store: Store, booking_request: BookingRequest):
        customer = booking_request.customer
        return resolve_customer(
            store.business_id,
            customer.email,
            customer.name,
            customer.phone,
            customer.address,
            is_guest=booking_request.is_guest,
        )

    def _build_booking(
        self,
        store: Store,
        slot: BookingSlot,
        booking_request: BookingRequest,
        customer_id: int | None,
        pricing: PricingBreakdown,
        booking_number: str,
        payment_proof_url: str | None,
        actor: str | None,
    ) -> Booking:
        customer = booking_request.customer
        booking = Booking(
            business_id=store.business_id,
            store_id=store.id,
            customer_id=customer_id,
            slot_id=slot.id,
            booking_number=booking_number,
            invoice_token=generate_invoice_token(),
            slot_name=slot.name,
            slot_description=slot.description,
            slot_images=list(slot.images or []),
            slot_type=slot.booking_type,
            slot_price_cents=slot.price_cents,
            slot_duration=slot.duration,
            slot_capacity=slot.capacity,
            customer_email=customer.email,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_address=customer.address,
            is_guest_order=booking_request.is_guest,
            start_date=booking_request.start_date,
            end_date=booking_request.end_date,
            start_time=booking_request.start_time,
            end_time=booking_request.end_time,
            quantity=booking_request.quantity,
            meta=dict(booking_request.metadata),
            subtotal_cents=pricing.subtotal_cents,
            tax_cents=pricing.tax_cents,
            discount_cents=pricing.discount_cents,
            total_cents=pricing.total_cents,
            currency=store.currency,
            discount_detail=booking_request.discount_detail,
            status="pending",
            payment_method=booking_request.payment_method,
            payment_status="pending",
            payment_amount_cents=pricing.total_cents,
            payment_refunded_cents=0,
            payment_currency=store.currency,
            payment_proof_url=payment_proof_url,
            customer_note=booking_request.customer_note,
            source=booking_request.source,
        )
        booking.timeline = [
            TimelineEntry(status="pending", note="Booking created", updated_by=actor or DEFAULT_ACTOR),
        ]
        return booking


class TransactionalBookingBuilder(BookingBuilder):
    mode = "transactional"

    def __init__(self, fallback: BookingBuilder | None = None):
        self.fallback = fallback or SequentialBookingBuilder()

    def _write_all(self, store: Store, booking_request: BookingRequest, payment_proof_url, actor) -> Booking:
        slot = self._load_slot(store, booking_request)
        pricing = self._price(slot, booking_request)
        customer = self._resolve_customer(store, booking_request)
        db.session.flush()

        booking = self._build_booking(
            store, slot, booking_request, customer.id, pricing,
            next_booking_number(store), payment_proof_url, actor,
        )
        db.session.add(booking)
        return booking

    def _persist(self, store: Store, booking_request: BookingRequest, payment_proof_url, actor) -> Booking:
        try:
            return run_transaction_with_retry(
                lambda: self._write_all(store, booking_request, payment_proof_url, actor)
            )
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            current_app.logger.warning(
                "Transactional booking write failed after retries (%s); falling back to sequential writes",
                exc,
            )
            return self.fallback._persist(store, booking_request, payment_proof_url, actor)


class SequentialBookingBuilder(BookingBuilder):
    mode = WRITE_MODE_SEQUENTIAL

    def _persist(self, store: Store, booking_request: BookingRequest, payment_proof_url, actor) -> Booking:
        slot = self._load_slot(store, booking_request)
        pricing = self._price(slot, booking_request)
        customer = commit_step(lambda: self._resolve_customer(store, booking_request))
        customer_id = customer.id
        booking_number = commit_step(lambda: next_booking_number(store))

        def _insert() -> Booking:
            booking = self._build_booking(
                store, slot, booking_request, customer_id, pricing,
                booking_number, payment_proof_url, actor,
            )
            db.session.add(booking)
            return booking

        return commit_step(_insert)


def build_booking_builder(mode: str) -> BookingBuilder:
    if mode == WRITE_MODE_SEQUENTIAL:
        return SequentialBookingBuilder()
    return TransactionalBookingBuilder(fallback=SequentialBookingBuilder())


def get_booking_builder() -> BookingBuilder:
    return current_app.extensions["booking_builder"]


# =============================================================================
# QUERIES
# =============================================================================

def get_booking(business_id: int, booking_id: int) -> Booking:
    return require_document_in_business(db.session.get(Booking, booking_id), business_id, "Booking")


def list_bookings(business_id: int, **filters) -> dict:
    return list_documents(Booking, business_id=business_id, number_column=Booking.booking_number, **filters)


def _format_date_time(day: date | None, time_text: str | None) -> str:
    formatted = format_long_date(day)
    if formatted and time_text:
        return f"{formatted} at {time_text}"
    return formatted


def booking_summary(booking_id: int) -> dict:
    """Public confirmation-page view of a booking."""
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    return {
        "id": booking.id,
        "booking_number": booking.booking_number,
        "status": booking.status,
        "created_at": to_utc_z(booking.created_at),
        "customer": {
            "name": booking.customer_name or "",
            "email": booking.customer_email or "",
            "phone": booking.customer_phone or "",
            "address": booking.customer_address or "",
        },
        "slot": {
            "name": booking.slot_name,
            "description": booking.slot_description or "",
            "booking_type": booking.slot_type,
            "duration": booking.slot_duration,
            "capacity": booking.slot_capacity or 1,
            "images": list(booking.slot_images or []),
        },
        "schedule": {
            "start_date": format_long_date(booking.start_date),
            "end_date": format_long_date(booking.end_date),
            "start_date_time": _format_date_time(booking.start_date, booking.start_time),
            "end_date_time": _format_date_time(booking.end_date, booking.end_time),
            "start_time": booking.start_time or "",
            "end_time": booking.end_time or "",
            "quantity": booking.quantity or 1,
        },
        "pricing": {
            "subtotal_cents": booking.subtotal_cents,
            "tax_cents": booking.tax_cents,
            "discount_cents": booking.discount_cents,
            "total_cents": booking.total_cents,
            "currency": booking.currency,
        },
        "payment": {
            "method": booking.payment_method or "",
            "status": booking.payment_status,
            "amount_cents": booking.payment_amount_cents,
        },
        "notes": booking.customer_note or "",
    }

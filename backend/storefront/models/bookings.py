from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z
from .mixins import CommerceDocumentMixin


# Known booking metadata keys and their value types; other keys pass through.
BOOKING_METADATA_KEYS = {
    "guests": int,
    "pickup_location": str,
    "dropoff_location": str,
    "service_address": str,
    "special_requests": str,
}


class Booking(CommerceDocumentMixin, db.Model):
    """
    Reservation of a booking slot.

    The slot is frozen into the booking at creation time so later catalog
    edits never change what the customer booked. Pricing has no shipping
    component: total = subtotal + tax - discount, tax is always 0.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        db.UniqueConstraint("booking_number", name="uq_bookings_booking_number"),
        db.Index("ix_bookings_business_status_created", "business_id", "status", "created_at"),
        db.Index("ix_bookings_slot_start", "slot_id", "start_date"),
        db.CheckConstraint("payment_refunded_cents <= payment_amount_cents", name="ck_bookings_refund_within_payment"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("booking_slots.id"), nullable=False)

    # e.g. "BKA1B26100001"
    booking_number = db.Column(db.String(32), nullable=False)

    # Frozen slot snapshot
    slot_name = db.Column(db.String(255), nullable=False)
    slot_description = db.Column(db.Text, nullable=True)
    slot_images = db.Column(db.JSON, nullable=False, default=list)
    slot_type = db.Column(db.String(32), nullable=False)
    slot_price_cents = db.Column(db.Integer, nullable=False)
    slot_duration = db.Column(db.String(64), nullable=False)
    slot_capacity = db.Column(db.Integer, nullable=False)

    # Booking details
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.String(8), nullable=True)
    end_time = db.Column(db.String(8), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("bookings", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("bookings", lazy=True))
    slot = db.relationship("BookingSlot", backref=db.backref("bookings", lazy=True))
    timeline = db.relationship(
        "TimelineEntry",
        primaryjoin="Booking.id == TimelineEntry.booking_id",
        lazy=True,
        order_by="TimelineEntry.id",
        cascade="all, delete-orphan",
    )
    refunds = db.relationship(
        "RefundRecord",
        primaryjoin="Booking.id == RefundRecord.booking_id",
        lazy=True,
        order_by="RefundRecord.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def slot_to_dict(self) -> dict:
        return {
            "id": self.slot_id,
            "name": self.slot_name,
            "description": self.slot_description,
            "images": list(self.slot_images or []),
            "booking_type": self.slot_type,
            "price_cents": self.slot_price_cents,
            "duration": self.slot_duration,
            "capacity": self.slot_capacity,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "store_id": self.store_id,
            "booking_number": self.booking_number,
            "invoice_token": self.invoice_token,
            "slot": self.slot_to_dict(),
            "customer": self.customer_to_dict(),
            "is_guest_order": self.is_guest_order,
            "details": {
                "start_date": self.start_date.isoformat() if self.start_date else None,
                "end_date": self.end_date.isoformat() if self.end_date else None,
                "start_time": self.start_time,
                "end_time": self.end_time,
                "quantity": self.quantity,
                "metadata": dict(self.meta or {}),
            },
            "pricing": {
                "subtotal_cents": self.subtotal_cents,
                "tax_cents": self.tax_cents,
                "discount_cents": self.discount_cents,
                "total_cents": self.total_cents,
                "currency": self.currency,
            },
            "discount": self.discount_detail,
            "status": self.status,
            "payment": self.payment_to_dict(),
            "notes": self.notes_to_dict(),
            "source": self.source,
            "refunds": [r.to_dict() for r in self.refunds],
            "timeline": [t.to_dict() for t in self.timeline],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

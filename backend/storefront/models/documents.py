from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class TimelineEntry(db.Model):
    """
    Append-only status history for an order or a booking.

    Exactly one of order_id / booking_id is set. The newest entry always
    carries the owning document's current status.
    """
    __tablename__ = "timeline_entries"
    __table_args__ = (
        db.CheckConstraint(
            "(order_id IS NULL AND booking_id IS NOT NULL) OR (order_id IS NOT NULL AND booking_id IS NULL)",
            name="ck_timeline_entries_single_owner",
        ),
        db.Index("ix_timeline_entries_order", "order_id", "id"),
        db.Index("ix_timeline_entries_booking", "booking_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True)

    status = db.Column(db.String(32), nullable=False)
    note = db.Column(db.Text, nullable=True)
    updated_by = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "note": self.note,
            "updated_by": self.updated_by,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class RefundRecord(db.Model):
    """Refund issued against an order's or booking's payment (amounts in cents)."""
    __tablename__ = "refund_records"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_refund_records_amount_positive"),
        db.CheckConstraint(
            "(order_id IS NULL AND booking_id IS NOT NULL) OR (order_id IS NOT NULL AND booking_id IS NULL)",
            name="ck_refund_records_single_owner",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    method = db.Column(db.String(32), nullable=False, default="original")
    processed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    processed_by = db.Column(db.String(255), nullable=True)
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "method": self.method,
            "processed_at": to_utc_z(self.processed_at),
            "processed_by": self.processed_by,
            "metadata": dict(self.meta or {}),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-store, per-month document sequences.

    Order and booking numbers restart every month, so the sequence key
    includes the YYMM period.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", "period", name="uq_doc_sequences_store_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    period = db.Column(db.String(4), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "document_type": self.document_type,
            "period": self.period,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }

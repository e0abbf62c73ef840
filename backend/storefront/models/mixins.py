from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class CommerceDocumentMixin:
    """
    Columns shared by orders and bookings.

    Both documents carry a frozen customer snapshot, a pricing block, an
    embedded payment sub-document and customer/internal notes. Tenant
    foreign keys, version_id and relationships are declared on the concrete
    classes.
    """

    invoice_token = db.Column(db.String(32), nullable=False, index=True)

    # Customer snapshot at checkout time
    customer_email = db.Column(db.String(255), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    customer_address = db.Column(db.Text, nullable=True)
    is_guest_order = db.Column(db.Boolean, nullable=False, default=False)

    # Pricing (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="NGN")
    discount_detail = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    # Payment sub-document
    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(32), nullable=False, default="pending")
    payment_amount_cents = db.Column(db.Integer, nullable=False)
    payment_refunded_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_currency = db.Column(db.String(8), nullable=False, default="NGN")
    payment_transaction_id = db.Column(db.String(255), nullable=True)
    payment_gateway_response = db.Column(db.JSON, nullable=True)
    payment_proof_url = db.Column(db.String(1024), nullable=True)
    payment_processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer_note = db.Column(db.Text, nullable=True)
    internal_note = db.Column(db.Text, nullable=True)
    source = db.Column(db.String(16), nullable=False, default="storefront")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def latest_timeline_entry(self):
        return self.timeline[-1] if self.timeline else None

    def customer_to_dict(self) -> dict:
        return {
            "id": self.customer_id,
            "email": self.customer_email,
            "name": self.customer_name,
            "phone": self.customer_phone,
            "address": self.customer_address,
        }

    def payment_to_dict(self) -> dict:
        return {
            "method": self.payment_method,
            "status": self.payment_status,
            "amount_cents": self.payment_amount_cents,
            "refunded_cents": self.payment_refunded_cents,
            "currency": self.payment_currency,
            "transaction_id": self.payment_transaction_id,
            "gateway_response": self.payment_gateway_response,
            "proof_url": self.payment_proof_url,
            "processed_at": to_utc_z(self.payment_processed_at) if self.payment_processed_at else None,
        }

    def notes_to_dict(self) -> dict:
        return {
            "customer": self.customer_note,
            "internal": self.internal_note,
        }

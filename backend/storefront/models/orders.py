from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z
from .mixins import CommerceDocumentMixin


class Order(CommerceDocumentMixin, db.Model):
    """
    Customer order placed against a store.

    INVARIANTS (maintained by the order and lifecycle services):
    - total = subtotal + tax + shipping - discount
    - sum(item.total_price_cents) = subtotal
    - payment_refunded_cents = sum(refunds.amount_cents) <= payment_amount_cents
    - the last timeline entry's status equals `status`

    Orders are never hard-deleted; cancellation is a status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_business_status_created", "business_id", "status", "created_at"),
        db.Index("ix_orders_store_created", "store_id", "created_at"),
        db.CheckConstraint("payment_refunded_cents <= payment_amount_cents", name="ck_orders_refund_within_payment"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # e.g. "A1B26100001": store prefix + YYMM + monthly sequence
    order_number = db.Column(db.String(32), nullable=False)

    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_method = db.Column(db.String(16), nullable=False, default="pickup")  # pickup, delivery, shipping
    shipping_address = db.Column(db.JSON, nullable=True)
    delivery_instructions = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("orders", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    timeline = db.relationship(
        "TimelineEntry",
        primaryjoin="Order.id == TimelineEntry.order_id",
        lazy=True,
        order_by="TimelineEntry.id",
        cascade="all, delete-orphan",
    )
    refunds = db.relationship(
        "RefundRecord",
        primaryjoin="Order.id == RefundRecord.order_id",
        lazy=True,
        order_by="RefundRecord.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "store_id": self.store_id,
            "order_number": self.order_number,
            "invoice_token": self.invoice_token,
            "customer": self.customer_to_dict(),
            "is_guest_order": self.is_guest_order,
            "pricing": {
                "subtotal_cents": self.subtotal_cents,
                "tax_cents": self.tax_cents,
                "shipping_cents": self.shipping_cents,
                "discount_cents": self.discount_cents,
                "total_cents": self.total_cents,
                "currency": self.currency,
            },
            "discount": self.discount_detail,
            "shipping": {
                "method": self.shipping_method,
                "cost_cents": self.shipping_cents,
                "address": self.shipping_address,
                "instructions": self.delivery_instructions,
            },
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
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Line of an order with a frozen product/variant snapshot.

    `stock_source` records which counter was decremented at checkout
    ("variant", "product" or NULL when no stock was tracked) so a
    cancellation restores exactly that counter.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_description = db.Column(db.Text, nullable=True)
    product_sku = db.Column(db.String(64), nullable=True)
    product_images = db.Column(db.JSON, nullable=False, default=list)

    # {"name": ..., "sku": ..., "attributes": {...}} or NULL
    variant_snapshot = db.Column(db.JSON, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    options = db.Column(db.JSON, nullable=False, default=dict)

    stock_source = db.Column(db.String(16), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product": {
                "name": self.product_name,
                "description": self.product_description,
                "sku": self.product_sku,
                "images": list(self.product_images or []),
            },
            "variant": self.variant_snapshot,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "options": dict(self.options or {}),
            "stock_source": self.stock_source,
        }

from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product (read-only from the order workflow's point of view).

    STOCK: products with variants track stock per variant; products without
    variants track it in `inventory` here. Counters are only ever changed
    through inventory_service so the "never below zero" rule holds.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("inventory >= 0", name="ck_products_inventory_non_negative"),
        db.Index("ix_products_business_status", "business_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    images = db.Column(db.JSON, nullable=False, default=list)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")
    inventory = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    variants = db.relationship(
        "ProductVariant",
        backref="product",
        lazy=True,
        order_by="ProductVariant.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "images": list(self.images or []),
            "price_cents": self.price_cents,
            "status": self.status,
            "inventory": self.inventory,
            "low_stock_threshold": self.low_stock_threshold,
            "variants": [v.to_dict() for v in self.variants],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """Purchasable variant of a product; the inventory unit for orders."""
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("inventory >= 0", name="ck_product_variants_inventory_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)
    sku = db.Column(db.String(64), nullable=True, index=True)
    options = db.Column(db.JSON, nullable=False, default=dict)

    # NULL means "same as product price"
    price_cents = db.Column(db.Integer, nullable=True)

    inventory = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "options": dict(self.options or {}),
            "price_cents": self.price_cents,
            "inventory": self.inventory,
            "low_stock_threshold": self.low_stock_threshold,
        }


class BookingSlot(db.Model):
    """
    Bookable unit (car, room, appointment) offered by a store.

    AVAILABILITY (JSON):
    - {"type": "always"}
    - {"type": "scheduled", "schedule": [{"day": "Monday", "available": true}, ...]}
    - {"type": "custom", "custom_dates": [{"date": "2026-11-02", "available": true}, ...]}
    """
    __tablename__ = "booking_slots"
    __table_args__ = (
        db.Index("ix_booking_slots_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    images = db.Column(db.JSON, nullable=False, default=list)
    booking_type = db.Column(db.String(32), nullable=False, default="service")

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    duration = db.Column(db.String(64), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=1)
    availability = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(16), nullable=False, default="draft")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("booking_slots", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "images": list(self.images or []),
            "booking_type": self.booking_type,
            "price_cents": self.price_cents,
            "duration": self.duration,
            "capacity": self.capacity,
            "availability": dict(self.availability or {}),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }

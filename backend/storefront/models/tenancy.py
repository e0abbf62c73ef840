from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Business(db.Model):
    """
    Multi-tenant root: every store owner is a Business.

    All stores, products, customers, orders and bookings belong to exactly
    one business. Customers are unique per (business, email).
    """
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Store(db.Model):
    """
    Storefront owned by a business.

    Public checkout resolves the store from the `store-id` or `store-url`
    request header, so `url` is globally unique.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_business_active", "business_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(255), nullable=False, unique=True, index=True)
    code = db.Column(db.String(32), nullable=True)
    currency = db.Column(db.String(8), nullable=False, default="NGN")

    booking_enabled = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business", backref=db.backref("stores", lazy=True))

    @property
    def order_prefix(self) -> str:
        """Last three characters of the store code (or zero-padded id), uppercased."""
        source = self.code or f"{self.id:03d}"
        return source[-3:].upper()

    def __repr__(self) -> str:
        return f"<Store id={self.id} url={self.url!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "url": self.url,
            "code": self.code,
            "currency": self.currency,
            "booking_enabled": self.booking_enabled,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

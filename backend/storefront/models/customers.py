from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


# Known metadata keys and their value types; other keys pass through.
CUSTOMER_METADATA_KEYS = {
    "guest_customer": bool,
    "first_order_date": str,
    "last_guest_order_date": str,
}


class Customer(db.Model):
    """
    Customer master data shared by a business's stores.

    MULTI-TENANT: at most one customer per (business_id, email). The
    unique constraint is what the identity resolver relies on when two
    checkouts race to create the same customer.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("business_id", "email", name="uq_customers_business_email"),
        db.Index("ix_customers_email", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    # Always stored lower-cased and trimmed
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("Business", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_guest(self) -> bool:
        return bool((self.meta or {}).get("guest_customer"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "metadata": dict(self.meta or {}),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

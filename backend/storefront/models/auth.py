from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class StaffApiKey(db.Model):
    """
    Store-scoped bearer credential for staff/admin API calls.

    SECURITY: the token is "<key_prefix>.<secret>"; only the bcrypt hash of
    the secret is stored and the plaintext is shown once, at issue time.
    """
    __tablename__ = "staff_api_keys"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Recorded as the actor on timeline entries and refunds
    label = db.Column(db.String(255), nullable=False)
    key_prefix = db.Column(db.String(16), nullable=False, unique=True, index=True)
    token_hash = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("api_keys", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "label": self.label,
            "key_prefix": self.key_prefix,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at) if self.last_used_at else None,
        }

# Overview: Staff API key issuance and bearer-token validation.

"""
Staff API keys have the form ``<prefix>.<secret>``. The prefix is stored in
clear and used to find the key; only a bcrypt hash of the secret is kept,
so a leaked database does not leak usable credentials.

SECURITY:
- Secrets hashed with bcrypt (cost from API_KEY_BCRYPT_ROUNDS, default 12)
- bcrypt.checkpw() compares in constant time
- The full token is shown once, when the key is issued
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import StaffApiKey, Store
from storefront.time_utils import utcnow


PREFIX_BYTES = 6
SECRET_BYTES = 24


@dataclass
class AuthContext:
    """Store context established by a valid bearer key."""
    store: Store
    business_id: int
    actor: str
    api_key: StaffApiKey


def generate_token() -> tuple[str, str]:
    """Return (prefix, secret)."""
    return secrets.token_hex(PREFIX_BYTES), secrets.token_hex(SECRET_BYTES)


def hash_secret(secret: str) -> str:
    rounds = current_app.config.get("API_KEY_BCRYPT_ROUNDS", 12)
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
    except ValueError:
        return False


def split_token(token: str) -> tuple[str, str] | None:
    prefix, sep, secret = (token or "").strip().partition(".")
    if not sep or not prefix or not secret:
        return None
    return prefix, secret


def issue_api_key(store: Store, label: str) -> tuple[StaffApiKey, str]:
    """
    Create a key for ``store`` and return it with the plaintext token.

    The plaintext is not recoverable afterwards.
    """
    prefix, secret = generate_token()
    key = StaffApiKey(store_id=store.id, label=label, key_prefix=prefix, token_hash=hash_secret(secret))
    db.session.add(key)
    db.session.commit()
    return key, f"{prefix}.{secret}"


def authenticate_api_key(token: str) -> AuthContext | None:
    """Return the context for an active key on an active store, else None."""
    parts = split_token(token)
    if parts is None:
        return None
    prefix, secret = parts

    key = db.session.query(StaffApiKey).filter_by(key_prefix=prefix).first()
    if key is None or not key.is_active or not verify_secret(secret, key.token_hash):
        return None

    store = key.store
    if store is None or not store.is_active:
        return None

    key.last_used_at = utcnow()
    db.session.commit()
    return AuthContext(store=store, business_id=store.business_id, actor=key.label, api_key=key)

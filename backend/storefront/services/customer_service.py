# Overview: Customer identity resolution; find-or-create under concurrent checkouts.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import CustomerResolutionError, ValidationError
from ..extensions import db
from ..models import Customer
from ..models.customers import CUSTOMER_METADATA_KEYS
from ..time_utils import utcnow, to_utc_z
from ..validation import validate_metadata


def normalize_email(email) -> str:
    normalized = (email or "").strip().lower()
    if not normalized or "@" not in normalized:
        raise ValidationError("A valid customer email is required", {"field": "email"})
    return normalized


def _longer(current: str | None, incoming: str | None) -> str | None:
    """Longer value wins; blanks never overwrite."""
    incoming = (incoming or "").strip() or None
    if incoming is None:
        return current
    if current is None or len(incoming) > len(current):
        return incoming
    return current


def _merge_contact(customer: Customer, name, phone, address) -> None:
    customer.name = _longer(customer.name, name)
    customer.phone = _longer(customer.phone, phone)
    customer.address = _longer(customer.address, address)


def _stamp_guest(customer: Customer, *, is_new: bool) -> None:
    meta = validate_metadata(dict(customer.meta or {}), CUSTOMER_METADATA_KEYS, "customer.metadata")
    stamp = to_utc_z(utcnow())
    meta["guest_customer"] = True
    if is_new:
        meta["first_order_date"] = stamp
    else:
        meta["last_guest_order_date"] = stamp
    # Reassign so the JSON column is flagged dirty
    customer.meta = meta


def _find(business_id: int, email: str) -> Customer | None:
    return db.session.query(Customer).filter_by(business_id=business_id, email=email).first()


def _find_any_business(email: str) -> Customer | None:
    return db.session.query(Customer).filter_by(email=email).order_by(Customer.id).first()


def _update_existing(customer: Customer, name, phone, address, is_guest: bool) -> Customer:
    _merge_contact(customer, name, phone, address)
    if is_guest:
        _stamp_guest(customer, is_new=False)
    return customer


def resolve_customer(
    business_id: int,
    email: str,
    name: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    *,
    is_guest: bool = False,
) -> Customer:
    """
    Find or create the customer for (business_id, email).

    Runs inside the caller's transaction. The insert is wrapped in a
    SAVEPOINT: when a concurrent checkout created the same customer first,
    only the savepoint is rolled back and the winner's row is returned.

    Args:
        business_id: Tenant the customer belongs to
        email: Raw email; normalized to lower case
        name, phone, address: Contact details ("longer value wins" on merge)
        is_guest: Stamp guest-checkout metadata

    Returns:
        The single Customer row for (business_id, email)

    Raises:
        ValidationError: email missing or malformed
        CustomerResolutionError: insert conflicted but no row can be found
    """
    email = normalize_email(email)

    existing = _find(business_id, email)
    if existing is not None:
        return _update_existing(existing, name, phone, address, is_guest)

    customer = Customer(
        business_id=business_id,
        email=email,
        name=(name or "").strip() or None,
        phone=(phone or "").strip() or None,
        address=(address or "").strip() or None,
        meta={},
    )
    if is_guest:
        _stamp_guest(customer, is_new=True)

    try:
        with db.session.begin_nested():
            db.session.add(customer)
        return customer
    except IntegrityError:
        current_app.logger.info("Customer %s created concurrently; re-reading", email)

    existing = _find(business_id, email)
    if existing is not None:
        return _update_existing(existing, name, phone, address, is_guest)

    # Only reachable when the unique index on email is not tenant-scoped
    # (legacy schema). The row is moved to this business.
    stray = _find_any_business(email)
    if stray is not None:
        current_app.logger.warning(
            "Reassigning customer %s from business %s to business %s",
            stray.id, stray.business_id, business_id,
        )
        stray.business_id = business_id
        return _update_existing(stray, name, phone, address, is_guest)

    raise CustomerResolutionError(
        "Failed to create or find customer",
        {"email": email, "business_id": business_id},
    )

"""
Tenant Service: Store Resolution and Scoping Helpers

Every order and booking belongs to exactly one store, and through it to
one business. Public checkout identifies the store with a request header;
staff calls carry a bearer key that is already bound to a store.

USAGE:
    from storefront.services.tenant_service import resolve_request_store

    store = resolve_request_store(request.headers, getattr(g, "store", None))
"""

from __future__ import annotations

from ..errors import NotFoundError, StoreResolutionError
from ..extensions import db
from ..models import Store


STORE_ID_HEADER = "store-id"
STORE_URL_HEADER = "store-url"


def _normalize_store_url(value: str) -> str:
    url = value.strip().lower()
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            url = url[len(scheme):]
    return url.rstrip("/")


def resolve_request_store(headers, authenticated_store: Store | None = None) -> Store:
    """
    Resolve the store a request operates on.

    Order of precedence: the authenticated store, the `store-id` header,
    the `store-url` header.

    Raises:
        StoreResolutionError: neither an authenticated store nor a header was given
        NotFoundError: the header does not match an active store
    """
    if authenticated_store is not None:
        return authenticated_store

    store_id = (headers.get(STORE_ID_HEADER) or "").strip()
    store_url = (headers.get(STORE_URL_HEADER) or "").strip()

    if not store_id and not store_url:
        raise StoreResolutionError(
            "Store information is required",
            {"headers": [STORE_ID_HEADER, STORE_URL_HEADER]},
        )

    store = None
    if store_id:
        if store_id.isdigit():
            store = db.session.get(Store, int(store_id))
    else:
        store = db.session.query(Store).filter_by(url=_normalize_store_url(store_url)).first()

    if store is None or not store.is_active:
        raise NotFoundError("Store not found")
    return store


def require_document_in_business(document, business_id: int, label: str = "Order"):
    """
    Return ``document`` when it belongs to ``business_id``.

    A missing document and another tenant's document both read as 404 so
    ids cannot be probed across tenants.
    """
    if document is None or document.business_id != business_id:
        raise NotFoundError(f"{label} not found")
    return document

# Overview: Order creation (transactional and sequential builders) and order queries.

"""
Order Builder

Checkout turns a cart into an Order: every line is priced server-side,
stock is taken with a conditional UPDATE, the customer is found or
created, and the order is persisted with a fresh order number, an invoice
token and its first timeline entry.

Two builders share every step and differ only in how the writes are
committed:

- TransactionalOrderBuilder: one unit of work, retried on transient
  conflicts. When the retries are exhausted it hands the request to the
  sequential builder.
- SequentialOrderBuilder: each write commits on its own. Used when the
  database cannot nest transactions. A failure part-way leaves earlier
  writes (typically stock decrements) in place; they are logged.

The builder is chosen once, at application startup (ORDER_WRITE_MODE).
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Order, OrderItem, Product, ProductVariant, Store, TimelineEntry
from ..validation import clean_text, coerce_cents, coerce_int, coerce_positive_int
from .concurrency import (
    WRITE_MODE_SEQUENTIAL,
    commit_step,
    is_transient_error,
    run_transaction_with_retry,
)
from .customer_service import normalize_email, resolve_customer
from .document_service import generate_invoice_token, next_order_number
from .inventory_service import reserve_stock, resolve_variant, unit_price_cents
from .listing import list_documents
from .notification_service import get_notifier
from .pricing_service import PricingBreakdown, reconcile_order_pricing
from .tenant_service import require_document_in_business


# =============================================================================
# CONSTANTS
# =============================================================================

SHIPPING_METHODS = {"pickup", "delivery", "shipping"}
ORDER_SOURCES = {"storefront", "admin", "api", "pos"}
DEFAULT_SOURCE = "storefront"
DEFAULT_ACTOR = "customer"


# =============================================================================
# REQUEST PARSING
# =============================================================================

@dataclass
class CustomerInput:
    email: str
    name: str
    phone: str
    address: str | None = None


@dataclass
class CartLine:
    product_id: int
    quantity: int
    variant_id: str | None = None
    variant_sku: str | None = None
    variant_name: str | None = None
    variant_attributes: dict | None = None
    options: dict = field(default_factory=dict)


@dataclass
class OrderRequest:
    """Validated checkout payload. Client prices are kept only for comparison."""
    customer: CustomerInput
    lines: list[CartLine]
    shipping_method: str = "pickup"
    shipping_cents: int = 0
    shipping_address: dict | None = None
    delivery_instructions: str | None = None
    payment_method: str | None = None
    discount_detail: dict | None = None
    discount_cents: int = 0
    client_subtotal: int | None = None
    client_total: int | None = None
    customer_note: str | None = None
    source: str = DEFAULT_SOURCE
    is_guest: bool = False


def parse_customer(raw) -> CustomerInput:
    if not isinstance(raw, dict):
        raise ValidationError("Customer information is required", {"field": "customer"})

    missing = [name for name in ("email", "name", "phone") if not clean_text(raw.get(name))]
    if missing:
        raise ValidationError(
            "Customer email, name and phone are required",
            {"missing": missing},
        )

    return CustomerInput(
        email=normalize_email(raw.get("email")),
        name=clean_text(raw.get("name")),
        phone=clean_text(raw.get("phone")),
        address=clean_text(raw.get("address")),
    )


def _parse_line(raw, index: int) -> CartLine:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    product_id = raw.get("product_id")
    if product_id in (None, ""):
        raise ValidationError(f"items[{index}].product_id is required")

    attributes = raw.get("variant_attributes")
    if attributes is not None and not isinstance(attributes, dict):
        raise ValidationError(f"items[{index}].variant_attributes must be an object")
    options = raw.get("options") or {}
    if not isinstance(options, dict):
        raise ValidationError(f"items[{index}].options must be an object")

    variant_id = raw.get("variant_id")
    return CartLine(
        product_id=coerce_int(product_id, f"items[{index}].product_id"),
        quantity=coerce_positive_int(raw.get("quantity"), f"items[{index}].quantity"),
        variant_id=str(variant_id).strip() if variant_id not in (None, "") else None,
        variant_sku=clean_text(raw.get("variant_sku")),
        variant_name=clean_text(raw.get("variant_name")),
        variant_attributes=attributes,
        options=options,
    )


def parse_discount(raw) -> tuple[dict | None, int]:
    if raw in (None, {}):
        return None, 0
    if not isinstance(raw, dict):
        raise ValidationError("discount must be an object")
    applied = coerce_cents(raw.get("applied_amount_cents"), "discount.applied_amount_cents")
    detail = {
        "code": clean_text(raw.get("code")),
        "type": clean_text(raw.get("type")),
        "amount": raw.get("amount"),
        "applied_amount_cents": applied,
    }
    return detail, applied


def parse_order_request(data: dict, *, authenticated: bool = False) -> OrderRequest:
    """
    Validate a checkout payload.

    Raises:
        ValidationError: missing customer fields, no items, bad quantities or amounts
    """
    if not isinstance(data, dict):
        raise ValidationError("Order data must be an object")

    customer = parse_customer(data.get("customer"))

    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item", {"field": "items"})
    lines = [_parse_line(raw, index) for index, raw in enumerate(items)]

    delivery = data.get("delivery") or {}
    if not isinstance(delivery, dict):
        raise ValidationError("delivery must be an object")
    method = (clean_text(delivery.get("method")) or "pickup").lower()
    if method not in SHIPPING_METHODS:
        raise ValidationError(
            "Invalid delivery method",
            {"allowed": sorted(SHIPPING_METHODS), "received": method},
        )
    location = delivery.get("location")
    if isinstance(location, str):
        location = {"address": location}
    if location is not None and not isinstance(location, dict):
        raise ValidationError("delivery.location must be an object or string")

    payment = data.get("payment") or {}
    if not isinstance(payment, dict):
        raise ValidationError("payment must be an object")

    discount_detail, discount_cents = parse_discount(data.get("discount"))

    source = (clean_text(data.get("source")) or ("admin" if authenticated else DEFAULT_SOURCE)).lower()
    if source not in ORDER_SOURCES:
        raise ValidationError("Invalid order source", {"allowed": sorted(ORDER_SOURCES)})

    return OrderRequest(
        customer=customer,
        lines=lines,
        shipping_method=method,
        shipping_cents=coerce_cents(delivery.get("fee_cents"), "delivery.fee_cents"),
        shipping_address=location,
        delivery_instructions=clean_text(delivery.get("instructions")),
        payment_method=clean_text(payment.get("method")),
        discount_detail=discount_detail,
        discount_cents=discount_cents,
        client_subtotal=coerce_cents(data.get("subtotal_cents"), "subtotal_cents", default=None),
        client_total=coerce_cents(data.get("total_cents"), "total_cents", default=None),
        customer_note=clean_text(data.get("notes")),
        source=source,
        is_guest=bool(data.get("is_guest_order", not authenticated)),
    )


# =============================================================================
# BUILDERS
# =============================================================================

@dataclass
class PreparedLine:
    """A cart line with its product and variant loaded and priced."""
    product: Product
    variant: ProductVariant | None
    line: CartLine
    unit_price_cents: int

    @property
    def variant_snapshot(self) -> dict | None:
        if self.variant is not None:
            return {
                "name": self.variant.name or self.line.variant_name,
                "sku": self.variant.sku,
                "attributes": dict(self.variant.options or {}) or self.line.variant_attributes or {},
            }
        if self.line.variant_name or self.line.variant_attributes:
            return {
                "name": self.line.variant_name,
                "sku": self.line.variant_sku,
                "attributes": self.line.variant_attributes or {},
            }
        return None


class OrderBuilder:
    """
    Steps shared by both write strategies.

    Subclasses implement ``_persist``; everything before and after it is
    common.
    """
    mode: str = ""

    def create_order(
        self,
        store: Store,
        data: dict,
        payment_proof_url: str | None = None,
        actor: str | None = None,
    ) -> Order:
        """
        Create an order for ``store`` from a checkout payload.

        Returns:
            The persisted Order (status pending, payment pending)

        Raises:
            ValidationError, NotFoundError, InsufficientInventory,
            InvalidPricing, CustomerResolutionError
        """
        order_request = parse_order_request(data, authenticated=actor is not None)
        order = self._persist(store, order_request, payment_proof_url, actor)

        current_app.logger.info(
            "Order %s created for store %s (%s, total %s)",
            order.order_number, order.store_id, self.mode, order.total_cents,
        )
        notifier = get_notifier()
        notifier.dispatch("order_confirmation", order)
        notifier.dispatch("order_notification", order)
        return order

    def _persist(self, store: Store, order_request: OrderRequest, payment_proof_url, actor) -> Order:
        raise NotImplementedError

    # -- shared steps ---------------------------------------------------------

    def _prepare_lines(self, store: Store, order_request: OrderRequest) -> list[PreparedLine]:
        prepared = []
        for line in order_request.lines:
            product = db.session.get(Product, line.product_id)
            if product is None or product.business_id != store.business_id:
                raise NotFoundError(
                    f"Product not found: {line.product_id}",
                    {"product_id": line.product_id},
                )
            variant = resolve_variant(product, line.variant_id, line.variant_sku)
            prepared.append(PreparedLine(
                product=product,
                variant=variant,
                line=line,
                unit_price_cents=unit_price_cents(product, variant),
            ))
        return prepared

    def _price(self, order_request: OrderRequest, prepared: list[PreparedLine]) -> PricingBreakdown:
        return reconcile_order_pricing(
            [(p.unit_price_cents, p.line.quantity) for p in prepared],
            shipping_cents=order_request.shipping_cents,
            discount_cents=order_request.discount_cents,
            client_subtotal=order_request.client_subtotal,
            client_total=order_request.client_total,
        )

    def _reserve_item(self, prepared: PreparedLine) -> OrderItem:
        product, line = prepared.product, prepared.line
        reservation = reserve_stock(product, prepared.variant, line.quantity)
        return OrderItem(
            product_id=product.id,
            variant_id=prepared.variant.id if prepared.variant is not None else None,
            product_name=product.name,
            product_description=product.description,
            product_sku=product.sku,
            product_images=list(product.images or []),
            variant_snapshot=prepared.variant_snapshot,
            quantity=line.quantity,
            unit_price_cents=prepared.unit_price_cents,
            total_price_cents=prepared.unit_price_cents * line.quantity,
            options=dict(line.options or {}),
            stock_source=reservation.source,
        )

    def _resolve_customer(self, store: Store, order_request: OrderRequest):
        customer = order_request.customer
        return resolve_customer(
            store.business_id,
            customer.email,
            customer.name,
            customer.phone,
            customer.address,
            is_guest=order_request.is_guest,
        )

    def _build_order(
        self,
        store: Store,
        order_request: OrderRequest,
        items: list[OrderItem],
        customer_id: int | None,
        pricing: PricingBreakdown,
        order_number: str,
        payment_proof_url: str | None,
        actor: str | None,
    ) -> Order:
        customer = order_request.customer
        order = Order(
            business_id=store.business_id,
            store_id=store.id,
            customer_id=customer_id,
            order_number=order_number,
            invoice_token=generate_invoice_token(),
            customer_email=customer.email,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_address=customer.address,
            is_guest_order=order_request.is_guest,
            subtotal_cents=pricing.subtotal_cents,
            tax_cents=pricing.tax_cents,
            shipping_cents=pricing.shipping_cents,
            discount_cents=pricing.discount_cents,
            total_cents=pricing.total_cents,
            currency=store.currency,
            discount_detail=order_request.discount_detail,
            shipping_method=order_request.shipping_method,
            shipping_address=order_request.shipping_address,
            delivery_instructions=order_request.delivery_instructions,
            status="pending",
            payment_method=order_request.payment_method,
            payment_status="pending",
            payment_amount_cents=pricing.total_cents,
            payment_refunded_cents=0,
            payment_currency=store.currency,
            payment_proof_url=payment_proof_url,
            customer_note=order_request.customer_note,
            source=order_request.source,
        )
        order.items = items
        order.timeline = [
            TimelineEntry(status="pending", note="Order created", updated_by=actor or DEFAULT_ACTOR),
        ]
        return order


class TransactionalOrderBuilder(OrderBuilder):
    """All writes in one unit of work; falls back after exhausting retries."""
    mode = "transactional"

    def __init__(self, fallback: OrderBuilder | None = None):
        self.fallback = fallback or SequentialOrderBuilder()

    def _write_all(self, store: Store, order_request: OrderRequest, payment_proof_url, actor) -> Order:
        prepared = self._prepare_lines(store, order_request)
        pricing = self._price(order_request, prepared)
        items = [self._reserve_item(p) for p in prepared]
        customer = self._resolve_customer(store, order_request)
        db.session.flush()

        order = self._build_order(
            store, order_request, items, customer.id, pricing,
            next_order_number(store), payment_proof_url, actor,
        )
        db.session.add(order)
        return order

    def _persist(self, store: Store, order_request: OrderRequest, payment_proof_url, actor) -> Order:
        try:
            return run_transaction_with_retry(
                lambda: self._write_all(store, order_request, payment_proof_url, actor)
            )
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            current_app.logger.warning(
                "Transactional order write failed after retries (%s); falling back to sequential writes",
                exc,
            )
            return self.fallback._persist(store, order_request, payment_proof_url, actor)


class SequentialOrderBuilder(OrderBuilder):
    """Each write commits independently; no cross-write atomicity."""
    mode = WRITE_MODE_SEQUENTIAL

    def _persist(self, store: Store, order_request: OrderRequest, payment_proof_url, actor) -> Order:
        prepared = self._prepare_lines(store, order_request)
        pricing = self._price(order_request, prepared)

        items: list[OrderItem] = []
        try:
            for line in prepared:
                items.append(commit_step(lambda line=line: self._reserve_item(line)))
            customer = commit_step(lambda: self._resolve_customer(store, order_request))
            customer_id = customer.id
            order_number = commit_step(lambda: next_order_number(store))

            def _insert() -> Order:
                order = self._build_order(
                    store, order_request, items, customer_id, pricing,
                    order_number, payment_proof_url, actor,
                )
                db.session.add(order)
                return order

            return commit_step(_insert)
        except Exception:
            if items:
                current_app.logger.error(
                    "Sequential order write failed after stock was taken: %s",
                    [{"product_id": i.product_id, "variant_id": i.variant_id, "quantity": i.quantity} for i in items],
                )
            raise


def build_order_builder(mode: str) -> OrderBuilder:
    if mode == WRITE_MODE_SEQUENTIAL:
        return SequentialOrderBuilder()
    return TransactionalOrderBuilder(fallback=SequentialOrderBuilder())


def get_order_builder() -> OrderBuilder:
    return current_app.extensions["order_builder"]


# =============================================================================
# QUERIES
# =============================================================================

def get_order(business_id: int, order_id: int) -> Order:
    return require_document_in_business(db.session.get(Order, order_id), business_id, "Order")


def list_orders(business_id: int, **filters) -> dict:
    return list_documents(Order, business_id=business_id, number_column=Order.order_number, **filters)


def get_public_invoice(order_id: int, token: str) -> Order:
    """
    Look up an order by id and invoice token.

    The token must match exactly; any mismatch reads as not found.
    """
    order = db.session.get(Order, order_id)
    if order is None or not token or not secrets.compare_digest(
        order.invoice_token.encode("utf-8"), token.encode("utf-8")
    ):
        raise NotFoundError("Invoice not found")
    return order


def invoice_view(order: Order) -> dict:
    """Order as shown on the public invoice page (internal notes removed)."""
    data = order.to_dict()
    data["notes"] = {"customer": order.customer_note}
    data.pop("invoice_token", None)
    data.pop("version_id", None)
    return data

# Overview: Inventory ledger; variant resolution, stock reservation and restoration.

"""
Stock lives on ProductVariant rows, or on the Product itself when a
product has no variants. Every decrement is a conditional UPDATE
(compare-and-swap) executed in the caller's transaction, so two checkouts
can never both take the last unit.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update

from ..errors import InsufficientInventory
from ..extensions import db
from ..models import Order, Product, ProductVariant


STOCK_SOURCE_VARIANT = "variant"
STOCK_SOURCE_PRODUCT = "product"


@dataclass
class StockReservation:
    """Outcome of a reservation: which counter moved and where it ended up."""
    source: str | None
    remaining: int | None


def resolve_variant(product: Product, variant_id=None, variant_sku: str | None = None) -> ProductVariant | None:
    """
    Find the variant a cart line refers to.

    ``variant_id`` may be an integer id or, when it is not numeric, a SKU.
    SKU matching is case-insensitive after trimming. Products without
    variants always resolve to None.
    """
    variants = list(product.variants or [])
    if not variants:
        return None

    if variant_id is not None and variant_id != "":
        raw = str(variant_id).strip()
        if raw.isdigit():
            wanted = int(raw)
            for variant in variants:
                if variant.id == wanted:
                    return variant
        elif not variant_sku:
            variant_sku = raw

    if variant_sku:
        wanted_sku = str(variant_sku).strip().lower()
        for variant in variants:
            if variant.sku and variant.sku.strip().lower() == wanted_sku:
                return variant

    return None


def unit_price_cents(product: Product, variant: ProductVariant | None) -> int | None:
    """Variant price when set, else the product price."""
    if variant is not None and variant.price_cents is not None:
        return variant.price_cents
    return product.price_cents


def available_stock(product: Product, variant: ProductVariant | None) -> int | None:
    """Tracked stock for the line, or None when nothing is tracked."""
    if variant is not None:
        return variant.inventory
    if not product.variants:
        return product.inventory
    return None


def _conditional_decrement(model, row_id: int, quantity: int) -> int:
    stmt = (
        update(model)
        .where(model.id == row_id, model.inventory >= quantity)
        .values(inventory=model.inventory - quantity)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def _read_inventory(model, row_id: int) -> int:
    return db.session.query(model.inventory).filter(model.id == row_id).scalar()


def _warn_if_low(kind: str, row_id: int, remaining: int, threshold: int) -> None:
    if remaining <= threshold:
        current_app.logger.warning(
            "Low stock: %s %s has %s left (threshold %s)", kind, row_id, remaining, threshold
        )


def reserve_stock(product: Product, variant: ProductVariant | None, quantity: int) -> StockReservation:
    """
    Take ``quantity`` units out of the line's stock counter.

    Raises:
        InsufficientInventory: stock is short, or another checkout took it
            between our read and the conditional UPDATE
    """
    if variant is not None:
        model, row, kind, source = ProductVariant, variant, "variant", STOCK_SOURCE_VARIANT
    elif not product.variants:
        model, row, kind, source = Product, product, "product", STOCK_SOURCE_PRODUCT
    else:
        current_app.logger.warning(
            "No variant matched for product %s; stock not tracked for this line", product.id
        )
        return StockReservation(source=None, remaining=None)

    details = {
        "product_id": product.id,
        "variant_id": variant.id if variant is not None else None,
        "product_name": product.name,
        "requested_quantity": quantity,
        "available": row.inventory,
    }
    if row.inventory < quantity:
        raise InsufficientInventory(f"Insufficient inventory for {product.name}", details)

    if not _conditional_decrement(model, row.id, quantity):
        details["available"] = _read_inventory(model, row.id)
        raise InsufficientInventory(f"Insufficient inventory for {product.name}", details)

    remaining = _read_inventory(model, row.id)
    # Keep the in-session object in step with the row
    db.session.expire(row, ["inventory"])
    _warn_if_low(kind, row.id, remaining, row.low_stock_threshold)
    return StockReservation(source=source, remaining=remaining)


def restore_stock(order: Order) -> list[dict]:
    """
    Put back exactly what checkout took for each item of ``order``.

    Items whose stock was never tracked are skipped. Runs in the caller's
    transaction.
    """
    restored = []
    for item in order.items:
        if item.stock_source == STOCK_SOURCE_VARIANT and item.variant_id is not None:
            model, row_id = ProductVariant, item.variant_id
        elif item.stock_source == STOCK_SOURCE_PRODUCT:
            model, row_id = Product, item.product_id
        else:
            continue

        stmt = (
            update(model)
            .where(model.id == row_id)
            .values(inventory=model.inventory + item.quantity)
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount:
            restored.append({
                "source": item.stock_source,
                "id": row_id,
                "quantity": item.quantity,
            })
        else:
            current_app.logger.warning(
                "Could not restore %s units to missing %s %s", item.quantity, item.stock_source, row_id
            )
    return restored


def low_stock_report(store_id: int) -> list[dict]:
    """Products and variants of a store at or below their low-stock threshold."""
    rows = []
    products = (
        db.session.query(Product)
        .filter(Product.store_id == store_id, Product.status != "archived")
        .order_by(Product.id)
        .all()
    )
    for product in products:
        if product.variants:
            for variant in product.variants:
                if variant.inventory <= variant.low_stock_threshold:
                    rows.append({
                        "product_id": product.id,
                        "variant_id": variant.id,
                        "name": f"{product.name} ({variant.name or variant.sku or variant.id})",
                        "inventory": variant.inventory,
                        "threshold": variant.low_stock_threshold,
                    })
        elif product.inventory <= product.low_stock_threshold:
            rows.append({
                "product_id": product.id,
                "variant_id": None,
                "name": product.name,
                "inventory": product.inventory,
                "threshold": product.low_stock_threshold,
            })
    return rows

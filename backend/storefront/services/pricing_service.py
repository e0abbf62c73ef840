# Overview: Server-side pricing; recomputes totals and reconciles client-submitted figures.

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import InvalidPricing


# =============================================================================
# CONSTANTS
# =============================================================================

TAX_CENTS = 0
DEFAULT_PRICE_TOLERANCE_CENTS = 100


@dataclass
class PricingBreakdown:
    """Authoritative totals, in cents, plus any client figures that disagreed."""
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int
    mismatches: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "shipping_cents": self.shipping_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


def _tolerance() -> int:
    return current_app.config.get("PRICE_TOLERANCE_CENTS", DEFAULT_PRICE_TOLERANCE_CENTS)


def _compare(label: str, client_value, server_value: int, mismatches: list[dict]) -> None:
    if client_value is None:
        return
    if abs(int(client_value) - server_value) > _tolerance():
        mismatches.append({"field": label, "client": int(client_value), "server": server_value})


def _log_mismatches(kind: str, mismatches: list[dict]) -> None:
    for mismatch in mismatches:
        current_app.logger.warning(
            "%s %s mismatch: client=%s server=%s; using server value",
            kind, mismatch["field"], mismatch["client"], mismatch["server"],
        )


def line_total_cents(unit_price_cents, quantity: int) -> int:
    """unit x quantity; the unit price must be a positive whole number of cents."""
    if isinstance(unit_price_cents, bool) or not isinstance(unit_price_cents, int) or unit_price_cents <= 0:
        raise InvalidPricing(
            "Invalid product price",
            {"unit_price_cents": unit_price_cents},
        )
    return unit_price_cents * quantity


def reconcile_order_pricing(
    line_totals: list[tuple[int, int]],
    shipping_cents: int = 0,
    discount_cents: int = 0,
    client_subtotal: int | None = None,
    client_total: int | None = None,
) -> PricingBreakdown:
    """
    Compute order totals from (unit_price_cents, quantity) pairs.

    total = subtotal + tax + shipping - discount, tax is 0. Client figures
    that differ by more than PRICE_TOLERANCE_CENTS are logged; the server
    figures are returned regardless.

    Raises:
        InvalidPricing: a unit price is not positive, or the total is not positive
    """
    subtotal = sum(line_total_cents(unit, qty) for unit, qty in line_totals)
    total = subtotal + TAX_CENTS + shipping_cents - discount_cents
    if total <= 0:
        raise InvalidPricing(
            "Order total must be greater than zero",
            {"subtotal_cents": subtotal, "shipping_cents": shipping_cents, "discount_cents": discount_cents},
        )

    mismatches: list[dict] = []
    _compare("subtotal", client_subtotal, subtotal, mismatches)
    _compare("total", client_total, total, mismatches)
    _log_mismatches("Order", mismatches)

    return PricingBreakdown(
        subtotal_cents=subtotal,
        tax_cents=TAX_CENTS,
        shipping_cents=shipping_cents,
        discount_cents=discount_cents,
        total_cents=total,
        mismatches=mismatches,
    )


def reconcile_booking_pricing(
    subtotal_cents: int,
    discount_cents: int = 0,
    client_subtotal: int | None = None,
    client_total: int | None = None,
) -> PricingBreakdown:
    """
    Booking totals: total = subtotal - discount. Free slots are allowed.

    Raises:
        InvalidPricing: the discount exceeds the subtotal
    """
    total = subtotal_cents + TAX_CENTS - discount_cents
    if total < 0:
        raise InvalidPricing(
            "Booking total cannot be negative",
            {"subtotal_cents": subtotal_cents, "discount_cents": discount_cents},
        )

    mismatches: list[dict] = []
    _compare("subtotal", client_subtotal, subtotal_cents, mismatches)
    _compare("total", client_total, total, mismatches)
    _log_mismatches("Booking", mismatches)

    return PricingBreakdown(
        subtotal_cents=subtotal_cents,
        tax_cents=TAX_CENTS,
        shipping_cents=0,
        discount_cents=discount_cents,
        total_cents=total,
        mismatches=mismatches,
    )


def format_money(amount_cents: int, currency: str = "NGN") -> str:
    """27000 -> 'NGN 270.00'"""
    return f"{currency} {amount_cents / 100:,.2f}"

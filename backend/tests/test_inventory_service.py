# Overview: Pytest coverage for the inventory ledger (variant resolution, reservation, restoration).

"""
Inventory ledger tests.

Stock moves only through conditional UPDATEs; a failed reservation must
leave the counter untouched.
"""

import pytest

from storefront.errors import InsufficientInventory
from storefront.extensions import db
from storefront.models import Product, ProductVariant
from storefront.services.inventory_service import (
    available_stock,
    low_stock_report,
    reserve_stock,
    resolve_variant,
    unit_price_cents,
)


def _variant(product, sku):
    return next(v for v in product.variants if v.sku == sku)


class TestResolveVariant:
    def test_resolves_by_numeric_id(self, variant_product):
        red = _variant(variant_product, "TS-RED-M")
        assert resolve_variant(variant_product, red.id) is red
        assert resolve_variant(variant_product, str(red.id)) is red

    def test_resolves_by_sku_case_insensitive(self, variant_product):
        blue = _variant(variant_product, "TS-BLUE-M")
        assert resolve_variant(variant_product, variant_sku="  ts-blue-m ") is blue

    def test_non_numeric_variant_id_is_treated_as_sku(self, variant_product):
        red = _variant(variant_product, "TS-RED-M")
        assert resolve_variant(variant_product, "ts-red-m") is red

    def test_unknown_variant_resolves_to_none(self, variant_product):
        assert resolve_variant(variant_product, 99999) is None
        assert resolve_variant(variant_product, variant_sku="TS-GREEN") is None

    def test_product_without_variants_resolves_to_none(self, product):
        assert resolve_variant(product, 1, "MUG-001") is None


class TestPricesAndStock:
    def test_variant_price_overrides_product_price(self, variant_product):
        assert unit_price_cents(variant_product, _variant(variant_product, "TS-RED-M")) == 1800

    def test_variant_without_price_inherits_product_price(self, variant_product):
        assert unit_price_cents(variant_product, _variant(variant_product, "TS-BLUE-M")) == 1500

    def test_available_stock(self, product, variant_product):
        assert available_stock(product, None) == 10
        assert available_stock(variant_product, _variant(variant_product, "TS-BLUE-M")) == 3
        # Variant product without a matched variant is untracked
        assert available_stock(variant_product, None) is None


class TestReserveStock:
    def test_reserve_decrements_product_counter(self, db_session, product):
        reservation = reserve_stock(product, None, 3)
        db_session.commit()

        assert reservation.source == "product"
        assert reservation.remaining == 7
        assert db_session.get(Product, product.id).inventory == 7

    def test_reserve_decrements_variant_counter(self, db_session, variant_product):
        red = _variant(variant_product, "TS-RED-M")
        reservation = reserve_stock(variant_product, red, 5)
        db_session.commit()

        assert reservation.source == "variant"
        assert reservation.remaining == 0
        assert db_session.get(ProductVariant, red.id).inventory == 0

    def test_insufficient_stock_raises_and_leaves_counter(self, db_session, product):
        with pytest.raises(InsufficientInventory) as exc_info:
            reserve_stock(product, None, 11)
        db_session.rollback()

        assert exc_info.value.details["available"] == 10
        assert exc_info.value.details["requested_quantity"] == 11
        assert db_session.get(Product, product.id).inventory == 10

    def test_conditional_update_rejects_stale_read(self, db_session, product):
        """Another writer drained the stock after our object was loaded."""
        assert product.inventory == 10
        db.session.execute(
            Product.__table__.update().where(Product.__table__.c.id == product.id).values(inventory=1)
        )

        with pytest.raises(InsufficientInventory) as exc_info:
            reserve_stock(product, None, 2)
        db_session.commit()

        assert exc_info.value.details["available"] == 1
        assert db_session.get(Product, product.id).inventory == 1

    def test_unmatched_variant_is_not_tracked(self, db_session, variant_product):
        reservation = reserve_stock(variant_product, None, 2)
        db_session.commit()

        assert reservation.source is None
        assert sorted(v.inventory for v in variant_product.variants) == [3, 5]


class TestLowStockReport:
    def test_lists_rows_at_or_below_threshold(self, db_session, store, product, variant_product):
        blue = _variant(variant_product, "TS-BLUE-M")
        blue.inventory = 1
        product.inventory = 2
        db_session.commit()

        rows = low_stock_report(store.id)
        names = {row["name"] for row in rows}

        assert "Ceramic Mug" in names
        assert "T-Shirt (Blue / M)" in names
        assert all(row["inventory"] <= row["threshold"] for row in rows)

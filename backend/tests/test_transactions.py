# Overview: Pytest coverage for the unit-of-work, retry and backoff helpers.

"""
Transaction helper tests.

Covers the capped exponential backoff, the retry loop around transient
failures, and the wall-clock budget of a unit of work, including the
order builder falling back to sequential writes once that budget is spent
on every attempt.
"""

import pytest

from storefront.errors import TransientStoreError
from storefront.models import Business, Order, Product
from storefront.services import concurrency
from storefront.services.concurrency import backoff_delay, run_atomic, run_with_retry
from storefront.services.order_service import TransactionalOrderBuilder

from conftest import order_payload


class TestBackoff:
    def test_doubles_then_caps(self):
        assert [backoff_delay(attempt, 1.0, 5.0) for attempt in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_zero_base_never_waits(self):
        assert backoff_delay(6, 0.0, 5.0) == 0.0

    def test_retry_sleeps_between_attempts_only(self, db_session, monkeypatch):
        sleeps = []
        calls = []
        monkeypatch.setattr(concurrency.time, "sleep", sleeps.append)

        def always_conflicting():
            calls.append(1)
            raise TransientStoreError("write conflict")

        with pytest.raises(TransientStoreError):
            run_with_retry(always_conflicting, attempts=4, backoff_base=1.0, backoff_cap=5.0)

        assert len(calls) == 4
        assert sleeps == [1.0, 2.0, 4.0]

    def test_non_transient_error_is_not_retried(self, db_session, monkeypatch):
        sleeps = []
        monkeypatch.setattr(concurrency.time, "sleep", sleeps.append)

        with pytest.raises(ValueError):
            run_with_retry(lambda: int("x"), attempts=3)

        assert sleeps == []


class TestTimeBudget:
    def test_over_budget_rolls_back(self, db_session):
        def create_business():
            business = Business(name="Late Co")
            db_session.add(business)
            return business

        with pytest.raises(TransientStoreError):
            run_atomic(create_business, timeout_seconds=-1)

        assert db_session.query(Business).count() == 0

    def test_within_budget_commits(self, db_session):
        def create_business():
            business = Business(name="Prompt Co")
            db_session.add(business)
            return business

        business = run_atomic(create_business, timeout_seconds=30)

        db_session.expire_all()
        assert db_session.get(Business, business.id).name == "Prompt Co"

    def test_order_falls_back_when_every_attempt_runs_over(self, app, db_session, store, product, monkeypatch):
        monkeypatch.setitem(app.config, "TRANSACTION_TIMEOUT_SECONDS", -1)
        real_write = TransactionalOrderBuilder._write_all
        attempts = []

        def counted_write(self, *args):
            attempts.append(1)
            return real_write(self, *args)

        monkeypatch.setattr(TransactionalOrderBuilder, "_write_all", counted_write)

        order = TransactionalOrderBuilder().create_order(store, order_payload((product.id, 3)))

        assert len(attempts) == app.config["TRANSACTION_MAX_ATTEMPTS"]
        assert order.id is not None
        assert db_session.query(Order).count() == 1
        assert db_session.get(Product, product.id).inventory == 7

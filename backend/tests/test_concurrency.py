# Overview: Pytest coverage for concurrent checkouts against a shared file-backed database.

"""
Concurrency tests.

Parallel checkouts for the last units of a product must never oversell
and must never drive stock negative. Uses a temporary SQLite file so that
each thread gets its own connection.
"""

import threading

import pytest

from storefront import create_app
from storefront.errors import InsufficientInventory, TransientStoreError
from storefront.extensions import db
from storefront.models import Business, Customer, Order, Product, Store
from storefront.services.order_service import SequentialOrderBuilder, TransactionalOrderBuilder
from storefront.services.customer_service import resolve_customer

from conftest import order_payload


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'ORDER_WRITE_MODE': 'auto',
        'TRANSACTION_BACKOFF_BASE': 0.01,
        'TRANSACTION_BACKOFF_CAP': 0.05,
        'TRANSACTION_MAX_ATTEMPTS': 5,
        'API_KEY_BCRYPT_ROUNDS': 4,
        'MEDIA_ROOT': str(tmp_path / 'media'),
    })
    with app.app_context():
        db.create_all()
        business = Business(name="Race Co")
        db.session.add(business)
        db.session.flush()
        store = Store(business_id=business.id, name="Race Store", url="race.sqale.shop", code="RCE")
        db.session.add(store)
        db.session.flush()
        product = Product(
            business_id=business.id, store_id=store.id, name="Limited Print",
            price_cents=1000, inventory=5, images=[],
        )
        db.session.add(product)
        db.session.commit()
        app.config['TEST_IDS'] = {"store": store.id, "product": product.id, "business": business.id}
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


class NoFallback(SequentialOrderBuilder):
    """Surfaces the exhausted transactional write instead of writing step by step."""

    def _persist(self, *args):
        raise TransientStoreError("transactional write exhausted its retries")


def _run_threads(count, target):
    threads = [threading.Thread(target=target, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)


class TestConcurrentCheckout:
    def test_auto_mode_selects_transactional_for_sqlite(self, file_app):
        assert file_app.extensions["order_write_mode"] == "transactional"

    def test_no_oversell_under_parallel_checkouts(self, file_app):
        ids = file_app.config['TEST_IDS']
        builder = TransactionalOrderBuilder(fallback=NoFallback())
        successes = []
        sold_out = []
        errors = []
        lock = threading.Lock()

        def worker(i):
            with file_app.app_context():
                try:
                    store = db.session.get(Store, ids["store"])
                    data = order_payload(
                        (ids["product"], 1),
                        customer={"email": f"buyer{i}@example.com", "name": f"Buyer {i}", "phone": "0800"},
                    )
                    order = builder.create_order(store, data)
                    with lock:
                        successes.append(order.order_number)
                except InsufficientInventory:
                    with lock:
                        sold_out.append(i)
                except Exception as exc:
                    with lock:
                        errors.append(repr(exc))
                finally:
                    db.session.remove()

        _run_threads(8, worker)

        with file_app.app_context():
            stock = db.session.get(Product, ids["product"]).inventory
            orders = db.session.query(Order).count()
            db.session.remove()

        assert len(successes) <= 5
        assert stock >= 0
        assert orders == len(successes)
        assert len(set(successes)) == len(successes)
        # Every unit accounted for: sold through an order or still on the shelf
        assert orders + stock == 5
        assert len(successes) + len(sold_out) + len(errors) == 8

    def test_same_customer_created_once(self, file_app):
        ids = file_app.config['TEST_IDS']
        customer_ids = []
        errors = []
        lock = threading.Lock()

        def worker(i):
            with file_app.app_context():
                try:
                    customer = resolve_customer(ids["business"], "shared@example.com", f"Buyer {i}")
                    db.session.commit()
                    with lock:
                        customer_ids.append(customer.id)
                except Exception as exc:
                    db.session.rollback()
                    with lock:
                        errors.append(repr(exc))
                finally:
                    db.session.remove()

        _run_threads(6, worker)

        with file_app.app_context():
            count = db.session.query(Customer).filter_by(email="shared@example.com").count()
            db.session.remove()

        assert count == 1
        assert len(set(customer_ids)) <= 1

"""
Pytest fixtures for storefront backend tests.

Provides the application, a cleared database per test, tenant/store/catalog
fixtures, staff API key headers and a recording notification dispatcher.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import Business, Store, Product, ProductVariant, BookingSlot
from storefront.services.auth_service import issue_api_key
from storefront.services.notification_service import NotificationDispatcher


class RecordingNotifier(NotificationDispatcher):
    """Dispatcher that remembers every event instead of delivering it."""

    def __init__(self, fail_on=()):
        self.events = []
        self.fail_on = set(fail_on)

    def dispatch(self, event, *args, **kwargs):
        self.events.append(event)
        return super().dispatch(event, *args, **kwargs)

    def _log(self, event, document, **extra):
        if event in self.fail_on:
            raise RuntimeError(f"{event} delivery failed")


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ORDER_WRITE_MODE': 'transactional',
        'TRANSACTION_BACKOFF_BASE': 0.0,
        'TRANSACTION_BACKOFF_CAP': 0.0,
        'API_KEY_BCRYPT_ROUNDS': 4,
        'MEDIA_ROOT': str(tmp_path_factory.mktemp('media')),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifier(app):
    """Swap in a RecordingNotifier for the duration of a test."""
    original = app.extensions['notifier']
    recorder = RecordingNotifier()
    app.extensions['notifier'] = recorder
    yield recorder
    app.extensions['notifier'] = original


@pytest.fixture(scope='function')
def business(db_session):
    """Create Business A (first tenant)."""
    business = Business(name="Acme Ventures")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def other_business(db_session):
    """Create Business B (second tenant)."""
    business = Business(name="Beta Bookings")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def store(db_session, business):
    """Store A, bookings enabled."""
    store = Store(
        business_id=business.id,
        name="Acme Store",
        url="acme.sqale.shop",
        code="ACME-A1B",
        currency="NGN",
        booking_enabled=True,
    )
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session, other_business):
    store = Store(
        business_id=other_business.id,
        name="Beta Store",
        url="beta.sqale.shop",
        code="BETA",
        booking_enabled=True,
    )
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def product(db_session, store):
    """Product without variants: stock tracked on the product (10 units at 1000)."""
    product = Product(
        business_id=store.business_id,
        store_id=store.id,
        name="Ceramic Mug",
        sku="MUG-001",
        price_cents=1000,
        inventory=10,
        low_stock_threshold=2,
        images=["https://cdn.example.com/mug.jpg"],
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cheap_product(db_session, store):
    """Product without variants priced at 500, 10 units."""
    product = Product(
        business_id=store.business_id,
        store_id=store.id,
        name="Coaster",
        sku="CST-001",
        price_cents=500,
        inventory=10,
        low_stock_threshold=2,
        images=[],
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_product(db_session, store):
    """T-shirt with two variants; red overrides the price, blue inherits it."""
    product = Product(
        business_id=store.business_id,
        store_id=store.id,
        name="T-Shirt",
        sku="TS",
        price_cents=1500,
        inventory=0,
        images=[],
    )
    product.variants = [
        ProductVariant(name="Red / M", sku="TS-RED-M", options={"color": "red", "size": "M"}, price_cents=1800, inventory=5, low_stock_threshold=1),
        ProductVariant(name="Blue / M", sku="TS-BLUE-M", options={"color": "blue", "size": "M"}, price_cents=None, inventory=3, low_stock_threshold=1),
    ]
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def foreign_product(db_session, other_store):
    product = Product(
        business_id=other_store.business_id,
        store_id=other_store.id,
        name="Foreign Widget",
        price_cents=700,
        inventory=5,
        images=[],
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def slot(db_session, store):
    """Active car-hire slot, 5000 per booking, capacity 4, always available."""
    slot = BookingSlot(
        store_id=store.id,
        name="Toyota Camry",
        description="Sedan with driver",
        images=["https://cdn.example.com/camry.jpg"],
        booking_type="car_hire",
        price_cents=5000,
        duration="1 day",
        capacity=4,
        availability={"type": "always"},
        status="active",
    )
    db_session.add(slot)
    db_session.commit()
    return slot


@pytest.fixture(scope='function')
def api_token(db_session, store):
    """Plaintext staff key for Store A."""
    _, token = issue_api_key(store, "Front desk")
    return token


@pytest.fixture(scope='function')
def auth_headers(api_token):
    return {'Authorization': f'Bearer {api_token}'}


@pytest.fixture(scope='function')
def other_auth_headers(db_session, other_store):
    _, token = issue_api_key(other_store, "Beta desk")
    return {'Authorization': f'Bearer {token}'}


def customer_payload(**overrides) -> dict:
    data = {
        "email": "Ada@Example.com ",
        "name": "Ada Obi",
        "phone": "+2348000000000",
        "address": "12 Marina Road, Lagos",
    }
    data.update(overrides)
    return data


def order_payload(*items, **overrides) -> dict:
    """Checkout body; ``items`` are (product_id, quantity) pairs or full dicts."""
    lines = []
    for item in items:
        if isinstance(item, dict):
            lines.append(item)
        else:
            product_id, quantity = item
            lines.append({"product_id": product_id, "quantity": quantity})
    data = {
        "customer": customer_payload(),
        "items": lines,
        "delivery": {"method": "pickup", "fee_cents": 0},
        "payment": {"method": "bank_transfer"},
    }
    data.update(overrides)
    return data


def booking_payload(slot_id, **overrides) -> dict:
    data = {
        "customer": customer_payload(),
        "slot_id": slot_id,
        "start_date": "2026-11-02",
        "end_date": "2026-11-03",
        "start_time": "09:00",
        "end_time": "18:00",
        "quantity": 1,
        "metadata": {"guests": 2, "pickup_location": "Ikeja"},
        "payment": {"method": "card"},
    }
    data.update(overrides)
    return data

"""
Pytest fixtures for pharmacy POS backend tests.

Provides the app on an in-memory database, per-test table wipe, two
tenants (store A and store B) and the usual checkout fixtures.
"""

from datetime import date, timedelta

import pytest
from pharmacy_pos import create_app
from pharmacy_pos.extensions import db
from pharmacy_pos.models import Store, User, Subscription, Product, Customer
from pharmacy_pos.models.subscriptions import PLAN_TRIAL, STATUS_ACTIVE
from pharmacy_pos.services.session_service import create_session
from pharmacy_pos.time_utils import utcnow


TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'CHECKOUT_RETRY_BACKOFF': 0.01,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Core deletes skip the ORM immutability hooks on bills
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def make_store(session, code: str, name: str, tz_name: str = "Asia/Kolkata") -> Store:
    store = Store(name=name, code=code, timezone=tz_name, is_active=True)
    session.add(store)
    session.commit()
    return store


def make_user(session, store: Store, username: str = "cashier") -> User:
    user = User(
        store_id=store.id,
        username=username,
        email=f"{username}@{store.code.lower()}.local",
        full_name=username.title(),
    )
    session.add(user)
    session.commit()
    return user


def make_product(session, store: Store, sku: str, *, quantity: int, price: int = 10000, **extra) -> Product:
    product = Product(
        store_id=store.id,
        sku=sku,
        name=extra.pop("name", f"Product {sku}"),
        selling_price_paise=price,
        mrp_paise=extra.pop("mrp_paise", price),
        cost_price_paise=extra.pop("cost_price_paise", price // 2),
        quantity=quantity,
        **extra,
    )
    session.add(product)
    session.commit()
    return product


def make_subscription(session, store: Store, *, plan: str = PLAN_TRIAL, status: str = STATUS_ACTIVE,
                      days_left: int = 14) -> Subscription:
    now = utcnow()
    subscription = Subscription(
        store_id=store.id,
        plan=plan,
        status=status,
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=days_left),
    )
    session.add(subscription)
    session.commit()
    return subscription


@pytest.fixture(scope='function')
def store_a(db_session):
    """Create Store A (first tenant)."""
    return make_store(db_session, "A1", "Store A - Apollo Road")


@pytest.fixture(scope='function')
def store_b(db_session):
    """Create Store B (second tenant)."""
    return make_store(db_session, "B1", "Store B - Beach Road")


@pytest.fixture(scope='function')
def user_a(db_session, store_a):
    return make_user(db_session, store_a, "cashier_a")


@pytest.fixture(scope='function')
def user_b(db_session, store_b):
    return make_user(db_session, store_b, "cashier_b")


@pytest.fixture(scope='function')
def subscription_a(db_session, store_a):
    return make_subscription(db_session, store_a)


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    """Stocked product in Store A: Rs 100.00, 5% tax, batch and expiry set."""
    return make_product(
        db_session, store_a, "PARA-500",
        name="Paracetamol 500mg",
        quantity=10,
        price=10000,
        mrp_paise=11000,
        cost_price_paise=6000,
        tax_bps=500,
        batch_number="B-001",
        expiry_date=date(2027, 12, 31),
    )


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    """Stocked product in Store B."""
    return make_product(db_session, store_b, "PARA-500", name="Paracetamol 500mg", quantity=10)


@pytest.fixture(scope='function')
def customer_a(db_session, store_a):
    customer = Customer(store_id=store_a.id, first_name="Asha", last_name="Rao", phone="9876500001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def token_a(db_session, user_a):
    _, token = create_session(user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(db_session, user_b):
    _, token = create_session(user_b.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}

"""
Pytest fixtures for posbill tests.

Provides an in-memory database, two independent stores (tenants), an admin
user per store, and helpers for authenticated requests.
"""

from decimal import Decimal

import pytest

from posbill import create_app
from posbill.extensions import db
from posbill.models import Customer, Product, Store, User
from posbill.models.auth import ROLE_ADMIN, ROLE_STAFF
from posbill.services.auth_service import hash_password
from posbill.services.session_service import create_session

PASSWORD = "secret1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SMS_SIMULATE': True,
        'SMS_DISPATCH_SYNC': True,
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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store_a(db_session):
    """Store A (first tenant)."""
    store = Store(name="Main Store", code="MAIN01", upi_id="main@upi")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    """Store B (second tenant)."""
    store = Store(name="Other Store", code="OTHER1")
    db_session.add(store)
    db_session.commit()
    return store


def _make_user(db_session, store, username, role):
    user = User(
        store_id=store.id,
        username=username,
        name=username.title(),
        email=f"{username}@example.com",
        role=role,
        password_hash=hash_password(PASSWORD),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session, store_a):
    """Admin of Store A."""
    return _make_user(db_session, store_a, "alice", ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_a(db_session, store_a):
    """Staff member of Store A."""
    return _make_user(db_session, store_a, "sam", ROLE_STAFF)


@pytest.fixture(scope='function')
def user_b(db_session, store_b):
    """Admin of Store B."""
    return _make_user(db_session, store_b, "bob", ROLE_ADMIN)


@pytest.fixture(scope='function')
def headers_a(user_a):
    _session, token = create_session(user_a)
    return auth_headers(token)


@pytest.fixture(scope='function')
def staff_headers_a(staff_a):
    _session, token = create_session(staff_a)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(user_b):
    _session, token = create_session(user_b)
    return auth_headers(token)


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    """Product in Store A with five units on hand."""
    product = Product(
        store_id=store_a.id,
        name="Notebook",
        sku="NB-001",
        barcode="S1NB001123456",
        category="Stationery",
        price=Decimal("10.00"),
        cost=Decimal("6.00"),
        stock=5,
        min_stock_level=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    """Product in Store B."""
    product = Product(
        store_id=store_b.id,
        name="Pen",
        sku="PEN-001",
        price=Decimal("2.50"),
        cost=Decimal("1.00"),
        stock=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, store_a):
    """Customer of Store A with a phone number."""
    customer = Customer(store_id=store_a.id, name="Carol", phone="+15005550006", email="carol@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login(client, store_code: str, username: str, password: str = PASSWORD):
    """Helper to log in through the API; the session cookie stays on the client."""
    return client.post('/api/login', json={
        'storeCode': store_code,
        'username': username,
        'password': password,
    })


def bill_payload(product, quantity=2, customer=None, **header):
    """Minimal valid bill body for one line of product."""
    price = "10.00"
    line_total = f"{10 * quantity}.00"
    bill = {
        "subtotal": line_total,
        "tax": "0.00",
        "discount": "0.00",
        "total": line_total,
    }
    if customer is not None:
        bill["customerId"] = customer.id
    bill.update(header)
    return {
        "bill": bill,
        "items": [{"productId": product.id, "quantity": quantity, "price": price}],
    }

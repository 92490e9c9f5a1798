"""
Pytest fixtures for StockPilot backend tests.

Provides test database setup, acting users, catalog factories and an
authenticated test client.
"""

import pytest
from stockpilot import create_app
from stockpilot.extensions import db
from stockpilot.models import Customer, Product
from stockpilot.services.session_service import ActingUser, create_user


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_ATTEMPTS': 1,
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
def admin_user(db_session):
    """Admin user plus its plaintext API token."""
    user, token = create_user(username="admin", name="Alice Admin", role="admin")
    return user, token


@pytest.fixture(scope='function')
def staff_user(db_session):
    user, token = create_user(username="staff", name="Sam Staff", role="staff")
    return user, token


@pytest.fixture(scope='function')
def admin_actor(admin_user):
    return ActingUser.from_user(admin_user[0])


@pytest.fixture(scope='function')
def staff_actor(staff_user):
    return ActingUser.from_user(staff_user[0])


@pytest.fixture(scope='function')
def auth_headers(admin_user):
    _, token = admin_user
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    _, token = staff_user
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Acme Foods", email="orders@acme.test")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def make_product(db_session):
    """
    Factory for catalog products.

    stock set here is untracked (no batch); use record_stock_in for lots.
    """
    counter = {"n": 0}

    def _make(*, name=None, price_cents=1000, cost_cents=400, stock=0, low_stock_threshold=0, sku=None):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            sku=sku or f"SKU-{counter['n']:03d}",
            price_cents=price_cents,
            cost_cents=cost_cents,
            stock=stock,
            low_stock_threshold=low_stock_threshold,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make

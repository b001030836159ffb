"""
Pytest fixtures for Threadcount backend tests.

Provides test database setup, two tenant accounts and their record stores.
"""

import pytest
from threadcount import create_app
from threadcount.extensions import db
from threadcount.models import Account
from threadcount.services.products_service import create_product
from threadcount.services.record_store import SqlRecordStore


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def account_a(db_session):
    """Create Account A (first tenant)."""
    account = Account(name="Acme Apparel", email="owner@acme.test", is_active=True)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def account_b(db_session):
    """Create Account B (second tenant)."""
    account = Account(name="Beta Boutique", email="owner@beta.test", is_active=True)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def store_a(account_a):
    return SqlRecordStore(account_a.id)


@pytest.fixture(scope='function')
def store_b(account_b):
    return SqlRecordStore(account_b.id)


@pytest.fixture(scope='function')
def make_product():
    """Factory: make_product(store, name=..., price=..., stock=...)."""
    def _make(store, name="Classic White Tee", price="25.99", stock=50, threshold=10, category="Tops"):
        return create_product(
            store,
            {
                "name": name,
                "description": f"{name} for the test catalog",
                "price": price,
                "low_stock_threshold": threshold,
                "category": category,
            },
            initial_stock=stock,
        )
    return _make

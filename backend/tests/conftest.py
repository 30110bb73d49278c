"""
Pytest fixtures for ordering backend tests.

Provides an in-memory database, per-test table wipe, retailer/product
factories and actor header helpers for the test client.
"""

import pytest

from ordering import create_app
from ordering.extensions import db
from ordering.models import Product, Retailer


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ORDER_RETRY_ATTEMPTS': 1,
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


def make_retailer(session, *, name="Corner Shop", credit_limit_cents=0, balance_cents=0, status="active"):
    retailer = Retailer(
        business_name=name,
        phone="555-0100",
        credit_limit_cents=credit_limit_cents,
        current_balance_cents=balance_cents,
        status=status,
    )
    session.add(retailer)
    session.commit()
    return retailer


def make_product(session, *, sku, name=None, price_cents=1000, stock=10, tax_bps=0, is_active=True):
    product = Product(
        sku=sku,
        name=name or f"Product {sku}",
        base_price_cents=price_cents,
        tax_rate_bps=tax_bps,
        stock_quantity=stock,
        is_active=is_active,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def retailer(db_session):
    """Active retailer with a 1000.00 credit line and a clean balance."""
    return make_retailer(db_session, name="Acme Grocers", credit_limit_cents=100_000)


@pytest.fixture(scope='function')
def other_retailer(db_session):
    return make_retailer(db_session, name="Beta Mart", credit_limit_cents=50_000)


@pytest.fixture(scope='function')
def product_a(db_session):
    """10.00 per unit, 10 in stock."""
    return make_product(db_session, sku="RICE-5KG", name="Rice 5kg", price_cents=1000, stock=10)


@pytest.fixture(scope='function')
def product_b(db_session):
    """50.00 per unit, 5 in stock."""
    return make_product(db_session, sku="OIL-1L", name="Cooking Oil 1L", price_cents=5000, stock=5)


def admin_headers(actor_id: str = "admin-1") -> dict:
    """Helper to create admin identity headers."""
    return {'X-Actor-Id': actor_id, 'X-Actor-Role': 'admin'}


def retailer_headers(retailer_id: str, actor_id: str = "retailer-user-1") -> dict:
    """Helper to create retailer identity headers."""
    return {'X-Actor-Id': actor_id, 'X-Actor-Role': 'retailer', 'X-Retailer-Id': retailer_id}


def driver_headers(actor_id: str = "driver-1") -> dict:
    return {'X-Actor-Id': actor_id, 'X-Actor-Role': 'driver'}


def line(product, quantity, *, unit_price_cents=None, tax_amount_cents=0, discount_amount_cents=0) -> dict:
    """Order line payload priced at the product's base price unless overridden."""
    return {
        'product_id': product.id,
        'quantity': quantity,
        'unit_price_cents': unit_price_cents if unit_price_cents is not None else product.base_price_cents,
        'tax_amount_cents': tax_amount_cents,
        'discount_amount_cents': discount_amount_cents,
    }

"""
Pytest fixtures for posledger backend tests.

Provides test database setup, catalog/customer fixtures, and test client.
"""

import pytest
from posledger import create_app
from posledger.extensions import db
from posledger.models import Category, Customer, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ORDER_DISCOUNT_THRESHOLD_CENTS': 30_000_000,
        'INVOICE_CREDIT_TERMS_DAYS': 30,
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
def electronics(db_session):
    """Category with a 15% volume discount."""
    category = Category(name="Electronics", discount_bps=1500)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def accessories(db_session):
    """Category with no discount."""
    category = Category(name="Accessories", discount_bps=0)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def laptop(db_session, electronics):
    """150,000.00 laptop, 10 on hand."""
    product = Product(
        product_code="LAP-001",
        name="Laptop",
        category_id=electronics.id,
        price_cents=15_000_000,
        stock_quantity=10,
        reserved_stock=0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cable(db_session, accessories):
    """10.00 cable, 100 on hand."""
    product = Product(
        product_code="CAB-001",
        name="Cable",
        category_id=accessories.id,
        price_cents=1_000,
        stock_quantity=100,
        reserved_stock=0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Acme Retail", phone="555-0100", email="buyer@acme.test")
    db_session.add(customer)
    db_session.commit()
    return customer

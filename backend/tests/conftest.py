"""
Pytest fixtures for the salon POS backend tests.

Provides an in-memory application, a per-test clean database, and shop /
catalog / promotion fixtures for two shops (cross-shop isolation checks).
"""

from datetime import date
from decimal import Decimal

import pytest
from salonpos import create_app
from salonpos.extensions import db
from salonpos.models import Shop, Hairdresser, Product, Service, Promotion


# 2025-01-13 is a Monday
MONDAY = date(2025, 1, 13)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALES_AUTO_PROMOTION': False,
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
        app.config['SALES_AUTO_PROMOTION'] = False


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Create Shop A (first salon)."""
    shop = Shop(name="Salon A", address="1 Rue A", phone="0100", email="a@salon.test")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Create Shop B (second salon)."""
    shop = Shop(name="Salon B", address="2 Rue B", phone="0200", email="b@salon.test")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def hairdresser_a(db_session, shop_a):
    hairdresser = Hairdresser(shop_id=shop_a.id, name="Awa")
    db_session.add(hairdresser)
    db_session.commit()
    return hairdresser


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(shop, name, price, quantity)."""
    def _make(shop, name="Shampoo", price="1000.00", quantity=10):
        product = Product(shop_id=shop.id, name=name, price=Decimal(str(price)), quantity=quantity)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_service(db_session):
    """Factory: make_service(shop, name, price)."""
    def _make(shop, name="Cut", price="3000.00"):
        service = Service(shop_id=shop.id, name=name, price=Decimal(str(price)))
        db_session.add(service)
        db_session.commit()
        return service
    return _make


@pytest.fixture(scope='function')
def make_promotion(db_session):
    """Factory: make_promotion(shop, **attrs) with an always-on, apply-to-all default."""
    def _make(shop, **attrs):
        values = {
            "name": "Promo",
            "percentage": Decimal("0"),
            "amount": Decimal("0"),
            "active": True,
            "days_of_week": None,
            "starts_at": None,
            "ends_at": None,
            "applicable_to_products": True,
            "applicable_to_services": True,
        }
        values.update(attrs)
        for key in ("percentage", "amount"):
            values[key] = Decimal(str(values[key]))
        promotion = Promotion(shop_id=shop.id, **values)
        db_session.add(promotion)
        db_session.commit()
        return promotion
    return _make


def sale_payload(**overrides) -> dict:
    """Checkout payload with sensible defaults."""
    payload = {
        "customer_name": "Alice",
        "customer_phone": "01020304",
        "sale_date": MONDAY.isoformat(),
        "payment_method": "caisse",
        "products": [],
        "services": [],
    }
    payload.update(overrides)
    return payload

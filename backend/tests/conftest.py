"""
Pytest fixtures for POS engine backend tests.

Provides test database setup, a seeded store (operators, products, tenders,
open register session) and a test client.
"""

from decimal import Decimal

import pytest
from pos_engine import create_app
from pos_engine.extensions import db
from pos_engine.models import (
    Customer,
    LoyaltyProgram,
    Operator,
    PaymentMethod,
    Product,
    Register,
    RegisterSession,
    Store,
)
from pos_engine.permissions import permissions_for_role


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
        app.extensions["pos_sessions"].clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Main Store", code="MAIN", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(name="Other Store", code="OTHER", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def make_operator(db_session, store):
    """Factory: make_operator("seller", max_discount_percent=...)."""
    def _make(role, **overrides):
        operator = Operator(store_id=overrides.pop("store_id", store.id), name=role.title(), role=role, **overrides)
        db_session.add(operator)
        db_session.commit()
        return operator
    return _make


@pytest.fixture(scope='function')
def cashier(make_operator):
    return make_operator("cashier")


@pytest.fixture(scope='function')
def seller(make_operator):
    return make_operator("seller")


@pytest.fixture(scope='function')
def manager(make_operator):
    return make_operator("manager")


@pytest.fixture(scope='function')
def owner(make_operator):
    return make_operator("owner")


@pytest.fixture
def seller_permissions():
    return permissions_for_role("seller")


@pytest.fixture
def manager_permissions():
    return permissions_for_role("manager")


@pytest.fixture
def cashier_permissions():
    return permissions_for_role("cashier")


@pytest.fixture(scope='function')
def products(db_session, store):
    """
    Catalog:
    - coffee: 10 in stock, wholesale price
    - sugar: 2 in stock, per-product stock block
    - cheese: weighed, scale code 2000123
    - wrap: service (never stock-checked or decremented)
    - assorted: open price
    """
    items = {
        "coffee": Product(store_id=store.id, code="1001", barcode="7891000100103", name="Coffee 500g",
                          sale_price=Decimal("10.00"), wholesale_price=Decimal("8.00"),
                          cost_price=Decimal("6.00"), stock_quantity=Decimal("10")),
        "sugar": Product(store_id=store.id, code="1002", barcode="7891000200209", name="Sugar 1kg",
                         sale_price=Decimal("5.00"), cost_price=Decimal("3.00"),
                         stock_quantity=Decimal("2"), block_sale_no_stock=True),
        "cheese": Product(store_id=store.id, code="2000123", name="Cheese (kg)",
                          sale_price=Decimal("40.00"), cost_price=Decimal("25.00"),
                          stock_quantity=Decimal("5.000")),
        "wrap": Product(store_id=store.id, code="9001", name="Gift wrapping",
                        sale_price=Decimal("4.00"), is_service=True, stock_quantity=Decimal("0")),
        "assorted": Product(store_id=store.id, code="9002", name="Assorted item",
                            sale_price=Decimal("0"), allow_open_price=True,
                            stock_quantity=Decimal("100")),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


@pytest.fixture(scope='function')
def payment_methods(db_session, store):
    methods = {
        "cash": PaymentMethod(store_id=store.id, name="Cash"),
        "credit": PaymentMethod(store_id=store.id, name="Credit", fee_percent=Decimal("3.00"), max_installments=6),
    }
    db_session.add_all(methods.values())
    db_session.commit()
    return methods


@pytest.fixture(scope='function')
def register_session(db_session, store, cashier):
    register = Register(store_id=store.id, register_number="REG-01", name="Front", is_active=True)
    db_session.add(register)
    db_session.flush()

    session = RegisterSession(
        register_id=register.id,
        store_id=store.id,
        opened_by_operator_id=cashier.id,
        status="OPEN",
        opening_cash=Decimal("100"),
    )
    db_session.add(session)
    db_session.commit()
    return session


@pytest.fixture(scope='function')
def vip_customer(db_session, store):
    customer = Customer(store_id=store.id, name="Maria", is_vip=True,
                        vip_discount_percent=Decimal("10"), loyalty_points=100)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def loyalty_program(db_session, store):
    program = LoyaltyProgram(store_id=store.id, name="Points", point_value=Decimal("0.10"))
    db_session.add(program)
    db_session.commit()
    return program

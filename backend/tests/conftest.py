"""
Pytest fixtures for the ferreteria backend tests.

Provides the app, a per-test clean database, operators for each role,
and a small catalog with stock.
"""

import pytest
from ferreteria import create_app
from ferreteria.extensions import db
from ferreteria.models import Category, Customer, Product, ProductCategory, StockLevel, User
from ferreteria.permissions import Role


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_TYPE': 'FACTURA_B',
        'INVOICE_POINT_OF_SALE': 1,
        'CREDIT_DUE_DAYS': 30,
        'MOVEMENTS_PAGE_SIZE': 20,
        'MAX_PAGE_SIZE': 200,
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


def _make_user(session, name: str, role: Role) -> User:
    user = User(name=name, email=f"{name.lower()}@ferreteria.test", role=role)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "Admin", Role.ADMINISTRATOR)


@pytest.fixture(scope='function')
def seller(db_session):
    return _make_user(db_session, "Seller", Role.SELLER)


@pytest.fixture(scope='function')
def stock_clerk(db_session):
    return _make_user(db_session, "Clerk", Role.STOCK)


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Herramientas")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def other_category(db_session):
    cat = Category(name="Electricidad")
    db_session.add(cat)
    db_session.commit()
    return cat


def make_product(session, category, *, sku, name, price_cents, quantity=0, min_stock=0, is_active=True) -> Product:
    """Insert a product linked to one category, with an initial StockLevel."""
    product = Product(
        sku=sku,
        name=name,
        price_cents=price_cents,
        min_stock=min_stock,
        category_id=category.id,
        is_active=is_active,
    )
    session.add(product)
    session.flush()
    session.add(ProductCategory(product_id=product.id, category_id=category.id))
    if quantity:
        session.add(StockLevel(product_id=product.id, quantity=quantity))
    session.commit()
    return product


@pytest.fixture(scope='function')
def hammer(db_session, category):
    """Hammer at $100.00 with 10 on hand."""
    return make_product(db_session, category, sku="MAR-001", name="Martillo", price_cents=10000, quantity=10)


@pytest.fixture(scope='function')
def screws(db_session, category):
    """Box of screws at $21.50 with 3 on hand, min stock 5."""
    return make_product(db_session, category, sku="TOR-050", name="Tornillos x50", price_cents=2150,
                        quantity=3, min_stock=5)


@pytest.fixture(scope='function')
def credit_customer(db_session):
    """Customer with store credit enabled and a $500.00 limit."""
    customer = Customer(
        first_name="Juan",
        last_name="Perez",
        document_type="DNI",
        document_number="30111222",
        address="Av. Siempre Viva 742",
        credit_enabled=True,
        credit_limit_cents=50000,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def cash_customer(db_session):
    """Registered customer without store credit."""
    customer = Customer(first_name="Maria", last_name="Gomez", credit_enabled=False, credit_limit_cents=90000)
    db_session.add(customer)
    db_session.commit()
    return customer


def operator_headers(user: User) -> dict:
    """Headers identifying the acting operator."""
    return {'X-Operator-Id': str(user.id)}

"""
Concurrent store-credit sales against a file-backed SQLite database.

The credit check and the DEBT entry share one transaction, so sales racing
for the same customer can never push the balance past the limit.
"""

import threading

import pytest

from ferreteria import create_app
from ferreteria.errors import SaleValidationError
from ferreteria.extensions import db
from ferreteria.models import Category, CreditAccountEntry, Customer, Product, Sale, StockLevel, User
from ferreteria.permissions import Role
from ferreteria.services import credit_service, sales_service, stock_service
from ferreteria.services.sales_service import SaleLineRequest, SaleRequest


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'credit.sqlite3'}",
        'SQLITE_TIMEOUT_SECONDS': 30,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(app) -> tuple[int, int, int]:
    """Product at $100.00 with plenty of stock, a $500.00 credit customer and a seller."""
    with app.app_context():
        cat = Category(name="Concurrencia")
        db.session.add(cat)
        db.session.flush()
        product = Product(sku="CRED-1", name="Amoladora", price_cents=10000, category_id=cat.id)
        customer = Customer(first_name="Marta", last_name="Gomez", credit_enabled=True, credit_limit_cents=50000)
        seller = User(name="Caja", email="caja@ferreteria.test", role=Role.SELLER)
        db.session.add_all([product, customer, seller])
        db.session.flush()
        db.session.add(StockLevel(product_id=product.id, quantity=100))
        db.session.commit()
        return product.id, customer.id, seller.id


def _run_sales(app, product_id: int, customer_id: int, seller_id: int, workers: int, quantity: int):
    results = []
    lock = threading.Lock()
    start = threading.Barrier(workers)

    def worker():
        with app.app_context():
            operator = db.session.get(User, seller_id)
            request = SaleRequest(
                lines=[SaleLineRequest(product_id, quantity)],
                customer_id=customer_id,
                payment_type=Sale.PAYMENT_STORE_CREDIT,
            )
            start.wait()
            try:
                sales_service.create_sale(request, operator)
                outcome = "ok"
            except SaleValidationError as exc:
                outcome = ",".join(exc.codes)
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)
    return results


def test_racing_credit_sales_never_exceed_the_limit(file_app):
    product_id, customer_id, seller_id = _seed(file_app)

    results = _run_sales(file_app, product_id, customer_id, seller_id, workers=4, quantity=3)

    assert len(results) == 4
    assert results.count("ok") == 1
    assert results.count("CREDIT_LIMIT_EXCEEDED") == 3
    with file_app.app_context():
        assert credit_service.get_balance(customer_id) == 30000
        assert db.session.query(Sale).count() == 1
        assert db.session.query(CreditAccountEntry).count() == 1
        assert stock_service.get_quantity(product_id) == 97


def test_racing_credit_sales_fill_the_limit_exactly(file_app):
    product_id, customer_id, seller_id = _seed(file_app)

    results = _run_sales(file_app, product_id, customer_id, seller_id, workers=6, quantity=1)

    assert results.count("ok") == 5
    assert results.count("CREDIT_LIMIT_EXCEEDED") == 1
    with file_app.app_context():
        assert credit_service.get_balance(customer_id) == 50000
        assert stock_service.get_quantity(product_id) == 95

# Overview: Threaded oversell and numbering tests against a file-backed SQLite database.

"""
Concurrency Tests

Uses a real file database so each worker thread gets its own connection
and the BEGIN IMMEDIATE write lock is actually contended.
"""

import threading

import pytest

from posledger import create_app
from posledger.errors import InsufficientStock
from posledger.extensions import db
from posledger.models import Category, Customer, Product
from posledger.services import invoice_service, order_service, transaction_service
from posledger.services.catalog_service import check_stock_invariants


WORKERS = 8


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
    })

    with app.app_context():
        db.create_all()

        category = Category(name="Concurrency", discount_bps=0)
        db.session.add(category)
        db.session.flush()

        product = Product(
            product_code="CONCUR-1",
            name="Concurrent Product",
            category_id=category.id,
            price_cents=1000,
            stock_quantity=5,
            reserved_stock=0,
        )
        customer = Customer(name="Concurrent Customer")
        db.session.add_all([product, customer])
        db.session.commit()

        app.config["TEST_PRODUCT_ID"] = product.id
        app.config["TEST_CUSTOMER_ID"] = customer.id

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_workers(target, count=WORKERS):
    threads = [threading.Thread(target=target) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_full_quantity_orders_yield_exactly_one_success(file_app):
    product_id = file_app.config["TEST_PRODUCT_ID"]
    customer_id = file_app.config["TEST_CUSTOMER_ID"]
    results = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                order, _ = order_service.place_order(customer_id, [(product_id, 5)])
                with lock:
                    results.append(order.order_number)
            except InsufficientStock as exc:
                with lock:
                    results.append(exc)
            except Exception as exc:
                with lock:
                    results.append(("unexpected", exc))
            finally:
                db.session.remove()

    _run_workers(worker)

    successes = [r for r in results if isinstance(r, str)]
    rejections = [r for r in results if isinstance(r, InsufficientStock)]
    assert len(successes) == 1
    assert len(rejections) == WORKERS - 1

    with file_app.app_context():
        product = db.session.get(Product, product_id)
        assert product.stock_quantity == 5
        assert product.reserved_stock == 5
        assert check_stock_invariants() == []


def test_concurrent_invoices_get_unique_numbers(file_app):
    customer_id = file_app.config["TEST_CUSTOMER_ID"]
    numbers = []
    errors = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                _, invoice = transaction_service.record_transaction(customer_id, 1_000, "Credit")
                with lock:
                    numbers.append(invoice.invoice_number)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    _run_workers(worker)

    assert not errors
    assert len(numbers) == WORKERS
    assert len(set(numbers)) == WORKERS


def test_concurrent_payments_never_overpay(file_app):
    customer_id = file_app.config["TEST_CUSTOMER_ID"]
    with file_app.app_context():
        _, invoice = transaction_service.record_transaction(customer_id, 3_000, "Credit")
        invoice_id = invoice.id

    outcomes = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                invoice_service.apply_invoice_payment(invoice_id, 1_000)
                with lock:
                    outcomes.append("applied")
            except Exception as exc:
                with lock:
                    outcomes.append(exc)
            finally:
                db.session.remove()

    _run_workers(worker)

    assert outcomes.count("applied") == 3

    with file_app.app_context():
        invoice = invoice_service.get_invoice(invoice_id)
        assert invoice.paid_amount_cents == 3_000
        assert invoice.status == "Paid"
        receipts = [i for i in invoice_service.invoices_for_transaction(invoice.transaction_id) if i.type == "Receipt"]
        assert len(receipts) == 1

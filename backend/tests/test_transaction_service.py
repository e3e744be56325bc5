# Overview: Pytest coverage for cash/credit transactions and receivable collection.

from datetime import timedelta

import pytest

from posledger.errors import InvalidTransition, NotFound, ValidationError
from posledger.models import CustomerTransaction, Invoice, LedgerEntry
from posledger.services import order_service, transaction_service
from posledger.time_utils import utcnow


class TestRecordTransaction:
    def test_credit_defaults_to_pending_with_outstanding_invoice(self, db_session, customer):
        tx, invoice = transaction_service.record_transaction(customer.id, 50_000, "Credit", user_id=5)

        assert tx.status == "Pending"
        assert tx.paid_at is None
        assert tx.created_by_user_id == 5

        assert invoice.invoice_number == "INV-0001"
        assert invoice.transaction_id == tx.id
        assert invoice.type == "Sales"
        assert invoice.payment_method == "Credit"
        assert invoice.status == "Outstanding"
        assert invoice.original_amount_cents == 50_000
        assert invoice.paid_amount_cents == 0
        assert invoice.remaining_amount_cents == 50_000
        assert invoice.discount_amount_cents == 0

        # Default credit terms
        expected_due = utcnow() + timedelta(days=30)
        assert abs((invoice.due_date - expected_due).total_seconds()) < 60

    def test_cash_defaults_to_paid(self, db_session, customer):
        tx, invoice = transaction_service.record_transaction(customer.id, 20_000, "Cash")

        assert tx.status == "Paid"
        assert tx.paid_at is not None
        assert invoice.payment_method == "Cash"
        assert invoice.due_date is None

    def test_explicit_status_and_due_date(self, db_session, customer):
        due = utcnow() + timedelta(days=7)
        tx, invoice = transaction_service.record_transaction(
            customer.id, 1_000, "Credit", status="Paid", due_date=due, notes="Prepaid"
        )

        assert tx.status == "Paid"
        assert tx.notes == "Prepaid"
        assert abs((invoice.due_date - due).total_seconds()) < 1

    def test_invoice_snapshots_order_lines(self, db_session, customer, laptop, cable):
        order, _ = order_service.place_order(customer.id, [(laptop.id, 2), (cable.id, 3)])

        _, invoice = transaction_service.record_transaction(
            customer.id, order.total_cents, "Credit", order_id=order.id
        )

        assert invoice.order_id == order.id
        assert invoice.discount_amount_cents == order.original_total_cents - order.total_cents == 4_500_000
        lines = [(i.product_name, i.quantity, i.unit_price_cents, i.total_price_cents) for i in invoice.items]
        assert lines == [
            ("Laptop", 2, 12_750_000, 25_500_000),
            ("Cable", 3, 1_000, 3_000),
        ]

    @pytest.mark.parametrize("amount", [0, -100, "12.50", None])
    def test_rejects_bad_amount(self, db_session, customer, amount):
        with pytest.raises(ValidationError):
            transaction_service.record_transaction(customer.id, amount, "Credit")
        assert db_session.query(CustomerTransaction).count() == 0

    def test_rejects_bad_type_and_status(self, db_session, customer):
        with pytest.raises(ValidationError):
            transaction_service.record_transaction(customer.id, 100, "Barter")
        with pytest.raises(ValidationError):
            transaction_service.record_transaction(customer.id, 100, "Cash", status="Settled")

    def test_unknown_customer_persists_nothing(self, db_session):
        with pytest.raises(NotFound):
            transaction_service.record_transaction(424242, 100, "Cash")
        assert db_session.query(CustomerTransaction).count() == 0
        assert db_session.query(Invoice).count() == 0

    def test_unknown_order(self, db_session, customer):
        with pytest.raises(NotFound):
            transaction_service.record_transaction(customer.id, 100, "Cash", order_id=424242)


class TestPayReceivable:
    def test_marks_paid_and_posts_collection(self, db_session, customer):
        tx, invoice = transaction_service.record_transaction(customer.id, 50_000, "Credit")

        paid, entries = transaction_service.pay_receivable(tx.id, user_id=3)

        assert paid.status == "Paid"
        assert paid.paid_at is not None
        debit, credit = entries
        assert (debit.account_name, debit.debit_cents) == ("CASH", 50_000)
        assert (credit.account_name, credit.credit_cents) == ("ACCOUNTS_RECEIVABLE", 50_000)
        assert debit.transaction_id == tx.id
        assert debit.created_by_user_id == 3

        # Invoice is settled separately
        db_session.refresh(invoice)
        assert invoice.status == "Outstanding"
        assert invoice.paid_amount_cents == 0

    def test_second_payment_rejected(self, db_session, customer):
        tx, _ = transaction_service.record_transaction(customer.id, 50_000, "Credit")
        transaction_service.pay_receivable(tx.id)

        with pytest.raises(InvalidTransition) as exc:
            transaction_service.pay_receivable(tx.id)
        assert exc.value.message == "Transaction already paid"
        assert db_session.query(LedgerEntry).count() == 2

    def test_cash_transaction_is_already_paid(self, db_session, customer):
        tx, _ = transaction_service.record_transaction(customer.id, 50_000, "Cash")
        with pytest.raises(InvalidTransition):
            transaction_service.pay_receivable(tx.id)
        assert db_session.query(LedgerEntry).count() == 0

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFound):
            transaction_service.pay_receivable(424242)


class TestQueries:
    def test_receivables_are_pending_credit_only(self, db_session, customer):
        open_credit, _ = transaction_service.record_transaction(customer.id, 1_000, "Credit")
        collected, _ = transaction_service.record_transaction(customer.id, 2_000, "Credit")
        transaction_service.record_transaction(customer.id, 3_000, "Cash")
        transaction_service.pay_receivable(collected.id)

        receivables = transaction_service.list_receivables()
        assert [t.id for t in receivables["items"]] == [open_credit.id]

        assert transaction_service.list_transactions()["total"] == 3
        assert transaction_service.list_transactions(type="Cash")["total"] == 1
        assert transaction_service.list_transactions(status="Paid")["total"] == 2

    def test_get_transaction(self, db_session, customer):
        tx, _ = transaction_service.record_transaction(customer.id, 1_000, "Credit")
        assert transaction_service.get_transaction(tx.id).amount_cents == 1_000
        with pytest.raises(NotFound):
            transaction_service.get_transaction(424242)

# Overview: Tests for the flask CLI groups (system, ledger, catalog) via the Click test runner.

from datetime import datetime

import pytest

from posledger.models import Category, Customer, LedgerEntry, Product
from posledger.services import ledger_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSeedDemo:
    def test_seeds_catalog_once(self, runner, db_session):
        result = runner.invoke(args=["system", "seed-demo"])

        assert result.exit_code == 0
        assert "PASS Created product: LAP-001 Laptop @ 150,000.00 x20" in result.output
        assert db_session.query(Product).count() == 3
        assert db_session.query(Category).filter_by(name="Electronics").one().discount_bps == 1500
        assert db_session.query(Customer).filter_by(name="Walk-in Customer").count() == 1

        again = runner.invoke(args=["system", "seed-demo"])

        assert again.exit_code == 0
        assert "already exists, skipping" in again.output
        assert db_session.query(Product).count() == 3
        assert db_session.query(Customer).count() == 1


class TestLedgerCommands:
    def test_trial_balance_empty(self, runner, db_session):
        result = runner.invoke(args=["ledger", "trial-balance"])

        assert result.exit_code == 0
        assert "No active ledger entries in range." in result.output
        assert "PASS difference=0.00" in result.output

    def test_trial_balance_lists_accounts(self, runner, db_session, customer):
        ledger_service.post_sale(1, customer.id, 123_456, "Credit")
        db_session.commit()

        result = runner.invoke(args=["ledger", "trial-balance", "--from", "2000-01-01"])

        assert result.exit_code == 0
        assert "ACCOUNTS_RECEIVABLE" in result.output
        assert "1,234.56" in result.output

    def test_trial_balance_rejects_bad_date(self, runner, db_session):
        result = runner.invoke(args=["ledger", "trial-balance", "--to", "someday"])
        assert result.exit_code == 2

    def test_verify_balanced(self, runner, db_session, customer):
        ledger_service.post_sale(1, customer.id, 5_000, "Cash")
        db_session.commit()

        result = runner.invoke(args=["ledger", "verify"])

        assert result.exit_code == 0
        assert "PASS Ledger balanced (debit = credit = 50.00)" in result.output

    def test_verify_unbalanced_exits_non_zero(self, runner, db_session):
        db_session.add(LedgerEntry(
            entry_type="ADJUSTMENT",
            debit_cents=250,
            credit_cents=0,
            account_type="ASSETS",
            account_name="CASH",
            description="Orphan debit",
            reference_number="LED-MANUAL",
            posting_group="PST-BROKEN",
            transaction_date=datetime(2026, 1, 1),
        ))
        db_session.commit()

        result = runner.invoke(args=["ledger", "verify"])

        assert result.exit_code == 1
        assert "PST-BROKEN: debit=2.50 credit=0.00" in result.output


class TestCatalogCommands:
    def test_check_stock_passes(self, runner, db_session, cable):
        result = runner.invoke(args=["catalog", "check-stock"])

        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_check_stock_reports_violations(self, runner, db_session, cable, monkeypatch):
        from posledger.services import catalog_service

        violation = {"product_id": cable.id, "product_code": "CAB-001", "stock_quantity": 1, "reserved_stock": 2}
        monkeypatch.setattr(catalog_service, "check_stock_invariants", lambda: [violation])

        result = runner.invoke(args=["catalog", "check-stock"])

        assert result.exit_code == 1
        assert "FAIL CAB-001" in result.output

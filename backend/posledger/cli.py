# Overview: Flask CLI command groups for bootstrap, ledger checks and catalog maintenance.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Demo category, products and customer for trying the API.
#
# Ledger inspection:
# - python -m flask ledger trial-balance [--from 2026-01-01 --to 2026-01-31]
#   Per-account totals and the debit/credit difference.
# - python -m flask ledger verify [--from ... --to ...]
#   Exit code 1 when the books do not reconcile.
#
# Catalog maintenance:
# - python -m flask catalog check-stock
#   List products whose stock/reserved counters break the invariant.

import click
from flask.cli import with_appcontext

from .errors import PosError, PostingInconsistency
from .extensions import db
from .models import Category, Customer, Product
from .services import catalog_service, customer_service, ledger_service
from .validation import date_range


def _cents(value: int) -> str:
    sign = "-" if value < 0 else ""
    value = abs(value)
    return f"{sign}{value // 100:,}.{value % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a small catalog for manual testing.

    Safe to run twice: existing product codes and customers are left alone.
    """
    category = db.session.query(Category).filter_by(name="Electronics").first()
    if category is None:
        category = catalog_service.create_category("Electronics", discount_bps=1500)
        click.echo(f"PASS Created category: {category.name} (discount {category.discount_percent}%)")

    demo_products = [
        ("LAP-001", "Laptop", 15000000, 20),
        ("MON-001", "Monitor", 4500000, 40),
        ("KEY-001", "Keyboard", 350000, 100),
    ]
    for code, name, price_cents, stock in demo_products:
        if db.session.query(Product).filter_by(product_code=code).first():
            click.echo(f"WARN  Product '{code}' already exists, skipping...")
            continue
        catalog_service.create_product(
            product_code=code,
            name=name,
            category_id=category.id,
            price_cents=price_cents,
            stock_quantity=stock,
        )
        click.echo(f"PASS Created product: {code} {name} @ {_cents(price_cents)} x{stock}")

    if not db.session.query(Customer).filter_by(name="Walk-in Customer").first():
        customer = customer_service.create_customer("Walk-in Customer")
        click.echo(f"PASS Created customer: {customer.name} (ID: {customer.id})")


@click.group('ledger')
def ledger_group():
    """Ledger reports and reconciliation checks."""


@ledger_group.command('trial-balance')
@click.option('--from', 'start', default=None, help='Inclusive start (ISO-8601 date or datetime)')
@click.option('--to', 'end', default=None, help='Inclusive end (ISO-8601 date or datetime)')
@with_appcontext
def trial_balance_cmd(start, end):
    """Print per-account debit/credit totals."""
    try:
        start_dt, end_dt = date_range(start, end)
    except PosError as e:
        raise click.BadParameter(e.message)

    report = ledger_service.trial_balance(start_dt, end_dt)
    if not report["accounts"]:
        click.echo("No active ledger entries in range.")

    for account in report["accounts"]:
        click.echo(
            f"{account['account_name']:<24} {account['account_type']:<12} "
            f"DR {_cents(account['total_debit_cents']):>16}  CR {_cents(account['total_credit_cents']):>16}"
        )

    totals = report["totals"]
    click.echo("-" * 80)
    click.echo(
        f"{'TOTAL':<37} DR {_cents(totals['total_debit_cents']):>16}  "
        f"CR {_cents(totals['total_credit_cents']):>16}"
    )
    click.echo(("PASS" if totals["balanced"] else "FAIL") + f" difference={_cents(totals['difference_cents'])}")


@ledger_group.command('verify')
@click.option('--from', 'start', default=None, help='Inclusive start (ISO-8601 date or datetime)')
@click.option('--to', 'end', default=None, help='Inclusive end (ISO-8601 date or datetime)')
@with_appcontext
def verify_cmd(start, end):
    """Exit non-zero if the books do not reconcile."""
    try:
        start_dt, end_dt = date_range(start, end)
    except PosError as e:
        raise click.BadParameter(e.message)

    try:
        result = ledger_service.verify_books(start_dt, end_dt)
    except PostingInconsistency as e:
        click.echo(f"FAIL {e.message}", err=True)
        totals = e.details["totals"]
        click.echo(
            f"     debit={_cents(totals['total_debit_cents'])} credit={_cents(totals['total_credit_cents'])}",
            err=True,
        )
        for posting in e.details["unbalanced_postings"]:
            click.echo(
                f"     {posting['posting_group']}: debit={_cents(posting['total_debit_cents'])} "
                f"credit={_cents(posting['total_credit_cents'])}",
                err=True,
            )
        raise SystemExit(1)

    click.echo(f"PASS Ledger balanced (debit = credit = {_cents(result['totals']['total_debit_cents'])})")


@click.group('catalog')
def catalog_group():
    """Catalog maintenance commands."""


@catalog_group.command('check-stock')
@with_appcontext
def check_stock_cmd():
    """Report products whose stock counters are inconsistent."""
    violations = catalog_service.check_stock_invariants()
    if not violations:
        click.echo("PASS All product stock counters are consistent.")
        return

    for v in violations:
        click.echo(
            f"FAIL {v['product_code']} (ID: {v['product_id']}): "
            f"stock={v['stock_quantity']} reserved={v['reserved_stock']}",
            err=True,
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(catalog_group)

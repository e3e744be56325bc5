# Overview: Double-entry ledger posting and aggregate accounting reports.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFound, PostingInconsistency, ValidationError
from ..models import LedgerEntry
from ..time_utils import utcnow, to_utc_z
from ..validation import positive_cents
from .concurrency import begin_write, run_with_retry
from .document_service import (
    next_document_number,
    LEDGER_ENTRY_SEQUENCE,
    POSTING_GROUP_SEQUENCE,
)
from .state_machine import (
    LEDGER_ACTIVE,
    LEDGER_ADJUSTED,
    LEDGER_CANCELLED,
    TX_CREDIT,
    transition_ledger_group,
)
"""
Ledger Invariants (authoritative)

- Every posting is a pair: one debit row and one credit row of the same
  amount, sharing posting_group, flushed in the same DB transaction.
- Rows are append-only. Amounts are never updated; status moves
  ACTIVE -> CANCELLED (soft delete) or ACTIVE -> ADJUSTED (superseded by an
  ADJUSTMENT pair). Both rows of a pair always change status together.
- Every report aggregates status='ACTIVE' rows with SQL SUM; nothing reads a
  cached running total.
- Date bounds are inclusive and independent: from <= transaction_date <= to.
"""


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

ASSETS = "ASSETS"
LIABILITIES = "LIABILITIES"
EQUITY = "EQUITY"
REVENUE = "REVENUE"
EXPENSES = "EXPENSES"

ACCOUNT_TYPES = [ASSETS, LIABILITIES, EQUITY, REVENUE, EXPENSES]

CHART_OF_ACCOUNTS = {
    "CASH": ASSETS,
    "BANK": ASSETS,
    "INVENTORY": ASSETS,
    "ACCOUNTS_RECEIVABLE": ASSETS,
    "EQUIPMENT": ASSETS,
    "ACCOUNTS_PAYABLE": LIABILITIES,
    "LOANS_PAYABLE": LIABILITIES,
    "SALARIES_PAYABLE": LIABILITIES,
    "OWNER_EQUITY": EQUITY,
    "RETAINED_EARNINGS": EQUITY,
    "SALES_REVENUE": REVENUE,
    "OTHER_INCOME": REVENUE,
    "COST_OF_GOODS_SOLD": EXPENSES,
    "RENT_EXPENSE": EXPENSES,
    "UTILITIES_EXPENSE": EXPENSES,
    "SALARIES_EXPENSE": EXPENSES,
    "ADVERTISING_EXPENSE": EXPENSES,
    "OTHER_EXPENSES": EXPENSES,
}

ENTRY_TYPES = [
    "SALE",
    "PURCHASE",
    "PAYMENT_RECEIVED",
    "PAYMENT_MADE",
    "EXPENSE",
    "INCOME",
    "ADJUSTMENT",
]


def account_type_for(account_name: str) -> str:
    try:
        return CHART_OF_ACCOUNTS[account_name]
    except KeyError:
        raise ValidationError(
            f"Unknown account: {account_name}",
            {"account_name": account_name, "allowed": sorted(CHART_OF_ACCOUNTS)},
        )


# =============================================================================
# POSTING
# =============================================================================

def _post_pair(
    *,
    entry_type: str,
    debit_account: str,
    credit_account: str,
    amount_cents: int,
    debit_description: str,
    credit_description: str,
    order_id: int | None = None,
    transaction_id: int | None = None,
    customer_id: int | None = None,
    corrects_group: str | None = None,
    user_id: int | None = None,
    notes: str | None = None,
    transaction_date: datetime | None = None,
) -> list[LedgerEntry]:
    """
    Write one balanced debit/credit pair.

    Flushes without committing; the pair becomes visible with the caller's
    commit or not at all.
    """
    if entry_type not in ENTRY_TYPES:
        raise ValidationError(f"Invalid entry type: {entry_type}", {"entry_type": entry_type})
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError(
            "Posting amount must be a positive integer number of cents",
            {"amount_cents": amount_cents},
        )

    posted_at = transaction_date or utcnow()
    group = next_document_number(document_type=POSTING_GROUP_SEQUENCE, prefix="PST", pad=6)

    sides = (
        (debit_account, amount_cents, 0, debit_description),
        (credit_account, 0, amount_cents, credit_description),
    )
    entries = []
    for account_name, debit, credit, description in sides:
        entry = LedgerEntry(
            transaction_id=transaction_id,
            order_id=order_id,
            customer_id=customer_id,
            entry_type=entry_type,
            debit_cents=debit,
            credit_cents=credit,
            account_type=account_type_for(account_name),
            account_name=account_name,
            description=description,
            reference_number=next_document_number(document_type=LEDGER_ENTRY_SEQUENCE, prefix="LED", pad=6),
            posting_group=group,
            corrects_group=corrects_group,
            transaction_date=posted_at,
            status=LEDGER_ACTIVE,
            created_by_user_id=user_id,
            notes=notes,
        )
        db.session.add(entry)
        entries.append(entry)

    db.session.flush()
    current_app.logger.info(
        "Posted %s pair %s: DR %s / CR %s %d",
        entry_type, group, debit_account, credit_account, amount_cents,
    )
    return entries


def post_sale(
    order_id: int,
    customer_id: int | None,
    amount_cents: int,
    payment_type: str = "Cash",
    *,
    user_id: int | None = None,
) -> list[LedgerEntry]:
    """
    Post a completed sale.

    Credit: DR ACCOUNTS_RECEIVABLE / CR SALES_REVENUE
    Cash:   DR CASH                / CR SALES_REVENUE
    """
    if payment_type == TX_CREDIT:
        debit_account = "ACCOUNTS_RECEIVABLE"
        debit_description = f"Sale to customer - Order #{order_id}"
    else:
        debit_account = "CASH"
        debit_description = f"Cash sale - Order #{order_id}"

    return _post_pair(
        entry_type="SALE",
        debit_account=debit_account,
        credit_account="SALES_REVENUE",
        amount_cents=amount_cents,
        debit_description=debit_description,
        credit_description=f"Sales revenue - Order #{order_id}",
        order_id=order_id,
        customer_id=customer_id,
        user_id=user_id,
    )


def post_payment_received(
    transaction_id: int,
    customer_id: int | None,
    amount_cents: int,
    *,
    user_id: int | None = None,
) -> list[LedgerEntry]:
    """Collect a receivable: DR CASH / CR ACCOUNTS_RECEIVABLE."""
    return _post_pair(
        entry_type="PAYMENT_RECEIVED",
        debit_account="CASH",
        credit_account="ACCOUNTS_RECEIVABLE",
        amount_cents=amount_cents,
        debit_description=f"Payment received from customer - Transaction #{transaction_id}",
        credit_description=f"Receivable settled - Transaction #{transaction_id}",
        transaction_id=transaction_id,
        customer_id=customer_id,
        user_id=user_id,
    )


# =============================================================================
# CORRECTIONS
# =============================================================================

def _load_group(posting_group: str) -> list[LedgerEntry]:
    entries = (
        db.session.query(LedgerEntry)
        .filter_by(posting_group=posting_group)
        .order_by(LedgerEntry.id)
        .all()
    )
    if not entries:
        raise NotFound(f"Posting not found: {posting_group}", {"posting_group": posting_group})
    return entries


def _append_note(entry: LedgerEntry, note: str | None) -> None:
    if note:
        entry.notes = f"{entry.notes}\n{note}" if entry.notes else note


def cancel_posting(posting_group: str, *, reason: str | None = None, user_id: int | None = None) -> list[LedgerEntry]:
    """
    Soft-delete a posting: both rows flip to CANCELLED.

    Cancelling the whole pair keeps the trial balance intact.
    """
    def _op():
        begin_write()
        entries = _load_group(posting_group)
        for entry in entries:
            entry.status = transition_ledger_group(entry.status, LEDGER_CANCELLED, posting_group=posting_group)
            _append_note(entry, reason)
        db.session.commit()
        current_app.logger.info("Cancelled posting %s (user=%s)", posting_group, user_id)
        return entries

    return run_with_retry(_op)


def correct_posting(
    posting_group: str,
    amount_cents: int,
    *,
    reason: str | None = None,
    user_id: int | None = None,
) -> list[LedgerEntry]:
    """
    Replace a posting's amount without editing it.

    Marks the original pair ADJUSTED and posts an ADJUSTMENT pair on the
    same accounts for the corrected amount.
    """
    amount_cents = positive_cents(amount_cents, "amount_cents")

    def _op():
        begin_write()
        entries = _load_group(posting_group)
        debit = next((e for e in entries if e.debit_cents > 0), None)
        credit = next((e for e in entries if e.credit_cents > 0), None)
        if debit is None or credit is None:
            raise PostingInconsistency(
                f"Posting {posting_group} is not a debit/credit pair",
                {"posting_group": posting_group, "entry_ids": [e.id for e in entries]},
            )

        for entry in entries:
            entry.status = transition_ledger_group(entry.status, LEDGER_ADJUSTED, posting_group=posting_group)
            _append_note(entry, reason)

        replacement = _post_pair(
            entry_type="ADJUSTMENT",
            debit_account=debit.account_name,
            credit_account=credit.account_name,
            amount_cents=amount_cents,
            debit_description=f"Correction of {posting_group}: {debit.description}"[:255],
            credit_description=f"Correction of {posting_group}: {credit.description}"[:255],
            order_id=debit.order_id,
            transaction_id=debit.transaction_id,
            customer_id=debit.customer_id,
            corrects_group=posting_group,
            user_id=user_id,
            notes=reason,
        )
        db.session.commit()
        return replacement

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def _active_filters(start: datetime | None, end: datetime | None) -> list:
    filters = [LedgerEntry.status == LEDGER_ACTIVE]
    if start is not None:
        filters.append(LedgerEntry.transaction_date >= start)
    if end is not None:
        filters.append(LedgerEntry.transaction_date <= end)
    return filters


def _date_range(start: datetime | None, end: datetime | None) -> dict:
    return {"from": to_utc_z(start), "to": to_utc_z(end)}


def _sums():
    return (
        func.coalesce(func.sum(LedgerEntry.debit_cents), 0).label("total_debit"),
        func.coalesce(func.sum(LedgerEntry.credit_cents), 0).label("total_credit"),
    )


def account_balance(account_name: str, start: datetime | None = None, end: datetime | None = None) -> dict:
    account_type = account_type_for(account_name)
    row = (
        db.session.query(*_sums())
        .filter(LedgerEntry.account_name == account_name, *_active_filters(start, end))
        .one()
    )
    total_debit = int(row.total_debit)
    total_credit = int(row.total_credit)
    return {
        "account_name": account_name,
        "account_type": account_type,
        "total_debit_cents": total_debit,
        "total_credit_cents": total_credit,
        "balance_cents": total_debit - total_credit,
        "date_range": _date_range(start, end),
    }


def _grouped_accounts(start, end, account_type: str | None = None) -> list[dict]:
    query = db.session.query(
        LedgerEntry.account_name,
        LedgerEntry.account_type,
        *_sums(),
    ).filter(*_active_filters(start, end))
    if account_type is not None:
        query = query.filter(LedgerEntry.account_type == account_type)

    rows = (
        query.group_by(LedgerEntry.account_name, LedgerEntry.account_type)
        .order_by(LedgerEntry.account_type, LedgerEntry.account_name)
        .all()
    )
    return [
        {
            "account_name": r.account_name,
            "account_type": r.account_type,
            "total_debit_cents": int(r.total_debit),
            "total_credit_cents": int(r.total_credit),
            "balance_cents": int(r.total_debit) - int(r.total_credit),
        }
        for r in rows
    ]


def trial_balance(start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Per-account debit/credit totals plus the reconciliation check.

    A nonzero difference is reported and logged, never adjusted away.
    """
    accounts = _grouped_accounts(start, end)
    total_debit = sum(a["total_debit_cents"] for a in accounts)
    total_credit = sum(a["total_credit_cents"] for a in accounts)
    difference = total_debit - total_credit

    if difference != 0:
        current_app.logger.error(
            "Trial balance does not reconcile: debit=%d credit=%d difference=%d",
            total_debit, total_credit, difference,
        )

    return {
        "accounts": accounts,
        "totals": {
            "total_debit_cents": total_debit,
            "total_credit_cents": total_credit,
            "difference_cents": difference,
            "balanced": difference == 0,
        },
        "date_range": _date_range(start, end),
    }


def profit_and_loss(start: datetime | None = None, end: datetime | None = None) -> dict:
    revenue = _grouped_accounts(start, end, REVENUE)
    expenses = _grouped_accounts(start, end, EXPENSES)

    for account in revenue:
        account["net_cents"] = account["total_credit_cents"] - account["total_debit_cents"]
    for account in expenses:
        account["net_cents"] = account["total_debit_cents"] - account["total_credit_cents"]

    total_revenue = sum(a["net_cents"] for a in revenue)
    total_expenses = sum(a["net_cents"] for a in expenses)

    return {
        "revenue": {"accounts": revenue, "total_cents": total_revenue},
        "expenses": {"accounts": expenses, "total_cents": total_expenses},
        "net_profit_cents": total_revenue - total_expenses,
        "date_range": _date_range(start, end),
    }


def balance_sheet(start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Assets vs liabilities + equity.

    balance_cents is assets - (liabilities + equity). Revenue and expenses
    are never closed into RETAINED_EARNINGS by a posting, so that figure
    carries the unclosed net profit; it is reported as current_earnings_cents
    and balance_after_earnings_cents is zero exactly when the books reconcile.
    """
    assets = _grouped_accounts(start, end, ASSETS)
    liabilities = _grouped_accounts(start, end, LIABILITIES)
    equity = _grouped_accounts(start, end, EQUITY)

    for account in assets:
        account["net_cents"] = account["total_debit_cents"] - account["total_credit_cents"]
    for account in liabilities + equity:
        account["net_cents"] = account["total_credit_cents"] - account["total_debit_cents"]

    total_assets = sum(a["net_cents"] for a in assets)
    total_liabilities = sum(a["net_cents"] for a in liabilities)
    total_equity = sum(a["net_cents"] for a in equity)
    current_earnings = profit_and_loss(start, end)["net_profit_cents"]
    balance = total_assets - (total_liabilities + total_equity)

    return {
        "assets": {"accounts": assets, "total_cents": total_assets},
        "liabilities": {"accounts": liabilities, "total_cents": total_liabilities},
        "equity": {"accounts": equity, "total_cents": total_equity},
        "current_earnings_cents": current_earnings,
        "balance_cents": balance,
        "balance_after_earnings_cents": balance - current_earnings,
        "date_range": _date_range(start, end),
    }


def unbalanced_postings(start: datetime | None = None, end: datetime | None = None) -> list[dict]:
    """ACTIVE posting groups whose own debits and credits differ."""
    total_debit, total_credit = _sums()
    rows = (
        db.session.query(LedgerEntry.posting_group, total_debit, total_credit)
        .filter(*_active_filters(start, end))
        .group_by(LedgerEntry.posting_group)
        .having(func.sum(LedgerEntry.debit_cents) != func.sum(LedgerEntry.credit_cents))
        .order_by(LedgerEntry.posting_group)
        .all()
    )
    return [
        {
            "posting_group": r.posting_group,
            "total_debit_cents": int(r.total_debit),
            "total_credit_cents": int(r.total_credit),
        }
        for r in rows
    ]


def verify_books(start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Raise PostingInconsistency if the books do not reconcile.

    Returns the trial balance totals when they do.
    """
    trial = trial_balance(start, end)
    broken = unbalanced_postings(start, end)
    if not trial["totals"]["balanced"] or broken:
        raise PostingInconsistency(
            "Ledger does not reconcile",
            {
                "totals": trial["totals"],
                "unbalanced_postings": broken,
                "date_range": trial["date_range"],
            },
        )
    return {"totals": trial["totals"], "date_range": trial["date_range"]}


def get_entry(entry_id: int) -> LedgerEntry:
    entry = db.session.get(LedgerEntry, entry_id)
    if entry is None:
        raise NotFound("Ledger entry not found", {"entry_id": entry_id})
    return entry


def list_entries(
    *,
    account_name: str | None = None,
    entry_type: str | None = None,
    status: str = LEDGER_ACTIVE,
    order_id: int | None = None,
    transaction_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    query = db.session.query(LedgerEntry).filter(LedgerEntry.status == status)
    if account_name:
        account_type_for(account_name)
        query = query.filter(LedgerEntry.account_name == account_name)
    if entry_type:
        query = query.filter(LedgerEntry.entry_type == entry_type)
    if order_id is not None:
        query = query.filter(LedgerEntry.order_id == order_id)
    if transaction_id is not None:
        query = query.filter(LedgerEntry.transaction_id == transaction_id)
    if start is not None:
        query = query.filter(LedgerEntry.transaction_date >= start)
    if end is not None:
        query = query.filter(LedgerEntry.transaction_date <= end)

    total = query.count()
    rows = (
        query.order_by(LedgerEntry.transaction_date.desc(), LedgerEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": rows,
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit,
    }

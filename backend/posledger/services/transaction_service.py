# Overview: Customer transactions (cash and credit), receivable collection and transaction queries.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import CustomerTransaction, Invoice, LedgerEntry, Order
from ..time_utils import utcnow
from ..validation import choice, positive_cents
from . import ledger_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .customer_service import get_customer
from .invoice_service import create_invoice_locked
from .state_machine import (
    TX_CREDIT,
    TX_PENDING,
    TX_STATUSES,
    TX_TYPES,
    default_transaction_status,
    transition_transaction_to_paid,
)


def record_transaction(
    customer_id: int,
    amount_cents,
    type: str,
    *,
    status: str | None = None,
    order_id: int | None = None,
    notes: str | None = None,
    due_date: datetime | None = None,
    user_id: int | None = None,
) -> tuple[CustomerTransaction, Invoice]:
    """
    Record a customer transaction and derive its invoice.

    Both rows commit together; a transaction never exists without its
    primary invoice. Status defaults to Paid for Cash and Pending for Credit.
    """
    if customer_id is None:
        raise ValidationError("customer_id is required", {"field": "customer_id"})
    amount_cents = positive_cents(amount_cents, "amount_cents")
    choice(type, "type", TX_TYPES)
    if status is None:
        status = default_transaction_status(type)
    else:
        choice(status, "status", TX_STATUSES)

    def _op():
        begin_write()
        get_customer(customer_id)
        if order_id is not None and db.session.get(Order, order_id) is None:
            raise NotFound("Order not found", {"order_id": order_id})

        tx = CustomerTransaction(
            customer_id=customer_id,
            order_id=order_id,
            amount_cents=amount_cents,
            type=type,
            status=status,
            notes=notes,
            created_by_user_id=user_id,
            paid_at=utcnow() if status != TX_PENDING else None,
        )
        db.session.add(tx)
        db.session.flush()

        invoice = create_invoice_locked(tx, due_date=due_date, user_id=user_id)

        db.session.commit()
        current_app.logger.info(
            "Transaction %s recorded: %s %s amount=%d, invoice %s",
            tx.id, tx.type, tx.status, tx.amount_cents, invoice.invoice_number,
        )
        return tx, invoice

    return run_with_retry(_op)


def pay_receivable(transaction_id: int, *, user_id: int | None = None) -> tuple[CustomerTransaction, list[LedgerEntry]]:
    """
    Collect a pending receivable.

    The status flip and the PAYMENT_RECEIVED pair commit together. The
    linked invoice is left alone; invoice payments are applied separately.
    """
    def _op():
        begin_write()
        tx = lock_for_update(
            db.session.query(CustomerTransaction).filter_by(id=transaction_id)
        ).first()
        if tx is None:
            raise NotFound("Transaction not found", {"transaction_id": transaction_id})

        tx.status = transition_transaction_to_paid(tx.status, transaction_id=tx.id)
        tx.paid_at = utcnow()

        entries = ledger_service.post_payment_received(
            tx.id,
            tx.customer_id,
            tx.amount_cents,
            user_id=user_id,
        )
        db.session.commit()
        current_app.logger.info("Transaction %s paid (amount=%d)", tx.id, tx.amount_cents)
        return tx, entries

    return run_with_retry(_op)


def get_transaction(transaction_id: int) -> CustomerTransaction:
    tx = db.session.get(CustomerTransaction, transaction_id)
    if tx is None:
        raise NotFound("Transaction not found", {"transaction_id": transaction_id})
    return tx


def list_transactions(
    *,
    type: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    query = db.session.query(CustomerTransaction)
    if type:
        choice(type, "type", TX_TYPES)
        query = query.filter(CustomerTransaction.type == type)
    if status:
        choice(status, "status", TX_STATUSES)
        query = query.filter(CustomerTransaction.status == status)
    if customer_id is not None:
        query = query.filter(CustomerTransaction.customer_id == customer_id)

    total = query.count()
    rows = (
        query.order_by(CustomerTransaction.created_at.desc(), CustomerTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": rows, "total": total, "page": page, "pages": (total + limit - 1) // limit}


def list_receivables(*, customer_id: int | None = None, page: int = 1, limit: int = 50) -> dict:
    """Credit transactions still awaiting collection."""
    return list_transactions(type=TX_CREDIT, status=TX_PENDING, customer_id=customer_id, page=page, limit=limit)

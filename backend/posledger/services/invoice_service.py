# Overview: Invoice derivation from transactions, payment application and receivable queries.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import case, func, update

from ..extensions import db
from ..errors import DuplicateInvoice, InvalidTransition, NotFound, ValidationError
from ..models import CustomerTransaction, Invoice, InvoiceItem, InvoicePayment, Order
from ..time_utils import utcnow, to_utc_z
from ..validation import choice, positive_cents
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_document_number, INVOICE_SEQUENCE
from .state_machine import (
    INVOICE_OUTSTANDING,
    INVOICE_PARTIAL,
    INVOICE_PAID,
    INVOICE_STATUSES,
    INVOICE_SALES,
    INVOICE_RECEIPT,
    INVOICE_TYPES,
    PAYMENT_METHODS,
    TX_CREDIT,
    derive_invoice_status,
    transition_invoice,
)
"""
Invoice Invariants (authoritative)

- At most one primary (non-Receipt) invoice per transaction. Checked before
  insert and backed by a partial unique index.
- paid_amount_cents only grows, through a single conditional UPDATE that
  refuses to push it past original_amount_cents.
- remaining_amount_cents and status are derived from original and paid on
  every payment; status only moves Outstanding -> Partial -> Paid.
- The payment that settles an invoice produces exactly one Receipt invoice
  for that payment's amount.
- Invoices never post to the ledger. Ledger postings come from order
  completion and receivable collection only.
"""


def _existing_primary(transaction_id: int) -> Invoice | None:
    return (
        db.session.query(Invoice)
        .filter(Invoice.transaction_id == transaction_id, Invoice.type != INVOICE_RECEIPT)
        .first()
    )


def _snapshot_order_items(invoice: Invoice, order_id: int | None) -> None:
    if order_id is None:
        return
    order = db.session.get(Order, order_id)
    if order is None:
        return
    invoice.discount_amount_cents = order.original_total_cents - order.total_cents
    for item in order.items:
        db.session.add(InvoiceItem(
            invoice_id=invoice.id,
            product_id=item.product_id,
            product_name=item.product.name if item.product else None,
            quantity=item.quantity,
            unit_price_cents=item.final_price_cents,
            total_price_cents=item.line_total_cents,
        ))


def create_invoice_locked(
    tx: CustomerTransaction,
    *,
    notes: str | None = None,
    due_date: datetime | None = None,
    user_id: int | None = None,
) -> Invoice:
    """
    Derive the primary invoice for a transaction inside the caller's
    write transaction. Does not commit.
    """
    existing = _existing_primary(tx.id)
    if existing is not None:
        raise DuplicateInvoice(
            "Invoice already exists for this transaction",
            {"transaction_id": tx.id, "invoice_id": existing.id, "invoice_number": existing.invoice_number},
        )

    if due_date is None and tx.type == TX_CREDIT:
        terms = current_app.config["INVOICE_CREDIT_TERMS_DAYS"]
        due_date = utcnow() + timedelta(days=terms)

    remaining, status = derive_invoice_status(tx.amount_cents, 0)
    invoice = Invoice(
        invoice_number=next_document_number(document_type=INVOICE_SEQUENCE, prefix="INV"),
        transaction_id=tx.id,
        customer_id=tx.customer_id,
        order_id=tx.order_id,
        original_amount_cents=tx.amount_cents,
        paid_amount_cents=0,
        remaining_amount_cents=remaining,
        status=status,
        type=INVOICE_SALES,
        payment_method=tx.type,
        due_date=due_date,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(invoice)
    db.session.flush()

    _snapshot_order_items(invoice, tx.order_id)
    db.session.flush()

    current_app.logger.info(
        "Invoice %s generated for transaction %s (amount=%d)",
        invoice.invoice_number, tx.id, tx.amount_cents,
    )
    return invoice


def generate_invoice(
    transaction_id: int,
    *,
    notes: str | None = None,
    due_date: datetime | None = None,
    user_id: int | None = None,
) -> Invoice:
    """Create the primary invoice for an existing transaction; a second request raises DuplicateInvoice."""
    def _op():
        begin_write()
        tx = db.session.get(CustomerTransaction, transaction_id)
        if tx is None:
            raise NotFound("Transaction not found", {"transaction_id": transaction_id})
        invoice = create_invoice_locked(tx, notes=notes, due_date=due_date, user_id=user_id)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def _active_invoice(invoice_id: int, *, lock: bool = False) -> Invoice:
    query = db.session.query(Invoice).filter(Invoice.id == invoice_id)
    if lock:
        query = lock_for_update(query)
    invoice = query.first()
    if invoice is None or not invoice.is_active:
        raise NotFound("Invoice not found", {"invoice_id": invoice_id})
    return invoice


def _reject_payment(invoice: Invoice, amount_cents: int) -> None:
    if invoice.status == INVOICE_PAID:
        raise InvalidTransition(
            "Invoice is already fully paid",
            {"invoice_id": invoice.id, "current_status": invoice.status},
        )
    remaining = invoice.original_amount_cents - invoice.paid_amount_cents
    if amount_cents > remaining:
        raise ValidationError(
            f"Payment amount cannot exceed remaining amount of {remaining}",
            {"invoice_id": invoice.id, "amount_cents": amount_cents, "remaining_amount_cents": remaining},
        )


def apply_invoice_payment(
    invoice_id: int,
    amount_cents,
    *,
    payment_method: str = "Cash",
    notes: str | None = None,
    user_id: int | None = None,
) -> tuple[Invoice, InvoicePayment, Invoice | None]:
    """
    Apply a payment to an invoice.

    Returns (invoice, payment, receipt); receipt is None unless this payment
    settled the invoice. Overpayment and payment on a Paid invoice are
    rejected without applying anything.
    """
    amount_cents = positive_cents(amount_cents, "amount_cents")
    choice(payment_method, "payment_method", PAYMENT_METHODS)

    def _op():
        begin_write()
        invoice = _active_invoice(invoice_id, lock=True)
        _reject_payment(invoice, amount_cents)
        previous_status = invoice.status

        stmt = (
            update(Invoice)
            .where(
                Invoice.id == invoice.id,
                Invoice.is_active.is_(True),
                Invoice.original_amount_cents - Invoice.paid_amount_cents >= amount_cents,
            )
            .values(paid_amount_cents=Invoice.paid_amount_cents + amount_cents)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        db.session.refresh(invoice)
        if not result.rowcount:
            # Lost a race after the checks above; report against the fresh row.
            _reject_payment(invoice, amount_cents)
            raise InvalidTransition(
                "Invoice changed while applying payment",
                {"invoice_id": invoice.id, "current_status": invoice.status},
            )

        remaining, derived = derive_invoice_status(invoice.original_amount_cents, invoice.paid_amount_cents)
        invoice.remaining_amount_cents = remaining
        invoice.status = transition_invoice(previous_status, derived, invoice_id=invoice.id)
        if notes:
            invoice.notes = notes

        payment = InvoicePayment(
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            payment_method=payment_method,
            notes=notes,
            remaining_after_cents=remaining,
            status_after=invoice.status,
            created_by_user_id=user_id,
        )
        db.session.add(payment)

        receipt = None
        if invoice.status == INVOICE_PAID and previous_status != INVOICE_PAID:
            receipt = Invoice(
                invoice_number=next_document_number(document_type=INVOICE_SEQUENCE, prefix="INV"),
                transaction_id=invoice.transaction_id,
                customer_id=invoice.customer_id,
                order_id=invoice.order_id,
                settles_invoice_id=invoice.id,
                original_amount_cents=amount_cents,
                paid_amount_cents=amount_cents,
                remaining_amount_cents=0,
                status=INVOICE_PAID,
                type=INVOICE_RECEIPT,
                payment_method=payment_method,
                notes=f"Payment received for Invoice {invoice.invoice_number}",
                created_by_user_id=user_id,
            )
            db.session.add(receipt)

        db.session.commit()
        current_app.logger.info(
            "Invoice %s payment %d applied: %s -> %s (remaining=%d)",
            invoice.invoice_number, amount_cents, previous_status, invoice.status, remaining,
        )
        return invoice, payment, receipt

    return run_with_retry(_op)


def soft_delete_invoice(invoice_id: int) -> Invoice:
    def _op():
        begin_write()
        invoice = _active_invoice(invoice_id, lock=True)
        invoice.is_active = False
        db.session.commit()
        current_app.logger.info("Invoice %s deactivated", invoice.invoice_number)
        return invoice

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    return _active_invoice(invoice_id)


def _paginate(query, page: int, limit: int) -> dict:
    total = query.count()
    rows = (
        query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": rows, "total": total, "page": page, "pages": (total + limit - 1) // limit}


def list_invoices(
    *,
    status: str | None = None,
    type: str | None = None,
    customer_id: int | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    query = db.session.query(Invoice).filter(Invoice.is_active.is_(True))
    if status:
        choice(status, "status", INVOICE_STATUSES)
        query = query.filter(Invoice.status == status)
    if type:
        choice(type, "type", INVOICE_TYPES)
        query = query.filter(Invoice.type == type)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    return _paginate(query, page, limit)


def invoices_for_transaction(transaction_id: int) -> list[Invoice]:
    return (
        db.session.query(Invoice)
        .filter(Invoice.transaction_id == transaction_id, Invoice.is_active.is_(True))
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )


def invoices_for_customer(
    customer_id: int,
    *,
    status: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    query = db.session.query(Invoice).filter(
        Invoice.customer_id == customer_id,
        Invoice.is_active.is_(True),
    )
    if status:
        choice(status, "status", INVOICE_STATUSES)
        query = query.filter(Invoice.status == status)

    result = _paginate(query, page, limit)
    result["total_outstanding_cents"] = int(
        db.session.query(func.coalesce(func.sum(Invoice.remaining_amount_cents), 0))
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.is_active.is_(True),
            Invoice.status.in_([INVOICE_OUTSTANDING, INVOICE_PARTIAL]),
        )
        .scalar()
    )
    return result


def invoice_summary(start: datetime | None = None, end: datetime | None = None) -> dict:
    """Counts and money totals over active invoices created within [start, end]."""
    def _count(status):
        return func.coalesce(func.sum(case((Invoice.status == status, 1), else_=0)), 0)

    query = db.session.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.original_amount_cents), 0),
        func.coalesce(func.sum(Invoice.paid_amount_cents), 0),
        func.coalesce(func.sum(Invoice.remaining_amount_cents), 0),
        _count(INVOICE_PAID),
        _count(INVOICE_PARTIAL),
        _count(INVOICE_OUTSTANDING),
    ).filter(Invoice.is_active.is_(True))
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at <= end)

    row = query.one()
    return {
        "total_invoices": int(row[0]),
        "total_amount_cents": int(row[1]),
        "total_paid_cents": int(row[2]),
        "total_outstanding_cents": int(row[3]),
        "paid_invoices": int(row[4]),
        "partial_invoices": int(row[5]),
        "outstanding_invoices": int(row[6]),
        "date_range": {"from": to_utc_z(start), "to": to_utc_z(end)},
    }

# Overview: Status vocabularies and transition rules for orders, transactions, invoices and ledger entries.

"""
Every status in the engine moves along a fixed set of edges. Services never
assign a status string directly; they ask this module whether the edge is
legal (or derive the status from amounts) and get a typed error back if not.
"""

from __future__ import annotations

from ..errors import InvalidTransition, ValidationError


# =============================================================================
# ORDER STATUS
# =============================================================================

ORDER_PENDING = "pending"
ORDER_COMPLETED = "completed"
ORDER_CANCELLED = "cancelled"

ORDER_STATUSES = [ORDER_PENDING, ORDER_COMPLETED, ORDER_CANCELLED]

ORDER_TRANSITIONS = {
    ORDER_PENDING: {ORDER_COMPLETED, ORDER_CANCELLED},
    ORDER_COMPLETED: set(),
    ORDER_CANCELLED: set(),
}


def transition_order(current: str, target: str, *, order_id: int | None = None) -> str:
    """Return target if pending -> target is a legal edge, else raise."""
    if target not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid order status: {target}",
            {"order_id": order_id, "requested_status": target, "allowed": ORDER_STATUSES},
        )
    if target not in ORDER_TRANSITIONS.get(current, set()):
        raise InvalidTransition(
            f"Cannot change order status from {current} to {target}",
            {"order_id": order_id, "current_status": current, "requested_status": target},
        )
    return target


# =============================================================================
# TRANSACTION STATUS / TYPE
# =============================================================================

TX_CASH = "Cash"
TX_CREDIT = "Credit"
TX_TYPES = [TX_CASH, TX_CREDIT]

TX_PENDING = "Pending"
TX_PAID = "Paid"
TX_STATUSES = [TX_PENDING, TX_PAID]


def default_transaction_status(tx_type: str) -> str:
    return TX_PAID if tx_type == TX_CASH else TX_PENDING


def transition_transaction_to_paid(current: str, *, transaction_id: int | None = None) -> str:
    if current != TX_PENDING:
        raise InvalidTransition(
            "Transaction already paid",
            {"transaction_id": transaction_id, "current_status": current},
        )
    return TX_PAID


# =============================================================================
# INVOICE STATUS / TYPE
# =============================================================================

INVOICE_OUTSTANDING = "Outstanding"
INVOICE_PARTIAL = "Partial"
INVOICE_PAID = "Paid"
INVOICE_STATUSES = [INVOICE_OUTSTANDING, INVOICE_PARTIAL, INVOICE_PAID]

# Position in the one-way progression Outstanding -> Partial -> Paid
_INVOICE_RANK = {INVOICE_OUTSTANDING: 0, INVOICE_PARTIAL: 1, INVOICE_PAID: 2}

INVOICE_SALES = "Sales"
INVOICE_PAYMENT = "Payment"
INVOICE_CREDIT = "Credit"
INVOICE_RECEIPT = "Receipt"
INVOICE_TYPES = [INVOICE_SALES, INVOICE_PAYMENT, INVOICE_CREDIT, INVOICE_RECEIPT]

PAYMENT_METHODS = ["Cash", "Credit", "Bank Transfer", "Cheque"]


def derive_invoice_status(original_cents: int, paid_cents: int) -> tuple[int, str]:
    """Return (remaining, status) from the two stored amounts."""
    remaining = original_cents - paid_cents
    if remaining <= 0:
        return remaining, INVOICE_PAID
    if paid_cents > 0:
        return remaining, INVOICE_PARTIAL
    return remaining, INVOICE_OUTSTANDING


def transition_invoice(current: str, target: str, *, invoice_id: int | None = None) -> str:
    """Invoice status may stay put or move forward, never back."""
    if _INVOICE_RANK[target] < _INVOICE_RANK[current]:
        raise InvalidTransition(
            f"Invoice status cannot move from {current} to {target}",
            {"invoice_id": invoice_id, "current_status": current, "requested_status": target},
        )
    return target


# =============================================================================
# LEDGER STATUS
# =============================================================================

LEDGER_ACTIVE = "ACTIVE"
LEDGER_CANCELLED = "CANCELLED"
LEDGER_ADJUSTED = "ADJUSTED"
LEDGER_STATUSES = [LEDGER_ACTIVE, LEDGER_CANCELLED, LEDGER_ADJUSTED]


def transition_ledger_group(current: str, target: str, *, posting_group: str | None = None) -> str:
    """Only ACTIVE postings can be cancelled or adjusted."""
    if current != LEDGER_ACTIVE or target not in (LEDGER_CANCELLED, LEDGER_ADJUSTED):
        raise InvalidTransition(
            f"Cannot change posting status from {current} to {target}",
            {"posting_group": posting_group, "current_status": current, "requested_status": target},
        )
    return target

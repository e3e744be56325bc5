"""
Order Service - reservation-first order lifecycle

WHY: An order holds stock from the moment it is placed, but physical stock
and the books only move when it completes. Cancelling hands the held units
back to availability.

LIFECYCLE:
- place_order: price + reserve, order starts pending
- pending -> completed: commit stock, post SALE pair
- pending -> cancelled: release reservation
- completed / cancelled are terminal
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import NotFound, PosError
from ..models import Order, OrderItem, LedgerEntry
from ..time_utils import utcnow
from ..validation import choice
from . import ledger_service
from .catalog_service import atomic_adjust_reserved, atomic_commit_stock
from .concurrency import begin_write, lock_for_update, run_with_retry
from .customer_service import get_customer
from .document_service import next_document_number, ORDER_SEQUENCE
from .pricing_service import PricingResult, reserve_order_items
from .state_machine import (
    ORDER_PENDING,
    ORDER_COMPLETED,
    ORDER_CANCELLED,
    ORDER_STATUSES,
    TX_CASH,
    TX_TYPES,
    transition_order,
)


@dataclass
class OrderTransitionResult:
    """
    Outcome of a status change.

    ledger_error is a secondary failure: the stock commit and status change
    already stand when it is set.
    """
    order: Order
    ledger_entries: list[LedgerEntry] = field(default_factory=list)
    ledger_error: dict | None = None
    skipped_items: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "ledger_entries": [entry.to_dict() for entry in self.ledger_entries],
            "ledger_error": self.ledger_error,
            "skipped_items": self.skipped_items,
        }


def place_order(
    customer_id: int | None,
    items,
    *,
    created_by_user_id: int | None = None,
    threshold_cents: int | None = None,
) -> tuple[Order, PricingResult]:
    """
    Accept a sale request: price it, reserve stock, persist a pending order.

    All-or-nothing: if any line cannot be reserved the whole transaction
    rolls back and no counter moves.
    """
    def _op():
        begin_write()
        if customer_id is not None:
            get_customer(customer_id)

        pricing = reserve_order_items(items, threshold_cents=threshold_cents)

        order = Order(
            order_number=next_document_number(document_type=ORDER_SEQUENCE, prefix="ORD"),
            customer_id=customer_id,
            status=ORDER_PENDING,
            original_total_cents=pricing.original_total_cents,
            total_cents=pricing.final_total_cents,
            discount_applied=pricing.discount_applied,
            created_by_user_id=created_by_user_id,
        )
        db.session.add(order)
        db.session.flush()

        for item in pricing.items:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                discount_bps=item.discount_bps,
                final_price_cents=item.final_price_cents,
                line_total_cents=item.line_total_cents,
            ))

        db.session.commit()
        current_app.logger.info(
            "Order %s placed: %d line(s), total=%d (discount_applied=%s)",
            order.order_number, len(pricing.items), order.total_cents, pricing.discount_applied,
        )
        return order, pricing

    return run_with_retry(_op)


def _commit_items(order: Order) -> list[dict]:
    skipped = []
    for item in order.items:
        if not atomic_commit_stock(item.product_id, item.quantity):
            current_app.logger.warning(
                "Order %s: reserved stock below %d for product %s; item skipped on completion",
                order.order_number, item.quantity, item.product_id,
            )
            skipped.append({"order_item_id": item.id, "product_id": item.product_id, "quantity": item.quantity})
    return skipped


def _release_items(order: Order) -> list[dict]:
    skipped = []
    for item in order.items:
        if not atomic_adjust_reserved(item.product_id, -item.quantity):
            current_app.logger.warning(
                "Order %s: reserved stock below %d for product %s; item skipped on cancellation",
                order.order_number, item.quantity, item.product_id,
            )
            skipped.append({"order_item_id": item.id, "product_id": item.product_id, "quantity": item.quantity})
    return skipped


def _post_sale_secondary(order: Order, user_id: int | None) -> tuple[list[LedgerEntry], dict | None]:
    """
    Post the SALE pair inside a SAVEPOINT.

    The pair is atomic on its own; a failure rolls back only the savepoint
    and is handed back to the caller instead of undoing fulfillment.
    A zero-total order has nothing to book and posts no pair.
    """
    if order.total_cents == 0:
        current_app.logger.info("Order %s totals 0; no SALE posting", order.order_number)
        return [], None

    try:
        with db.session.begin_nested():
            entries = ledger_service.post_sale(
                order.id,
                order.customer_id,
                order.total_cents,
                order.payment_type,
                user_id=user_id,
            )
        return entries, None
    except (PosError, SQLAlchemyError) as exc:
        current_app.logger.exception("Ledger posting failed for order %s", order.order_number)
        details = exc.details if isinstance(exc, PosError) else {}
        return [], {
            "error": str(exc),
            "type": type(exc).__name__,
            "order_id": order.id,
            "amount_cents": order.total_cents,
            "details": details,
        }


def set_order_status(
    order_id: int,
    status: str,
    *,
    payment_type: str = TX_CASH,
    user_id: int | None = None,
) -> OrderTransitionResult:
    """
    Move a pending order to completed or cancelled.

    Raises InvalidTransition for any change out of a terminal state.
    """
    choice(payment_type, "payment_type", TX_TYPES)
    choice(status, "status", ORDER_STATUSES)

    def _op():
        begin_write()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFound("Order not found", {"order_id": order_id})

        new_status = transition_order(order.status, status, order_id=order.id)

        if new_status == ORDER_COMPLETED:
            skipped = _commit_items(order)
            order.status = ORDER_COMPLETED
            order.completed_at = utcnow()
            order.payment_type = payment_type
            entries, ledger_error = _post_sale_secondary(order, user_id)
        else:
            skipped = _release_items(order)
            order.status = ORDER_CANCELLED
            order.cancelled_at = utcnow()
            entries, ledger_error = [], None

        db.session.commit()
        current_app.logger.info("Order %s -> %s", order.order_number, order.status)
        return OrderTransitionResult(
            order=order,
            ledger_entries=entries,
            ledger_error=ledger_error,
            skipped_items=skipped,
        )

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found", {"order_id": order_id})
    return order


def list_orders(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    query = db.session.query(Order)
    if status:
        choice(status, "status", ORDER_STATUSES)
        query = query.filter(Order.status == status)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)

    total = query.count()
    rows = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": rows, "total": total, "page": page, "pages": (total + limit - 1) // limit}

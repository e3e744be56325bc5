# Overview: Pricing & reservation engine; validates order lines, prices them and reserves stock.

"""
Pricing & Reservation

WHY: An order's price depends on the whole basket (volume discount), and
its stock must be held before anyone else can sell the same units.

PHASES (kept separate on purpose; the threshold depends on the whole
undiscounted basket, not on any single line):
1. Provisional total: look up every product, check availability, sum list prices.
2. Final prices: if the provisional total reaches the threshold, apply each
   line's category discount; otherwise final price = list price.
3. Reserve: one conditional UPDATE per line. Any failure raises and the
   caller's transaction rolls back every reservation made so far.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import InsufficientStock, ValidationError
from ..validation import positive_int, coerce_int
from .catalog_service import get_product, available_stock, atomic_adjust_reserved


@dataclass(frozen=True)
class PricedItem:
    product_id: int
    quantity: int
    unit_price_cents: int
    discount_bps: int
    final_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.final_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_bps": self.discount_bps,
            "final_price_cents": self.final_price_cents,
            "line_total_cents": self.line_total_cents,
        }


@dataclass
class PricingResult:
    items: list[PricedItem] = field(default_factory=list)
    original_total_cents: int = 0
    final_total_cents: int = 0
    discount_applied: bool = False
    threshold_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "original_total_cents": self.original_total_cents,
            "final_total_cents": self.final_total_cents,
            "discount_applied": self.discount_applied,
            "threshold_cents": self.threshold_cents,
        }


def discounted_price_cents(price_cents: int, discount_bps: int) -> int:
    """List price minus discount, discount rounded to the nearest cent (half-up)."""
    if discount_bps <= 0:
        return price_cents
    discount = (price_cents * discount_bps + 5000) // 10000
    return price_cents - discount


def normalize_items(items) -> list[tuple[int, int]]:
    """
    Accept [{"product_id": 1, "quantity": 2}, ...] or [(1, 2), ...].

    Raises ValidationError for an empty list or a malformed line.
    """
    if not items:
        raise ValidationError("Order must contain at least 1 item", {"items": []})

    normalized = []
    for index, item in enumerate(items):
        if isinstance(item, dict):
            product_id = item.get("product_id")
            quantity = item.get("quantity")
        else:
            try:
                product_id, quantity = item
            except (TypeError, ValueError):
                raise ValidationError(f"items[{index}] must be a product_id/quantity pair", {"index": index})
        if product_id is None:
            raise ValidationError(f"items[{index}].product_id required", {"index": index})
        normalized.append((
            coerce_int(product_id, f"items[{index}].product_id"),
            positive_int(quantity, f"items[{index}].quantity"),
        ))
    return normalized


def _provisional_total(lines: list[tuple[int, int]]) -> tuple[int, dict]:
    requested: dict[int, int] = {}
    for product_id, quantity in lines:
        requested[product_id] = requested.get(product_id, 0) + quantity

    products = {}
    for product_id, quantity in requested.items():
        product = get_product(product_id, require_active=True)
        available = available_stock(product)
        if available < quantity:
            raise InsufficientStock(
                f"Insufficient stock for product: {product.name}. Available: {available}",
                {
                    "product_id": product_id,
                    "product_name": product.name,
                    "requested_quantity": quantity,
                    "available": available,
                },
            )
        products[product_id] = product

    total = sum(products[pid].price_cents * qty for pid, qty in lines)
    return total, products


def reserve_order_items(items, *, threshold_cents: int | None = None) -> PricingResult:
    """
    Price and reserve an order basket inside the caller's transaction.

    The caller owns commit/rollback; on any raise here nothing must be
    committed, which is what keeps reservation all-or-nothing.
    """
    if threshold_cents is None:
        threshold_cents = current_app.config["ORDER_DISCOUNT_THRESHOLD_CENTS"]

    lines = normalize_items(items)

    # Phase 1: provisional total at list prices
    original_total, products = _provisional_total(lines)
    apply_discount = original_total >= threshold_cents

    # Phase 2: final per-unit prices
    priced = []
    for product_id, quantity in lines:
        product = products[product_id]
        discount_bps = product.category.discount_bps if apply_discount else 0
        priced.append(PricedItem(
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=product.price_cents,
            discount_bps=discount_bps,
            final_price_cents=discounted_price_cents(product.price_cents, discount_bps),
        ))

    # Phase 3: reserve
    for item in priced:
        if not atomic_adjust_reserved(item.product_id, item.quantity):
            product = get_product(item.product_id)
            raise InsufficientStock(
                f"Insufficient stock for product: {product.name}. Available: {available_stock(product)}",
                {
                    "product_id": item.product_id,
                    "product_name": product.name,
                    "requested_quantity": item.quantity,
                    "available": available_stock(product),
                },
            )

    return PricingResult(
        items=priced,
        original_total_cents=original_total,
        final_total_cents=sum(item.line_total_cents for item in priced),
        discount_applied=apply_discount,
        threshold_cents=threshold_cents,
    )

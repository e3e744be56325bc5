# Overview: Catalog collaborator; product lookups and the atomic stock counter primitives.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import Category, Product
"""
Stock Counter Invariants (authoritative)

- available = stock_quantity - reserved_stock, and 0 <= reserved_stock <= stock_quantity.
- Counters are only changed by the three conditional UPDATEs below. Each one
  checks and writes in a single statement, so two concurrent requests can
  never both pass the availability check on the same units.
- Reserve: reserved += q          WHERE stock - reserved >= q
- Release: reserved -= q          WHERE reserved >= q
- Commit:  stock -= q, reserved -= q WHERE reserved >= q AND stock >= q
- A zero rowcount means the guard failed; callers decide whether that is an
  error (reservation) or a logged skip (commit/release).
"""


def _expire_cached_product(product_id: int) -> None:
    # Core UPDATEs bypass the identity map; drop stale counters if loaded.
    key = db.session.identity_key(Product, product_id)
    cached = db.session.identity_map.get(key)
    if cached is not None:
        db.session.expire(cached, ["stock_quantity", "reserved_stock", "updated_at"])


def get_product(product_id: int, *, require_active: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product not found: {product_id}", {"product_id": product_id})
    if require_active and not product.is_active:
        raise NotFound(f"Product is inactive: {product_id}", {"product_id": product_id})
    return product


def available_stock(product: Product) -> int:
    return product.stock_quantity - product.reserved_stock


def atomic_adjust_reserved(product_id: int, delta: int) -> bool:
    """
    Move units between available and reserved.

    delta > 0 reserves (guarded by availability), delta < 0 releases
    (guarded by the reserved counter). Returns False when the guard fails.
    """
    if delta == 0:
        return True

    stmt = update(Product).where(Product.id == product_id)
    if delta > 0:
        stmt = stmt.where(Product.stock_quantity - Product.reserved_stock >= delta)
    else:
        stmt = stmt.where(Product.reserved_stock >= -delta)
    stmt = stmt.values(reserved_stock=Product.reserved_stock + delta).execution_options(
        synchronize_session=False
    )

    result = db.session.execute(stmt)
    _expire_cached_product(product_id)
    return bool(result.rowcount)


def atomic_commit_stock(product_id: int, quantity: int) -> bool:
    """Ship reserved units: decrement both counters together."""
    if quantity <= 0:
        raise ValidationError("quantity must be at least 1", {"product_id": product_id, "quantity": quantity})

    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.reserved_stock >= quantity,
            Product.stock_quantity >= quantity,
        )
        .values(
            stock_quantity=Product.stock_quantity - quantity,
            reserved_stock=Product.reserved_stock - quantity,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    _expire_cached_product(product_id)
    return bool(result.rowcount)


def check_stock_invariants() -> list[dict]:
    """
    Return every product whose counters break the stock invariant.

    Empty list means the catalog is consistent.
    """
    rows = (
        db.session.query(Product)
        .filter(
            (Product.stock_quantity < 0)
            | (Product.reserved_stock < 0)
            | (Product.reserved_stock > Product.stock_quantity)
        )
        .order_by(Product.id)
        .all()
    )
    return [
        {
            "product_id": p.id,
            "product_code": p.product_code,
            "stock_quantity": p.stock_quantity,
            "reserved_stock": p.reserved_stock,
        }
        for p in rows
    ]


def create_category(name: str, discount_bps: int = 0, description: str | None = None) -> Category:
    if not name:
        raise ValidationError("name is required", {"field": "name"})
    if discount_bps < 0 or discount_bps > 10000:
        raise ValidationError(
            "discount_bps must be between 0 and 10000",
            {"field": "discount_bps", "value": discount_bps},
        )
    category = Category(name=name, discount_bps=discount_bps, description=description)
    db.session.add(category)
    db.session.commit()
    return category


def create_product(
    *,
    product_code: str,
    name: str,
    category_id: int,
    price_cents: int,
    stock_quantity: int = 0,
    description: str | None = None,
) -> Product:
    if price_cents < 0:
        raise ValidationError("price_cents must be >= 0", {"field": "price_cents", "value": price_cents})
    if stock_quantity < 0:
        raise ValidationError("stock_quantity must be >= 0", {"field": "stock_quantity", "value": stock_quantity})
    if db.session.get(Category, category_id) is None:
        raise NotFound(f"Category not found: {category_id}", {"category_id": category_id})

    product = Product(
        product_code=product_code,
        name=name,
        category_id=category_id,
        price_cents=price_cents,
        stock_quantity=stock_quantity,
        reserved_stock=0,
        description=description,
    )
    db.session.add(product)
    db.session.commit()
    return product

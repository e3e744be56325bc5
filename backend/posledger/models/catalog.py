from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    """
    Product category carrying the volume discount.

    discount_bps is in basis points (1500 = 15%). It only applies when the
    whole order crosses the configured discount threshold.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.CheckConstraint("discount_bps >= 0 AND discount_bps <= 10000", name="ck_categories_discount_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} discount_bps={self.discount_bps}>"

    @property
    def discount_percent(self) -> float:
        return self.discount_bps / 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "discount_bps": self.discount_bps,
            "discount_percent": self.discount_percent,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data with two-phase stock accounting.

    STOCK COUNTERS:
    - stock_quantity: physical on-hand units, only decremented on order completion
    - reserved_stock: units held by pending orders
    - available = stock_quantity - reserved_stock

    Both counters are mutated exclusively through the conditional UPDATE
    primitives in catalog_service; the CHECK constraints are the last line
    if a raw write ever slips through.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonneg"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_nonneg"),
        db.CheckConstraint("reserved_stock >= 0", name="ck_products_reserved_nonneg"),
        db.CheckConstraint("reserved_stock <= stock_quantity", name="ck_products_reserved_le_stock"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} code={self.product_code!r} "
            f"stock={self.stock_quantity} reserved={self.reserved_stock}>"
        )

    @property
    def available_stock(self) -> int:
        return self.stock_quantity - self.reserved_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_code": self.product_code,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "price_cents": self.price_cents,
            "stock_quantity": self.stock_quantity,
            "reserved_stock": self.reserved_stock,
            "available_stock": self.available_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """Customer reference data; only existence and display fields are used here."""
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

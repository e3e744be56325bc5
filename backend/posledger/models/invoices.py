from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Invoice(db.Model):
    """
    Invoice derived from a customer transaction.

    UNIQUENESS:
    - One primary (non-Receipt) invoice per transaction, enforced by a
      partial unique index and checked up front in invoice_service.
    - Receipt invoices reuse the transaction_id and point back at the
      invoice they settle via settles_invoice_id.

    DERIVED FIELDS:
    remaining_amount_cents and status are recomputed from original and paid
    amounts on every payment; they are never set independently.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index(
            "uq_invoices_primary_transaction",
            "transaction_id",
            unique=True,
            sqlite_where=db.text("type != 'Receipt'"),
            postgresql_where=db.text("type != 'Receipt'"),
        ),
        db.CheckConstraint("paid_amount_cents >= 0", name="ck_invoices_paid_nonneg"),
        db.CheckConstraint("paid_amount_cents <= original_amount_cents", name="ck_invoices_no_overpay"),
        db.Index("ix_invoices_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    settles_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)

    original_amount_cents = db.Column(db.Integer, nullable=False)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_amount_cents = db.Column(db.Integer, nullable=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="Outstanding", index=True)
    type = db.Column(db.String(16), nullable=False, default="Sales", index=True)
    payment_method = db.Column(db.String(32), nullable=False)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    transaction = db.relationship("CustomerTransaction", backref=db.backref("invoices", lazy=True))
    items = db.relationship("InvoiceItem", backref="invoice", lazy=True, order_by="InvoiceItem.id")
    payments = db.relationship("InvoicePayment", backref="invoice", lazy=True, order_by="InvoicePayment.id")

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "transaction_id": self.transaction_id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "settles_invoice_id": self.settles_invoice_id,
            "original_amount_cents": self.original_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "status": self.status,
            "type": self.type,
            "payment_method": self.payment_method,
            "due_date": to_utc_z(self.due_date) if self.due_date else None,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    """Snapshot of an order line at invoice time."""
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


class InvoicePayment(db.Model):
    """
    Append-only log of payments applied to an invoice.

    remaining_after_cents lets auditors confirm the remaining balance only
    ever went down.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_invoice_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    remaining_after_cents = db.Column(db.Integer, nullable=False)
    status_after = db.Column(db.String(16), nullable=False)
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "remaining_after_cents": self.remaining_after_cents,
            "status_after": self.status_after,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

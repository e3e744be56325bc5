from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CustomerTransaction(db.Model):
    """
    Customer-facing money movement.

    TYPES:
    - Cash: settled at the till, defaults to Paid
    - Credit: receivable, defaults to Pending until collected
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
        db.Index("ix_transactions_type_status", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    order = db.relationship("Order", backref=db.backref("transactions", lazy=True))

    def __repr__(self) -> str:
        return f"<CustomerTransaction id={self.id} type={self.type} status={self.status} amount={self.amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

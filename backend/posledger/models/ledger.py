from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class LedgerEntry(db.Model):
    """
    One side of a double-entry posting.

    INVARIANTS:
    - Entries are written in pairs sharing posting_group; a pair's debits
      equal its credits.
    - Exactly one of debit_cents / credit_cents is nonzero.
    - Amount columns are never updated. Cancelling flips status to
      CANCELLED; corrections mark the pair ADJUSTED and post a new
      ADJUSTMENT pair.
    - Reports aggregate status='ACTIVE' rows only.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.CheckConstraint("debit_cents >= 0", name="ck_ledger_debit_nonneg"),
        db.CheckConstraint("credit_cents >= 0", name="ck_ledger_credit_nonneg"),
        db.CheckConstraint(
            "(debit_cents > 0 AND credit_cents = 0) OR (debit_cents = 0 AND credit_cents > 0)",
            name="ck_ledger_one_sided",
        ),
        db.Index("ix_ledger_status_date", "status", "transaction_date"),
        db.Index("ix_ledger_account_status", "account_name", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    entry_type = db.Column(db.String(32), nullable=False, index=True)

    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    account_type = db.Column(db.String(16), nullable=False)
    account_name = db.Column(db.String(64), nullable=False)

    description = db.Column(db.String(255), nullable=False)

    # Unique per entry (e.g., "LED-000123")
    reference_number = db.Column(db.String(64), nullable=False, unique=True)
    # Shared by both sides of a pair (e.g., "PST-000061")
    posting_group = db.Column(db.String(64), nullable=False, index=True)
    # Set on ADJUSTMENT pairs: the group being corrected
    corrects_group = db.Column(db.String(64), nullable=True, index=True)

    transaction_date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    status = db.Column(db.String(16), nullable=False, default="ACTIVE")

    created_by_user_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} {self.account_name} "
            f"dr={self.debit_cents} cr={self.credit_cents} status={self.status}>"
        )

    @property
    def balance_cents(self) -> int:
        return self.debit_cents - self.credit_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "entry_type": self.entry_type,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "balance_cents": self.balance_cents,
            "account_type": self.account_type,
            "account_name": self.account_name,
            "description": self.description,
            "reference_number": self.reference_number,
            "posting_group": self.posting_group,
            "corrects_group": self.corrects_group,
            "transaction_date": to_utc_z(self.transaction_date),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

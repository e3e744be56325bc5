# Overview: Atomic document numbering for orders, invoices and ledger references.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


ORDER_SEQUENCE = "ORDER"
INVOICE_SEQUENCE = "INVOICE"
LEDGER_ENTRY_SEQUENCE = "LEDGER_ENTRY"
POSTING_GROUP_SEQUENCE = "POSTING_GROUP"


def _bump(document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(*, document_type: str, prefix: str, pad: int = 4) -> str:
    """
    Atomically allocate the next document number for a type.

    Runs inside the caller's transaction; the counter increment commits or
    rolls back together with the document that uses it.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    next_num = _bump(document_type)
    if next_num is None:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            # Another writer created the row first; fall back to the increment.
            next_num = _bump(document_type)
            if next_num is None:
                raise DocumentSequenceError(f"Could not allocate {document_type} number")

    return f"{prefix}-{next_num:0{pad}d}"

# Overview: Typed domain errors shared by services and routes.

"""
Error taxonomy for the fulfillment and ledger engine.

Every error carries a human message plus a details dict (entity id,
attempted value, current value) so the HTTP layer can build a precise
response without re-querying.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for all domain failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(PosError):
    """400-level input problem (empty order, non-positive amount, bad enum)."""


class NotFound(PosError):
    """Referenced product/order/transaction/invoice does not exist."""

    status_code = 404


class InsufficientStock(PosError):
    """Reservation would exceed available stock."""

    status_code = 409


class InvalidTransition(PosError):
    """State change attempted from a terminal or incompatible state."""

    status_code = 409


class DuplicateInvoice(PosError):
    """A primary invoice already exists for the transaction."""

    status_code = 409


class PostingInconsistency(PosError):
    """
    Books do not reconcile.

    Never auto-corrected; raised for an operator to investigate.
    """

    status_code = 500

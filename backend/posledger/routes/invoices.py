# Overview: Flask API routes for invoices; generation, payments, queries and soft delete.

# backend/posledger/routes/invoices.py
"""
Invoice API Routes

WHY: Invoices are the customer-facing view of a transaction. They track
how much of it has been settled and issue a receipt once it is.

DESIGN:
- One primary invoice per transaction (409 on a second generate)
- Payments only move paid_amount up; overpayment is rejected outright
- Deleting an invoice only deactivates it
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import invoice_service
from ..validation import optional_int, optional_datetime, page_args, date_range


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


# =============================================================================
# GENERATION & PAYMENT
# =============================================================================

@invoices_bp.post("/generate/<int:transaction_id>")
def generate_invoice_route(transaction_id: int):
    """
    Request body (all optional):
    {
        "notes": "...",
        "due_date": "2026-02-01",
        "user_id": 3
    }

    Returns:
        201: Invoice created
        404: Transaction not found
        409: Invoice already exists for this transaction
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.generate_invoice(
            transaction_id,
            notes=data.get("notes"),
            due_date=optional_datetime(data.get("due_date"), "due_date"),
            user_id=optional_int(data.get("user_id"), "user_id"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.put("/<int:invoice_id>/payment")
def apply_payment_route(invoice_id: int):
    """
    Request body:
    {
        "amount_cents": 50000,
        "payment_method": "Cash" | "Credit" | "Bank Transfer" | "Cheque",
        "notes": "...",
        "user_id": 3
    }

    Returns:
        200: {"invoice", "payment", "receipt"} (receipt only when settled)
        400: Non-positive amount or amount above remaining
        404: Invoice not found or deleted
        409: Invoice already fully paid
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice, payment, receipt = invoice_service.apply_invoice_payment(
            invoice_id,
            data.get("amount_cents"),
            payment_method=data.get("payment_method") or "Cash",
            notes=data.get("notes"),
            user_id=optional_int(data.get("user_id"), "user_id"),
        )
        return jsonify({
            "invoice": invoice.to_dict(),
            "payment": payment.to_dict(),
            "receipt": receipt.to_dict() if receipt else None,
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply invoice payment")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.soft_delete_invoice(invoice_id)
        return jsonify({"message": "Invoice deleted successfully", "invoice_id": invoice_id}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@invoices_bp.get("")
def list_invoices_route():
    """
    Query params:
    - status: Outstanding | Partial | Paid
    - type: Sales | Payment | Credit | Receipt
    - customer_id
    - page, limit
    """
    try:
        page, limit = page_args(request.args.get("page"), request.args.get("limit"))
        result = invoice_service.list_invoices(
            status=request.args.get("status") or None,
            type=request.args.get("type") or None,
            customer_id=optional_int(request.args.get("customer_id"), "customer_id"),
            page=page,
            limit=limit,
        )
        result["items"] = [i.to_dict(include_items=False) for i in result["items"]]
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/summary")
def invoice_summary_route():
    """Query params: from, to (inclusive)."""
    try:
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        return jsonify({"summary": invoice_service.invoice_summary(start, end)}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build invoice summary")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        data = invoice.to_dict()
        data["payments"] = [p.to_dict() for p in invoice.payments]
        return jsonify({"invoice": data}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/transaction/<int:transaction_id>")
def invoices_for_transaction_route(transaction_id: int):
    try:
        invoices = invoice_service.invoices_for_transaction(transaction_id)
        return jsonify({
            "count": len(invoices),
            "invoices": [i.to_dict() for i in invoices],
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load transaction invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/customer/<int:customer_id>")
def invoices_for_customer_route(customer_id: int):
    try:
        page, limit = page_args(request.args.get("page"), request.args.get("limit"))
        result = invoice_service.invoices_for_customer(
            customer_id,
            status=request.args.get("status") or None,
            page=page,
            limit=limit,
        )
        result["items"] = [i.to_dict(include_items=False) for i in result["items"]]
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer invoices")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for customer transactions and receivables.

from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import transaction_service
from ..validation import optional_int, optional_datetime, page_args


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("")
def record_transaction_route():
    """
    Record a cash or credit transaction; its invoice is generated in the same step.

    Request body:
    {
        "customer_id": 7,
        "amount_cents": 125000,
        "type": "Cash" | "Credit",
        "status": "Pending" | "Paid",   (optional, defaults by type)
        "order_id": 12,                 (optional)
        "notes": "...",                 (optional)
        "due_date": "2026-02-01",       (optional, credit terms apply otherwise)
        "user_id": 3                    (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        tx, invoice = transaction_service.record_transaction(
            optional_int(data.get("customer_id"), "customer_id"),
            data.get("amount_cents"),
            data.get("type"),
            status=data.get("status") or None,
            order_id=optional_int(data.get("order_id"), "order_id"),
            notes=data.get("notes"),
            due_date=optional_datetime(data.get("due_date"), "due_date"),
            user_id=optional_int(data.get("user_id"), "user_id"),
        )

        return jsonify({
            "transaction": tx.to_dict(),
            "invoice": invoice.to_dict(),
        }), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    try:
        page, limit = page_args(request.args.get("page"), request.args.get("limit"))
        result = transaction_service.list_transactions(
            type=request.args.get("type") or None,
            status=request.args.get("status") or None,
            customer_id=optional_int(request.args.get("customer_id"), "customer_id"),
            page=page,
            limit=limit,
        )
        result["items"] = [t.to_dict() for t in result["items"]]
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/receivables")
def list_receivables_route():
    """Credit transactions still Pending."""
    try:
        page, limit = page_args(request.args.get("page"), request.args.get("limit"))
        result = transaction_service.list_receivables(
            customer_id=optional_int(request.args.get("customer_id"), "customer_id"),
            page=page,
            limit=limit,
        )
        result["items"] = [t.to_dict() for t in result["items"]]
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list receivables")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.put("/pay/<int:transaction_id>")
def pay_receivable_route(transaction_id: int):
    """
    Collect a pending receivable and post PAYMENT_RECEIVED.

    Returns:
        200: {"transaction", "ledger_entries"}
        404: Transaction not found
        409: Transaction already paid
    """
    try:
        data = request.get_json(silent=True) or {}
        tx, entries = transaction_service.pay_receivable(
            transaction_id,
            user_id=optional_int(data.get("user_id"), "user_id"),
        )
        return jsonify({
            "transaction": tx.to_dict(),
            "ledger_entries": [e.to_dict() for e in entries],
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to pay receivable")
        return jsonify({"error": "Internal server error"}), 500

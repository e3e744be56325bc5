# Overview: Flask API routes for ledger entries, corrections and accounting reports.

from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import ledger_service
from ..validation import optional_int, page_args, date_range

"""
Time semantics:
- API accepts ISO-8601 dates or datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- from/to are inclusive and independent; a bare date as "to" covers the whole day.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


def _entries_payload(entries) -> list[dict]:
    return [e.to_dict() for e in entries]


@ledger_bp.get("")
def list_ledger_entries_route():
    """
    Query params:
    - account_name, entry_type, status (default ACTIVE)
    - order_id, transaction_id
    - from, to
    - page, limit
    """
    try:
        page, limit = page_args(request.args.get("page"), request.args.get("limit"))
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        result = ledger_service.list_entries(
            account_name=request.args.get("account_name") or None,
            entry_type=request.args.get("entry_type") or None,
            status=request.args.get("status") or "ACTIVE",
            order_id=optional_int(request.args.get("order_id"), "order_id"),
            transaction_id=optional_int(request.args.get("transaction_id"), "transaction_id"),
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
        result["items"] = _entries_payload(result["items"])
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list ledger entries")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/<int:entry_id>")
def get_ledger_entry_route(entry_id: int):
    try:
        return jsonify({"entry": ledger_service.get_entry(entry_id).to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load ledger entry")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CORRECTIONS
# =============================================================================

@ledger_bp.delete("/postings/<posting_group>")
def cancel_posting_route(posting_group: str):
    """
    Soft-delete both sides of a posting.

    Request body (optional): {"reason": "...", "user_id": 3}
    """
    try:
        data = request.get_json(silent=True) or {}
        entries = ledger_service.cancel_posting(
            posting_group,
            reason=data.get("reason"),
            user_id=optional_int(data.get("user_id"), "user_id"),
        )
        return jsonify({"posting_group": posting_group, "entries": _entries_payload(entries)}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel posting")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.post("/postings/<posting_group>/correct")
def correct_posting_route(posting_group: str):
    """
    Supersede a posting with an ADJUSTMENT pair for the corrected amount.

    Request body: {"amount_cents": 120000, "reason": "...", "user_id": 3}
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("amount_cents") is None:
            return jsonify({"error": "amount_cents required", "details": {"field": "amount_cents"}}), 400

        entries = ledger_service.correct_posting(
            posting_group,
            data.get("amount_cents"),
            reason=data.get("reason"),
            user_id=optional_int(data.get("user_id"), "user_id"),
        )
        return jsonify({
            "corrects_group": posting_group,
            "posting_group": entries[0].posting_group,
            "entries": _entries_payload(entries),
        }), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to correct posting")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# REPORTS
# =============================================================================

@ledger_bp.get("/account/balance")
def account_balance_route():
    try:
        account_name = request.args.get("account_name")
        if not account_name:
            return jsonify({"error": "account_name required", "details": {"field": "account_name"}}), 400
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        return jsonify(ledger_service.account_balance(account_name, start, end)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute account balance")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/reports/trial-balance")
def trial_balance_route():
    try:
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        return jsonify(ledger_service.trial_balance(start, end)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build trial balance")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/reports/profit-loss")
def profit_loss_route():
    try:
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        return jsonify(ledger_service.profit_and_loss(start, end)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build profit and loss")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/reports/balance-sheet")
def balance_sheet_route():
    try:
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        return jsonify(ledger_service.balance_sheet(start, end)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build balance sheet")
        return jsonify({"error": "Internal server error"}), 500


@ledger_bp.get("/verify")
def verify_books_route():
    """
    Returns:
        200: {"status": "balanced", "totals", "date_range"}
        500: PostingInconsistency with totals and unbalanced posting groups
    """
    try:
        start, end = date_range(request.args.get("from"), request.args.get("to"))
        result = ledger_service.verify_books(start, end)
        return jsonify({"status": "balanced", **result}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify ledger")
        return jsonify({"error": "Internal server error"}), 500

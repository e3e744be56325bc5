# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/posledger/routes/orders.py
"""
Order API Routes

WHY: Place orders against live stock and drive them through
pending -> completed | cancelled.

DESIGN:
- POST places the order and reserves stock in one step
- PUT /status completes (commits stock, posts the sale) or cancels
  (releases stock)
- A ledger failure on completion does not fail the request; it comes
  back as ledger_error next to the completed order
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import PosError
from ..services import order_service
from ..validation import optional_int, page_args


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
def place_order_route():
    """
    Place an order.

    Request body:
    {
        "customer_id": 7,            (optional)
        "items": [{"product_id": 1, "quantity": 2}, ...],
        "user_id": 3                 (optional)
    }

    Returns:
        201: Order created (pending) with pricing breakdown
        400: Invalid input (empty order, bad quantity)
        404: Customer or product not found
        409: Insufficient stock
    """
    try:
        data = request.get_json(silent=True) or {}

        order, pricing = order_service.place_order(
            optional_int(data.get("customer_id"), "customer_id"),
            data.get("items"),
            created_by_user_id=optional_int(data.get("user_id"), "user_id"),
        )

        return jsonify({
            "order": order.to_dict(),
            "pricing": pricing.to_dict(),
        }), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    """
    Query params:
    - status: pending | completed | cancelled
    - customer_id
    - page, limit
    """
    try:
        page, limit = page_args(request.args.get("page"), request.args.get("limit"))
        result = order_service.list_orders(
            status=request.args.get("status") or None,
            customer_id=optional_int(request.args.get("customer_id"), "customer_id"),
            page=page,
            limit=limit,
        )
        result["items"] = [o.to_dict(include_items=False) for o in result["items"]]
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": order.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
def set_order_status_route(order_id: int):
    """
    Complete or cancel a pending order.

    Request body:
    {
        "status": "completed",
        "payment_type": "Cash" | "Credit",   (completion only, default Cash)
        "user_id": 3                         (optional)
    }

    Returns:
        200: {"order", "ledger_entries", "ledger_error", "skipped_items"}
        404: Order not found
        409: Order already completed or cancelled
    """
    try:
        data = request.get_json(silent=True) or {}

        status = data.get("status")
        if not status:
            return jsonify({"error": "status required", "details": {"field": "status"}}), 400

        result = order_service.set_order_status(
            order_id,
            status,
            payment_type=data.get("payment_type") or "Cash",
            user_id=optional_int(data.get("user_id"), "user_id"),
        )
        return jsonify(result.to_dict()), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500

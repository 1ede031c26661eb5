# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/shopledger/routes/orders.py
"""
Order API Routes

Orders are created UNSETTLED and then moved through the settlement state
machine by PATCH actions:

- discard:    cancel an Unsettled order (stock and balances reversed)
- settle:     first settlement of an Unsettled order (Cash, Bank/UPI or Debt)
- settleDebt: payment against a Debt-flagged order (Cash or Bank/UPI)

Errors:
    400: invalid input
    404: order, customer or product not found (or not visible to the actor)
    409: action not allowed in the order's current state, duplicate order_id,
         or the order was changed concurrently
"""

from flask import Blueprint, request, jsonify, current_app

from ..permissions import OwnershipPolicy
from ..services import order_service, settlement_service
from ..validation import ConflictError, NotFoundError, ValidationError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _policy() -> OwnershipPolicy:
    return OwnershipPolicy.from_config(current_app.config)


# =============================================================================
# ORDER CREATION
# =============================================================================

@orders_bp.post("")
def create_order_route():
    """
    Create an order.

    Request body:
    {
        "user_id": "shop-1",
        "order_id": "ORD-1718000000000",
        "serial_number": "0001",
        "customer_id": 3,
        "customer_name": "...", "customer_address": "...", "customer_contact": "...",
        "items": [{"product_id": 7, "product_name": "Milk", "quantity": 2, "unit": "litre"}],
        "free_items": [],
        "subtotal_cents": 10000,
        "discount_percentage": 0,
        "total_cents": 10000,
        "remarks": null
    }

    Returns:
        201: {"order": {...}}
    """
    data = request.get_json(silent=True)

    try:
        order = settlement_service.create_order(data)
        return jsonify({"order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("")
def list_orders_route():
    """
    List a shop's orders, newest first.

    Query params:
    - user_id: shop id (required)
    - status: Unsettled | settled (optional, case-insensitive)
    """
    try:
        orders = order_service.list_orders(
            request.args.get("user_id"),
            request.args.get("status"),
        )
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_id>")
def get_order_route(order_id: str):
    user_id = request.args.get("user_id")
    if not user_id:
        return jsonify({"error": "user_id is required"}), 400

    try:
        order = order_service.get_order(
            user_id,
            order_id,
            actor_id=request.args.get("actor_id"),
            policy=_policy(),
        )
        return jsonify({"order": order.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SETTLEMENT ACTIONS
# =============================================================================

@orders_bp.patch("")
def order_action_route():
    """
    Apply a settlement action to an order.

    Request body:
    {
        "action": "discard" | "settle" | "settleDebt",
        "order_id": "ORD-1718000000000",
        "user_id": "shop-1",
        "method": "Cash" | "Bank/UPI" | "Debt",   (settle / settleDebt)
        "amount_cents": 60000,                     (Cash / Bank/UPI)
        "expected_version": 2,                     (optional)
        "actor_id": "shop-1"                       (optional, defaults to user_id)
    }

    Returns:
        200: {"order": {...}}
    """
    data = request.get_json(silent=True)

    try:
        order = settlement_service.apply_order_action(data, policy=_policy())
        return jsonify({"order": order.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to apply order action")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/delivery-status")
def delivery_status_route():
    """
    Advance delivery: Pending -> On the Way -> Delivered.

    Request body: {"order_id", "user_id", "partner_id", "status", "note"?}
    """
    data = request.get_json(silent=True)

    try:
        order = order_service.update_delivery_status(data, policy=_policy())
        return jsonify({"order": order.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to update delivery status")
        return jsonify({"error": "Internal server error"}), 500

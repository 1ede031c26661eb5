# Overview: Flask API routes for sales reporting; read-only projections over orders.

# backend/shopledger/routes/sales.py
from flask import Blueprint, request, jsonify, current_app

from ..services import reporting_service
from ..validation import NotFoundError, ValidationError, parse_date_param


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("/customer-ledger")
def customer_ledger_route():
    """
    Chronological ledger for one customer.

    Query params:
    - user_id, customer_id: required
    - from, to: ISO dates, both inclusive (optional)
    """
    user_id = request.args.get("user_id")
    customer_id = request.args.get("customer_id")
    if not user_id or not customer_id:
        return jsonify({"error": "user_id and customer_id are required"}), 400

    try:
        start = parse_date_param(request.args.get("from"), "from")
        end = parse_date_param(request.args.get("to"), "to")
        return jsonify(reporting_service.customer_ledger(user_id, customer_id, start, end)), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load customer ledger")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/summary")
def sales_summary_route():
    """Sales totals, quantities, payment breakdown and daily series (discarded orders excluded)."""
    user_id = request.args.get("user_id")
    if not user_id:
        return jsonify({"error": "user_id is required"}), 400

    try:
        start = parse_date_param(request.args.get("from"), "from")
        end = parse_date_param(request.args.get("to"), "to")
        return jsonify(reporting_service.sales_summary(user_id, start, end)), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to load sales summary")
        return jsonify({"error": "Internal server error"}), 500

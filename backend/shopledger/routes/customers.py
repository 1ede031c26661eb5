# Overview: Flask API routes for customers; balances are read-only here.

# backend/shopledger/routes/customers.py
from flask import Blueprint, request, current_app

from ..services import customer_service
from ..validation import NotFoundError, ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers_route():
    user_id = request.args.get("user_id")
    if not user_id:
        return {"error": "user_id is required"}, 400
    return {"customers": [c.to_dict() for c in customer_service.list_customers(user_id)]}


@customers_bp.post("")
def create_customer_route():
    """
    Create a customer with zero balances.

    Debit, credit and total sales are only ever changed by order actions.
    """
    payload = dict(request.get_json(silent=True) or {})
    user_id = payload.pop("user_id", None)

    try:
        customer = customer_service.create_customer(user_id, payload)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500

    return {"customer": customer.to_dict()}, 201


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    user_id = request.args.get("user_id")
    if not user_id:
        return {"error": "user_id is required"}, 400

    try:
        customer = customer_service.get_customer(user_id, customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"customer": customer.to_dict()}, 200

# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopledger/routes/products.py
"""
Product routes.

Products are scoped to a shop by user_id. Stock only moves through order
creation/discard, explicit restocks and the empty-stock reset; the last two
are logged in the restock history. There is no direct quantity edit.
"""
from flask import Blueprint, request, current_app

from ..services import inventory_service
from ..services.products_service import (
    create_product,
    get_product,
    list_products as list_products_service,
)
from ..validation import NotFoundError, ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    user_id = request.args.get("user_id")
    if not user_id:
        return {"error": "user_id is required"}, 400
    return {"products": [p.to_dict() for p in list_products_service(user_id)]}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    user_id = request.args.get("user_id")
    if not user_id:
        return {"error": "user_id is required"}, 400

    try:
        product = get_product(user_id, product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"product": product.to_dict()}, 200


@products_bp.post("")
def create_product_route():
    """
    Create a product.

    "pack_size" may be given as text ("1L", "90ml", "500g", "12pcs") and is
    normalized once here.
    """
    payload = dict(request.get_json(silent=True) or {})
    user_id = payload.pop("user_id", None)

    try:
        created = create_product(user_id, payload)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return {"product": created.to_dict()}, 201


@products_bp.post("/<int:product_id>/restock")
def restock_product_route(product_id: int):
    """Add received stock: {"user_id", "quantity"}."""
    payload = request.get_json(silent=True) or {}
    user_id = payload.get("user_id")
    if not user_id:
        return {"error": "user_id is required"}, 400

    try:
        product = inventory_service.restock_product(user_id, product_id, payload.get("quantity"))
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except NotFoundError:
        return {"error": "Product not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return {"error": "Internal server error"}, 500

    return {"product": product.to_dict()}, 200


@products_bp.get("/restock-history")
def restock_history_route():
    user_id = request.args.get("user_id")
    if not user_id:
        return {"error": "user_id is required"}, 400
    return {"history": [h.to_dict() for h in inventory_service.list_restock_history(user_id)]}, 200


@products_bp.post("/empty")
def empty_stock_route():
    """
    Set every product of the shop to zero stock: {"user_id"}.

    The removed quantities are logged as "Empty Stock" history rows.
    """
    payload = request.get_json(silent=True) or {}

    try:
        logged = inventory_service.empty_stock(payload.get("user_id"))
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to empty stock")
        return {"error": "Internal server error"}, 500

    return {"emptied": bool(logged), "history": [h.to_dict() for h in logged]}, 200

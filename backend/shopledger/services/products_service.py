# Overview: Product writes; pack sizes are parsed and normalized once here.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..models.inventory import VALID_UNITS
from ..pack_size import parse_pack_size
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import run_with_retry


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "category", "unit", "pack_quantity", "pack_size",
        "purchase_price_cents", "selling_price_cents", "mrp_cents",
        "quantity", "min_stock", "notes",
    }),
    required_on_create=frozenset({"name", "unit", "purchase_price_cents", "selling_price_cents"}),
)


def create_product(user_id: str, payload: dict) -> Product:
    """
    Create a product for a shop.

    "pack_size" is accepted as free text ("1L", "90ml", "500g") and stored as
    a normalized value/unit pair.
    """
    if not user_id:
        raise ValidationError("user_id is required")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY)
    enforce_rules_product(patch)

    unit = str(patch["unit"]).lower()
    if unit not in VALID_UNITS:
        raise ValidationError(f"Invalid unit: {patch['unit']}. Must be one of {VALID_UNITS}")
    patch["unit"] = unit

    pack_size = parse_pack_size(patch.pop("pack_size", None))
    if pack_size is not None:
        patch["pack_size_value"] = pack_size.value
        patch["pack_size_unit"] = pack_size.unit

    def _op():
        product = Product(user_id=user_id, **patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def list_products(user_id: str) -> list[Product]:
    return db.session.query(Product).filter_by(user_id=user_id).order_by(Product.name.asc()).all()


def get_product(user_id: str, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, user_id=user_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product

# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/shopledger/routes/catalog.py
"""
Product routes. Every operation is scoped to the calling account
(g.account_id, set by @require_account).
"""
from flask import Blueprint, request, g, jsonify, current_app

from ..models import Product
from ..services import catalog_service
from ..errors import ShopLedgerError, error_body, http_status
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
)
from ..decorators import require_account

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(catalog_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name_en", "purchase_price_cents", "selling_price_cents"},
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/products")


@catalog_bp.get("")
@require_account
def list_products_route():
    """
    List products, newest first.

    Query params:
    - q: str (optional) - case-insensitive match on any product name
    """
    return catalog_service.list_products(g.account_id, search=request.args.get("q"))


@catalog_bp.get("/low-stock")
@require_account
def low_stock_route():
    products = catalog_service.low_stock_products(g.account_id)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@catalog_bp.post("")
@require_account
def create_product_route():
    """Create a product. Returns 403 when the plan's product limit is reached."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        product = catalog_service.create_product(g.account_id, patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)

    return jsonify(product.to_dict()), 201


@catalog_bp.patch("/<int:product_id>")
@require_account
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        product = catalog_service.update_product(g.account_id, product_id, patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product.to_dict())


@catalog_bp.delete("/<int:product_id>")
@require_account
def delete_product_route(product_id: int):
    """Delete a product. Past sales keep their line items."""
    try:
        catalog_service.delete_product(g.account_id, product_id)
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)

    return {"ok": True}, 200

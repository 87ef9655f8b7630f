# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopledger/routes/sales.py
"""
Sales API routes.

POST /api/sales builds a cart from the catalog as it is now and posts it
in one transaction:

    {
        "items": [{"product_id": 1, "quantity": 3}, ...],
        "payment_method": "cash" | "card" | "online",
        "customer_name": "...", "customer_phone": "...",
        "receipt_number": "..."   # optional; makes retries idempotent
    }
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.cart_service import Cart
from ..errors import ShopLedgerError, error_body, http_status
from ..validation import ValidationError, coerce_int
from ..decorators import require_account
from ..time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _build_cart(ctx, items) -> Cart:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cart = Cart.for_session(ctx)
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        product_id = coerce_int(item.get("product_id"), "product_id")
        cart.add_item(product_id, item.get("quantity"))
    return cart


@sales_bp.post("")
@require_account
def create_sale_route():
    data = request.get_json(silent=True) or {}
    ctx = g.session_context

    try:
        cart = _build_cart(ctx, data.get("items"))
        receipt = sales_service.commit_sale(
            ctx,
            cart,
            payment_method=data.get("payment_method", "cash"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            receipt_number=data.get("receipt_number"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)
    except Exception:
        current_app.logger.exception("Failed to post sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"receipt": receipt.to_dict()}), 201


@sales_bp.get("")
@require_account
def list_sales_route():
    """
    Query params:
    - from, to: ISO-8601 datetimes (optional)
    - limit: int (default 50, max 500)
    """
    try:
        start = parse_iso_datetime(request.args.get("from"))
        end = parse_iso_datetime(request.args.get("to"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    limit = min(max(request.args.get("limit", 50, type=int), 1), 500)
    items = sales_service.list_sales(g.account_id, start=start, end=end, limit=limit)
    return {"items": items, "count": len(items)}


@sales_bp.get("/<int:sale_id>")
@require_account
def get_sale_route(sale_id: int):
    try:
        return sales_service.get_sale(g.account_id, sale_id)
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)

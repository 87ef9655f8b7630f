# Overview: Flask API routes for plan pricing, coupon checks and plan changes.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import subscription_service
from ..errors import ShopLedgerError, error_body, http_status
from ..validation import ValidationError
from ..decorators import require_account

subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


@subscriptions_bp.get("/quote")
@require_account
def quote_route():
    """
    Price a plan without consuming the coupon.

    Query params:
    - tier: free | standard | premium
    - coupon: str (optional); an invalid code falls back to the base price
    """
    try:
        quote = subscription_service.quote(request.args.get("tier"), request.args.get("coupon"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return {"quote": quote.to_dict()}


@subscriptions_bp.post("/coupons/validate")
@require_account
def validate_coupon_route():
    data = request.get_json(silent=True) or {}
    try:
        discount = subscription_service.validate_coupon(data.get("code"), data.get("tier"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ShopLedgerError as e:
        return jsonify({"valid": False, **error_body(e)}), http_status(e)

    quote = subscription_service.price_for(data["tier"].strip().lower(), discount)
    return {"valid": True, "quote": quote.to_dict()}


@subscriptions_bp.post("")
@require_account
def subscribe_route():
    """Body: {"tier": "...", "coupon_code": "..."}"""
    data = request.get_json(silent=True) or {}
    ctx = g.session_context
    try:
        record = subscription_service.subscribe(ctx, data.get("tier"), data.get("coupon_code"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)
    except Exception:
        current_app.logger.exception("Failed to change subscription for account %s", ctx.account_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "subscription": record.to_dict() if record else None,
        "entitlement": ctx.entitlement().to_dict(),
    }), 201


@subscriptions_bp.get("/current")
@require_account
def current_route():
    ctx = g.session_context
    record = subscription_service.current_subscription(ctx.account_id)
    return {
        "subscription": record.to_dict() if record else None,
        "entitlement": ctx.entitlement().to_dict(),
    }

# Overview: Admin-only routes for coupon management and platform totals.

from flask import Blueprint, request, jsonify, g

from ..services import subscription_service
from ..errors import ShopLedgerError, error_body, http_status
from ..validation import ConflictError
from ..decorators import require_account, require_admin
from ..time_utils import parse_iso_datetime

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/coupons")
@require_account
@require_admin
def list_coupons_route():
    """Query params: all=1 to include deactivated coupons."""
    active_only = request.args.get("all") not in ("1", "true")
    coupons = subscription_service.list_coupons(g.account_id, active_only=active_only)
    return {"items": [c.to_dict() for c in coupons], "count": len(coupons)}


@admin_bp.post("/coupons")
@require_account
@require_admin
def create_coupon_route():
    data = request.get_json(silent=True) or {}
    try:
        coupon = subscription_service.create_coupon(
            g.account_id,
            code=data.get("code"),
            discount_amount_cents=data.get("discount_amount_cents"),
            usage_limit=data.get("usage_limit", 100),
            expiry_date=parse_iso_datetime(data.get("expiry_date")),
        )
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(coupon.to_dict()), 201


@admin_bp.delete("/coupons/<code>")
@require_account
@require_admin
def deactivate_coupon_route(code: str):
    try:
        coupon = subscription_service.deactivate_coupon(g.account_id, code)
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)
    return jsonify(coupon.to_dict())


@admin_bp.get("/summary")
@require_account
@require_admin
def summary_route():
    return subscription_service.platform_summary(g.account_id)

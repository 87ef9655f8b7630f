# Overview: Flask API routes for dashboard metrics and sales reports.

from flask import Blueprint, request, jsonify, g

from ..services import analytics_service
from ..validation import ValidationError
from ..decorators import require_account

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/dashboard")
@require_account
def dashboard_route():
    """Headline numbers. Free and expired plans get limited=true with week/month zeroed."""
    ctx = g.session_context
    metrics = analytics_service.compute_dashboard(ctx)
    return {
        "metrics": metrics.to_dict(),
        "entitlement": ctx.entitlement().to_dict(),
    }


@analytics_bp.get("/report")
@require_account
def report_route():
    """
    Query params:
    - window: today | week | month (default today)
    """
    try:
        report = analytics_service.compute_report(g.session_context, request.args.get("window", "today"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return {"report": report.to_dict()}

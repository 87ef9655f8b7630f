# Overview: Flask API routes for expenses; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import expense_service
from ..errors import ShopLedgerError, error_body, http_status
from ..validation import ValidationError
from ..decorators import require_account
from ..time_utils import parse_iso_date

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_account
def list_expenses_route():
    """
    Query params:
    - from, to: YYYY-MM-DD (optional, inclusive)
    """
    try:
        start = parse_iso_date(request.args.get("from"))
        end = parse_iso_date(request.args.get("to"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    expenses = expense_service.list_expenses(g.account_id, start=start, end=end)
    return {
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }


@expenses_bp.post("")
@require_account
def create_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        expense = expense_service.record_expense(g.account_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(expense.to_dict()), 201


@expenses_bp.delete("/<int:expense_id>")
@require_account
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(g.account_id, expense_id)
    except ShopLedgerError as e:
        return jsonify(error_body(e)), http_status(e)
    return {"ok": True}, 200

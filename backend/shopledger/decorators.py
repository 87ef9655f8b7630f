# Overview: Request decorators that establish the caller's account context.

from functools import wraps
from flask import request, jsonify, g

from .context import open_session
from .errors import AccountNotFound
from .services.account_service import get_account

ACCOUNT_HEADER = "X-Account-Id"


def require_account(f):
    """
    Resolve the calling account and build its SessionContext.

    Sets:
    - g.account_id
    - g.session_context (locale from ?lang= or the account's saved language)

    Returns 401 when the header is missing or malformed, 404 when the
    account does not exist or is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACCOUNT_HEADER, "").strip()
        if not raw.isdigit():
            return jsonify({"error": f"{ACCOUNT_HEADER} header required"}), 401

        try:
            context = open_session(int(raw), locale=request.args.get("lang"))
        except AccountNotFound:
            return jsonify({"error": "Account not found"}), 404

        g.account_id = context.account_id
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the account resolved by @require_account to have the admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "account_id"):
            return jsonify({"error": "Account required"}), 401
        if not get_account(g.account_id).is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function

# Overview: Account lookup and creation used by the CLI, the API context and tests.

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..models import Account
from ..models.accounts import LANGUAGES, ROLE_ADMIN, ROLE_USER, TIERS, TIER_FREE
from ..errors import AccountNotFound, AdminRequired
from ..validation import ValidationError

logger = logging.getLogger(__name__)


def get_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if account is None or not account.is_active:
        raise AccountNotFound("Account not found", details={"account_id": account_id})
    return account


def require_admin(account_id: int) -> Account:
    account = get_account(account_id)
    if not account.is_admin:
        raise AdminRequired("Admin access required")
    return account


def create_account(
    *,
    business_name: str,
    business_type: str | None = None,
    phone: str | None = None,
    tier: str = TIER_FREE,
    expiry: datetime | None = None,
    role: str = ROLE_USER,
    language: str = "en",
) -> Account:
    business_name = (business_name or "").strip()
    if not business_name:
        raise ValidationError("business_name is required")
    if tier not in TIERS:
        raise ValidationError(f"tier must be one of: {', '.join(TIERS)}")
    if role not in (ROLE_USER, ROLE_ADMIN):
        raise ValidationError("role must be user or admin")
    if language not in LANGUAGES:
        raise ValidationError(f"language must be one of: {', '.join(LANGUAGES)}")

    account = Account(
        business_name=business_name,
        business_type=business_type,
        phone=phone,
        subscription_tier=tier,
        subscription_expiry=expiry,
        role=role,
        language=language,
    )
    db.session.add(account)
    db.session.commit()
    logger.info("Created account %s (%s, tier=%s)", account.id, business_name, tier)
    return account


def list_accounts() -> list[Account]:
    return db.session.query(Account).order_by(Account.id.asc()).all()

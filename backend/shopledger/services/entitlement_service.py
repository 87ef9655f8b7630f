# Overview: Resolves what an account's subscription entitles it to at a point in time.

"""
Entitlement rules

- A paid tier is expired when its expiry is set and lies before `now`.
- Full access = paid tier AND not expired. Anything else is degraded:
  weekly/monthly sales are suppressed and reports are flagged limited.
- Product limits: free 10, standard 500, premium unbounded. An expired paid
  tier falls back to the free limit for new products.
- Always recomputed from the account row; expiry is time-dependent.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..models import Product
from ..models.accounts import TIER_FREE, TIER_PREMIUM, TIER_STANDARD
from ..errors import ProductLimitExceeded
from shopledger.time_utils import to_utc_naive, utcnow

PRODUCT_LIMITS: dict[str, int | None] = {
    TIER_FREE: 10,
    TIER_STANDARD: 500,
    TIER_PREMIUM: None,
}

WINDOW_TODAY = "today"
WINDOW_WEEK = "week"
WINDOW_MONTH = "month"


@dataclass(frozen=True)
class Entitlement:
    tier: str
    is_expired: bool
    product_limit: int | None
    analytics_window_limit: str

    @property
    def full_access(self) -> bool:
        return self.tier != TIER_FREE and not self.is_expired

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "is_expired": self.is_expired,
            "full_access": self.full_access,
            "product_limit": self.product_limit,
            "analytics_window_limit": self.analytics_window_limit,
        }


def resolve(account, now: datetime | None = None) -> Entitlement:
    """Pure function of (tier, expiry, now)."""
    now = now or utcnow()
    tier = account.subscription_tier or TIER_FREE
    expiry = account.subscription_expiry
    if expiry is not None:
        expiry = to_utc_naive(expiry)

    is_expired = tier != TIER_FREE and expiry is not None and expiry < now
    full_access = tier != TIER_FREE and not is_expired

    return Entitlement(
        tier=tier,
        is_expired=is_expired,
        product_limit=PRODUCT_LIMITS.get(tier, PRODUCT_LIMITS[TIER_FREE]),
        analytics_window_limit=WINDOW_MONTH if full_access else WINDOW_TODAY,
    )


def resolve_for_account(account_id: int, now: datetime | None = None) -> Entitlement:
    from .account_service import get_account
    return resolve(get_account(account_id), now=now)


def effective_product_limit(entitlement: Entitlement) -> int | None:
    if entitlement.is_expired:
        return PRODUCT_LIMITS[TIER_FREE]
    return entitlement.product_limit


def ensure_product_capacity(account_id: int, now: datetime | None = None) -> Entitlement:
    """Raise ProductLimitExceeded if the account cannot own another product."""
    entitlement = resolve_for_account(account_id, now=now)
    limit = effective_product_limit(entitlement)
    if limit is None:
        return entitlement

    owned = db.session.query(Product).filter_by(account_id=account_id).count()
    if owned >= limit:
        raise ProductLimitExceeded(
            f"The {entitlement.tier} plan allows {limit} products",
            details={"tier": entitlement.tier, "product_limit": limit, "product_count": owned},
        )
    return entitlement

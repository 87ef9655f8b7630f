# Overview: Subscription pricing, coupon validation and subscription changes.

"""
Pricing rules

- Base prices: free 0, standard 200.00, premium 500.00 (stored in cents).
- A coupon is an absolute discount: final = max(0, base - discount).
- Coupons never apply to the free tier; quoting free ignores the code.
- Codes are matched upper-cased. A coupon is valid when it exists, is
  active, is not past its expiry and has uses left.
- Quoting never consumes a coupon. subscribe() consumes one use with a
  guarded increment (used_count < usage_limit) in the same transaction
  as the subscription record, so the usage limit is a hard cap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Account, Coupon, SubscriptionRecord
from ..models.accounts import TIERS, TIER_FREE, TIER_PREMIUM, TIER_STANDARD
from ..models.subscriptions import PAYMENT_COMPLETED
from ..errors import (
    CouponExhausted,
    InvalidCoupon,
    NotFound,
    PersistenceUnavailable,
    ShopLedgerError,
    SubscriptionFailed,
)
from ..validation import ConflictError, ValidationError, coerce_int, require_choice
from shopledger.time_utils import add_months, to_utc_naive, utcnow
from .account_service import get_account, require_admin
from .concurrency import ensure_available, is_disconnect, run_with_retry

logger = logging.getLogger(__name__)

TIER_PRICES_CENTS = {
    TIER_FREE: 0,
    TIER_STANDARD: 20000,
    TIER_PREMIUM: 50000,
}


@dataclass(frozen=True)
class Discount:
    code: str
    amount_cents: int


@dataclass(frozen=True)
class PriceQuote:
    tier: str
    base_amount_cents: int
    discount_cents: int
    final_amount_cents: int
    coupon_code: str | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "base_amount_cents": self.base_amount_cents,
            "discount_cents": self.discount_cents,
            "final_amount_cents": self.final_amount_cents,
            "coupon_code": self.coupon_code,
            "message": self.message,
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _require_tier(tier) -> str:
    return require_choice(tier, TIERS, "tier")


def price_for(tier: str, discount: Discount | None = None, message: str | None = None) -> PriceQuote:
    base = TIER_PRICES_CENTS[tier]
    if tier == TIER_FREE or discount is None:
        return PriceQuote(tier, base, 0, base, message=message)
    final = max(0, base - discount.amount_cents)
    return PriceQuote(tier, base, base - final, final, coupon_code=discount.code, message=message)


def validate_coupon(code: str | None, tier: str, now: datetime | None = None) -> Discount:
    """Return the coupon's discount or raise InvalidCoupon. Does not consume a use."""
    tier = _require_tier(tier)
    now = now or utcnow()
    code = normalize_code(code)
    if not code:
        raise InvalidCoupon("Coupon code is required")
    if tier == TIER_FREE:
        raise InvalidCoupon("Coupons cannot be applied to the free plan", details={"code": code})

    coupon = db.session.query(Coupon).filter(Coupon.code == code, Coupon.is_active.is_(True)).first()
    if coupon is None:
        raise InvalidCoupon("Invalid coupon code", details={"code": code})

    expiry = coupon.expiry_date
    if expiry is not None and to_utc_naive(expiry) < now:
        raise InvalidCoupon("Coupon has expired", details={"code": code})
    if coupon.used_count >= coupon.usage_limit:
        raise CouponExhausted("Coupon usage limit reached", details={"code": code})

    return Discount(code=coupon.code, amount_cents=coupon.discount_amount_cents)


def quote(tier: str, coupon_code: str | None = None, now: datetime | None = None) -> PriceQuote:
    """Price a tier. An invalid coupon falls back to the base price with a message."""
    tier = _require_tier(tier)
    if tier == TIER_FREE or not normalize_code(coupon_code):
        return price_for(tier)
    try:
        discount = validate_coupon(coupon_code, tier, now=now)
    except InvalidCoupon as exc:
        logger.warning("Quote for %s ignored coupon %s: %s", tier, normalize_code(coupon_code), exc)
        return price_for(tier, message=str(exc))
    return price_for(tier, discount)


class PricingSession:
    """
    Checkout-page pricing state: one selected tier and at most one coupon.

    Re-applying the coupon already in effect changes nothing; applying a
    different valid code replaces it. A failed application leaves the
    previous state in place.
    """

    def __init__(self, tier: str = TIER_FREE):
        self.tier = _require_tier(tier)
        self.discount: Discount | None = None

    def select_tier(self, tier: str) -> PriceQuote:
        self.tier = _require_tier(tier)
        if self.tier == TIER_FREE:
            self.discount = None
        return self.quote()

    def apply_coupon(self, code: str | None, now: datetime | None = None) -> PriceQuote:
        if self.tier == TIER_FREE:
            return self.quote()
        if self.discount is not None and self.discount.code == normalize_code(code):
            return self.quote()
        self.discount = validate_coupon(code, self.tier, now=now)
        return self.quote()

    def remove_coupon(self) -> PriceQuote:
        self.discount = None
        return self.quote()

    @property
    def coupon_code(self) -> str | None:
        return self.discount.code if self.discount else None

    def quote(self) -> PriceQuote:
        return price_for(self.tier, self.discount)


def _consume_coupon(code: str) -> None:
    result = db.session.execute(
        update(Coupon)
        .where(
            Coupon.code == code,
            Coupon.is_active.is_(True),
            Coupon.used_count < Coupon.usage_limit,
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise CouponExhausted("Coupon usage limit reached", details={"code": code})


def subscribe(ctx, tier: str, coupon_code: str | None = None, now: datetime | None = None) -> SubscriptionRecord | None:
    """
    Move the account to `tier`.

    Paid tiers write a completed SubscriptionRecord for one billing period
    and consume one coupon use, all in one transaction; an invalid or
    exhausted coupon aborts the change. Downgrading to free clears the
    expiry and writes no record.
    """
    tier = _require_tier(tier)
    now = now or utcnow()
    code = normalize_code(coupon_code) or None

    if tier == TIER_FREE:
        account = get_account(ctx.account_id)
        account.subscription_tier = TIER_FREE
        account.subscription_expiry = None
        db.session.commit()
        logger.info("Account %s moved to the free plan", ctx.account_id)
        return None

    months = current_app.config.get("SUBSCRIPTION_PERIOD_MONTHS", 1)

    def _op() -> SubscriptionRecord:
        discount = None
        if code:
            discount = validate_coupon(code, tier, now=now)
            _consume_coupon(code)

        price = price_for(tier, discount)
        expiry = add_months(now, months)
        record = SubscriptionRecord(
            account_id=ctx.account_id,
            tier=tier,
            amount_cents=price.final_amount_cents,
            coupon_code=price.coupon_code,
            payment_status=PAYMENT_COMPLETED,
            start_date=now,
            expiry_date=expiry,
            created_at=now,
        )
        account = get_account(ctx.account_id)
        account.subscription_tier = tier
        account.subscription_expiry = expiry
        db.session.add(record)
        db.session.commit()
        return record

    try:
        ensure_available()
        record = run_with_retry(_op)
    except PersistenceUnavailable:
        logger.error("Subscription change for account %s not saved: database unavailable", ctx.account_id)
        raise
    except ShopLedgerError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        if is_disconnect(exc):
            raise PersistenceUnavailable("Database unavailable") from exc
        logger.exception("Subscription to %s failed for account %s; rolled back", tier, ctx.account_id)
        raise SubscriptionFailed(
            "Subscription could not be saved; nothing was changed",
            details={"tier": tier},
        ) from exc

    logger.info(
        "Account %s subscribed to %s until %s (charged %d, coupon=%s)",
        ctx.account_id, tier, record.expiry_date, record.amount_cents, record.coupon_code,
    )
    return record


def current_subscription(account_id: int) -> SubscriptionRecord | None:
    return (
        db.session.query(SubscriptionRecord)
        .filter(SubscriptionRecord.account_id == account_id)
        .order_by(SubscriptionRecord.created_at.desc(), SubscriptionRecord.id.desc())
        .first()
    )


# Coupon administration (admin accounts only)


def create_coupon(
    actor_account_id: int,
    *,
    code: str,
    discount_amount_cents,
    usage_limit=100,
    expiry_date: datetime | None = None,
) -> Coupon:
    require_admin(actor_account_id)
    code = normalize_code(code)
    if not code:
        raise ValidationError("code is required")
    if len(code) > 64:
        raise ValidationError("code exceeds max length 64")
    discount = coerce_int(discount_amount_cents, "discount_amount_cents")
    limit = coerce_int(usage_limit, "usage_limit")
    if discount <= 0:
        raise ValidationError("discount_amount_cents must be > 0")
    if limit <= 0:
        raise ValidationError("usage_limit must be > 0")

    coupon = Coupon(
        code=code,
        discount_amount_cents=discount,
        usage_limit=limit,
        used_count=0,
        is_active=True,
        expiry_date=expiry_date,
    )
    db.session.add(coupon)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Coupon {code} already exists")
    logger.info("Coupon %s created by account %s", code, actor_account_id)
    return coupon


def deactivate_coupon(actor_account_id: int, code: str) -> Coupon:
    require_admin(actor_account_id)
    code = normalize_code(code)
    coupon = db.session.query(Coupon).filter_by(code=code).first()
    if coupon is None:
        raise NotFound("Coupon not found", details={"code": code})
    coupon.is_active = False
    db.session.commit()
    logger.info("Coupon %s deactivated by account %s", code, actor_account_id)
    return coupon


def list_coupons(actor_account_id: int, *, active_only: bool = True) -> list[Coupon]:
    require_admin(actor_account_id)
    query = db.session.query(Coupon)
    if active_only:
        query = query.filter(Coupon.is_active.is_(True))
    return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


def platform_summary(actor_account_id: int) -> dict:
    require_admin(actor_account_id)
    total_accounts = db.session.query(func.count(Account.id)).scalar()
    revenue, active = db.session.query(
        func.coalesce(func.sum(SubscriptionRecord.amount_cents), 0),
        func.count(SubscriptionRecord.id),
    ).filter(SubscriptionRecord.payment_status == PAYMENT_COMPLETED).one()
    return {
        "total_accounts": int(total_accounts or 0),
        "total_revenue_cents": int(revenue or 0),
        "active_subscriptions": int(active or 0),
    }

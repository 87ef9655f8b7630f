# Overview: Pytest coverage for plan entitlements and product limits.

from datetime import timedelta, timezone

import pytest

from shopledger.errors import ProductLimitExceeded
from shopledger.models import Account
from shopledger.services import entitlement_service
from shopledger.services.entitlement_service import (
    WINDOW_MONTH,
    WINDOW_TODAY,
    effective_product_limit,
    ensure_product_capacity,
    resolve,
)

from conftest import NOW


class TestResolve:
    def test_free_tier_is_limited_but_never_expired(self):
        ent = resolve(Account(subscription_tier="free", subscription_expiry=None), now=NOW)
        assert ent.is_expired is False
        assert ent.full_access is False
        assert ent.product_limit == 10
        assert ent.analytics_window_limit == WINDOW_TODAY

    def test_active_standard(self):
        ent = resolve(Account(subscription_tier="standard", subscription_expiry=NOW + timedelta(days=1)), now=NOW)
        assert ent.full_access is True
        assert ent.product_limit == 500
        assert ent.analytics_window_limit == WINDOW_MONTH

    def test_premium_is_unbounded(self):
        ent = resolve(Account(subscription_tier="premium", subscription_expiry=NOW + timedelta(days=1)), now=NOW)
        assert ent.product_limit is None
        assert effective_product_limit(ent) is None

    def test_expired_paid_tier_is_degraded(self):
        ent = resolve(Account(subscription_tier="premium", subscription_expiry=NOW - timedelta(seconds=1)), now=NOW)
        assert ent.is_expired is True
        assert ent.full_access is False
        assert ent.analytics_window_limit == WINDOW_TODAY
        assert effective_product_limit(ent) == 10

    def test_paid_tier_without_expiry_is_active(self):
        ent = resolve(Account(subscription_tier="standard", subscription_expiry=None), now=NOW)
        assert ent.full_access is True

    def test_expiry_exactly_now_is_still_active(self):
        ent = resolve(Account(subscription_tier="standard", subscription_expiry=NOW), now=NOW)
        assert ent.is_expired is False

    def test_aware_expiry_compared_in_utc(self):
        # 14:00 at UTC+5 is 09:00 UTC, three hours before NOW
        plus_five = timezone(timedelta(hours=5))
        lapsed = NOW.replace(hour=14, tzinfo=plus_five)
        ent = resolve(Account(subscription_tier="standard", subscription_expiry=lapsed), now=NOW)
        assert ent.is_expired is True

        # 10:00 at UTC-5 is 15:00 UTC, still ahead of NOW
        minus_five = timezone(timedelta(hours=-5))
        running = NOW.replace(hour=10, tzinfo=minus_five)
        ent = resolve(Account(subscription_tier="standard", subscription_expiry=running), now=NOW)
        assert ent.is_expired is False


class TestProductCapacity:
    def test_free_account_blocked_at_ten(self, account, make_product):
        for i in range(10):
            make_product(account, name=f"Item {i}")

        with pytest.raises(ProductLimitExceeded) as exc:
            ensure_product_capacity(account.id, now=NOW)
        assert exc.value.details == {"tier": "free", "product_limit": 10, "product_count": 10}

    def test_paid_account_has_room(self, paid_account, make_product):
        for i in range(10):
            make_product(paid_account, name=f"Item {i}")
        ent = ensure_product_capacity(paid_account.id, now=NOW)
        assert ent.tier == "standard"

    def test_recomputed_after_expiry(self, paid_account, make_product):
        for i in range(10):
            make_product(paid_account, name=f"Item {i}")

        ensure_product_capacity(paid_account.id, now=NOW)
        with pytest.raises(ProductLimitExceeded):
            ensure_product_capacity(paid_account.id, now=NOW + timedelta(days=31))

    def test_resolve_for_account_reads_current_row(self, db_session, account):
        assert entitlement_service.resolve_for_account(account.id, now=NOW).full_access is False
        account.subscription_tier = "premium"
        account.subscription_expiry = NOW + timedelta(days=5)
        db_session.commit()
        assert entitlement_service.resolve_for_account(account.id, now=NOW).full_access is True

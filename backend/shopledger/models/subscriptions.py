from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"


class SubscriptionRecord(db.Model):
    """
    Append-only history of paid subscription changes.

    An account's current subscription is its most recently created record;
    the account row carries the effective tier/expiry.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.Index("ix_subscriptions_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    tier = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    coupon_code = db.Column(db.String(64), nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING, index=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    account = db.relationship("Account", backref=db.backref("subscriptions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "tier": self.tier,
            "amount_cents": self.amount_cents,
            "coupon_code": self.coupon_code,
            "payment_status": self.payment_status,
            "start_date": to_utc_z(self.start_date),
            "expiry_date": to_utc_z(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
        }


class Coupon(db.Model):
    """
    Absolute-amount discount on a subscription price.

    code is stored upper-case; lookups upper-case their input.
    used_count <= usage_limit is enforced by the guarded increment in
    subscription_service.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.CheckConstraint("used_count <= usage_limit", name="ck_coupons_usage_cap"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    discount_amount_cents = db.Column(db.Integer, nullable=False)
    usage_limit = db.Column(db.Integer, nullable=False, default=100)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "discount_amount_cents": self.discount_amount_cents,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "is_active": self.is_active,
            "expiry_date": to_utc_z(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
        }

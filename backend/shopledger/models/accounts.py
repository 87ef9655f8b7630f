from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z

TIER_FREE = "free"
TIER_STANDARD = "standard"
TIER_PREMIUM = "premium"
TIERS = (TIER_FREE, TIER_STANDARD, TIER_PREMIUM)

ROLE_USER = "user"
ROLE_ADMIN = "admin"

LANGUAGES = ("en", "ur", "ps")


class Account(db.Model):
    """
    A business using the ledger. Every product, sale, expense and
    subscription record belongs to exactly one account.

    subscription_tier/subscription_expiry are the inputs of the entitlement
    resolver; they change only through subscription_service.subscribe.
    """
    __tablename__ = "accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    business_type = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    subscription_tier = db.Column(db.String(16), nullable=False, default=TIER_FREE, index=True)
    subscription_expiry = db.Column(db.DateTime(timezone=True), nullable=True)

    language = db.Column(db.String(8), nullable=False, default="en")
    role = db.Column(db.String(16), nullable=False, default=ROLE_USER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Account id={self.id} name={self.business_name!r} tier={self.subscription_tier}>"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "business_type": self.business_type,
            "phone": self.phone,
            "subscription_tier": self.subscription_tier,
            "subscription_expiry": to_utc_z(self.subscription_expiry),
            "language": self.language,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

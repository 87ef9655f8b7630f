from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data, scoped to one account.

    Prices are authoritative in cents. `quantity` is the on-hand count; the
    sale commit decrements it with a guarded UPDATE so it never goes
    negative. `version_id` gives catalog edits optimistic locking.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_account_name", "account_id", "name_en"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    name_en = db.Column(db.String(255), nullable=False)
    name_ur = db.Column(db.String(255), nullable=True)
    name_ps = db.Column(db.String(255), nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False, default="piece")
    category = db.Column(db.String(120), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    account = db.relationship("Account", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name_en!r} qty={self.quantity} account_id={self.account_id}>"

    def display_name(self, locale: str | None = None) -> str:
        if locale == "ur" and self.name_ur:
            return self.name_ur
        if locale == "ps" and self.name_ps:
            return self.name_ps
        return self.name_en

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name_en": self.name_en,
            "name_ur": self.name_ur,
            "name_ps": self.name_ps,
            "purchase_price_cents": self.purchase_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "quantity": self.quantity,
            "unit": self.unit,
            "category": self.category,
            "supplier": self.supplier,
            "low_stock_threshold": self.low_stock_threshold,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_ONLINE = "online"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_ONLINE)


class Sale(db.Model):
    """
    Posted sale header. Immutable once created: there is no edit path.

    total_amount_cents and profit_cents equal the sums over the sale's
    line items; both are written in the same transaction as the lines.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("account_id", "receipt_number", name="uq_sales_account_receipt"),
        db.Index("ix_sales_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    profit_cents = db.Column(db.Integer, nullable=False, default=0)

    # Label only; no payment gateway behind it
    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_CASH)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Human-readable receipt id (e.g., "RCP-1760688000000-3F2A")
    receipt_number = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    account = db.relationship("Account", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "total_amount_cents": self.total_amount_cents,
            "profit_cents": self.profit_cents,
            "payment_method": self.payment_method,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "receipt_number": self.receipt_number,
            "created_at": to_utc_z(self.created_at),
        }


class SaleLineItem(db.Model):
    """
    One product/quantity/price row of a sale.

    Prices and cost are snapshotted at sale time. product_id is a weak
    reference: deleting the product nulls it and the snapshot columns keep
    the history readable.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False, default=0)

    sale = db.relationship("Sale", backref=db.backref("lines", lazy=True, order_by="SaleLineItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
            "profit_cents": self.profit_cents,
        }

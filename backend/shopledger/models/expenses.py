from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class Expense(db.Model):
    """Money spent by the business; independent of sales."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_account_date", "account_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(120), nullable=True)
    expense_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "expense_date": self.expense_date.isoformat() if self.expense_date else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

# Overview: Service-layer operations for expenses; the ledger's money-out side.

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Expense
from ..errors import NotFound
from ..validation import ModelValidationPolicy, enforce_rules_expense, validate_payload
from shopledger.time_utils import utcnow

logger = logging.getLogger(__name__)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "amount_cents", "category", "expense_date", "notes"},
    required_on_create={"description", "amount_cents"},
)


def record_expense(account_id: int, payload: dict, *, today: date | None = None) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)

    expense = Expense(account_id=account_id, **patch)
    if expense.expense_date is None:
        expense.expense_date = today or utcnow().date()
    db.session.add(expense)
    db.session.commit()
    logger.info("Recorded expense %s (%d) for account %s", expense.id, expense.amount_cents, account_id)
    return expense


def list_expenses(account_id: int, *, start: date | None = None, end: date | None = None) -> list[Expense]:
    query = db.session.query(Expense).filter(Expense.account_id == account_id)
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def delete_expense(account_id: int, expense_id: int) -> None:
    expense = db.session.query(Expense).filter_by(id=expense_id, account_id=account_id).first()
    if expense is None:
        raise NotFound("Expense not found", details={"expense_id": expense_id})
    db.session.delete(expense)
    db.session.commit()


def total_expenses(account_id: int, *, start: date | None = None, end: date | None = None) -> int:
    query = db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0)).filter(
        Expense.account_id == account_id
    )
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    return int(query.scalar() or 0)

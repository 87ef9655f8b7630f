"""
Sale Transaction Engine

A cart becomes a sale in exactly one database transaction:

    lock product rows -> re-check stock -> insert header -> insert lines
    -> guarded stock decrements -> commit

Any failure rolls the whole transaction back, so a sale is either fully
posted (header, every line, every decrement) or not visible at all. The
decrement is `UPDATE ... WHERE quantity >= :sold`; a row that no longer has
enough stock matches nothing and aborts the sale with OutOfStock, which
closes the race between two sessions selling from the same stale snapshot.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Sale, SaleLineItem
from ..models.sales import PAYMENT_CASH, PAYMENT_METHODS
from ..errors import NotFound, OutOfStock, PersistenceUnavailable, SaleCreationFailed
from ..validation import ValidationError, require_choice
from shopledger.time_utils import to_utc_z, utcnow
from .cart_service import Cart, CartLine
from .concurrency import ensure_available, is_disconnect, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

RECEIPT_PREFIX = "RCP"


@dataclass(frozen=True)
class SaleReceipt:
    receipt_number: str
    total_amount_cents: int
    profit_cents: int
    sale_id: int
    created_at: datetime | None = None

    @classmethod
    def from_sale(cls, sale: Sale) -> "SaleReceipt":
        return cls(
            receipt_number=sale.receipt_number,
            total_amount_cents=sale.total_amount_cents,
            profit_cents=sale.profit_cents,
            sale_id=sale.id,
            created_at=sale.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "receipt_number": self.receipt_number,
            "total_amount_cents": self.total_amount_cents,
            "profit_cents": self.profit_cents,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
        }


def generate_receipt_number(now: datetime | None = None) -> str:
    """Time-based receipt id for display, e.g. RCP-1760688000000-3F2A."""
    now = now or utcnow()
    epoch_ms = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return f"{RECEIPT_PREFIX}-{epoch_ms}-{secrets.token_hex(2).upper()}"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _find_receipt(account_id: int, receipt_number: str) -> SaleReceipt | None:
    sale = db.session.query(Sale).filter_by(account_id=account_id, receipt_number=receipt_number).first()
    return SaleReceipt.from_sale(sale) if sale else None


def _lock_products(account_id: int, product_ids: list[int]) -> dict[int, Product]:
    query = db.session.query(Product).filter(
        Product.account_id == account_id,
        Product.id.in_(product_ids),
    ).populate_existing()
    return {p.id: p for p in lock_for_update(query).all()}


def _validate_on_hand(lines: list[CartLine], products: dict[int, Product]) -> None:
    for line in lines:
        product = products.get(line.product_id)
        on_hand = product.quantity if product else 0
        if on_hand < line.quantity:
            raise OutOfStock(line.product_id, line.quantity, on_hand, name=line.name)


def _decrement_stock(account_id: int, product_id: int, quantity: int) -> None:
    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.account_id == account_id,
            Product.quantity >= quantity,
        )
        .values(quantity=Product.quantity - quantity, version_id=Product.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        on_hand = db.session.query(Product.quantity).filter_by(id=product_id, account_id=account_id).scalar()
        raise OutOfStock(product_id, quantity, on_hand or 0)


def _post_sale(
    account_id: int,
    lines: list[CartLine],
    *,
    payment_method: str,
    customer_name: str | None,
    customer_phone: str | None,
    receipt_number: str,
    created_at: datetime,
) -> Sale:
    products = _lock_products(account_id, [line.product_id for line in lines])
    _validate_on_hand(lines, products)

    sale = Sale(
        account_id=account_id,
        total_amount_cents=sum(line.subtotal_cents for line in lines),
        profit_cents=sum(line.profit_cents for line in lines),
        payment_method=payment_method,
        customer_name=customer_name,
        customer_phone=customer_phone,
        receipt_number=receipt_number,
        created_at=created_at,
    )
    db.session.add(sale)
    db.session.flush()

    for line in lines:
        db.session.add(SaleLineItem(
            sale_id=sale.id,
            product_id=line.product_id,
            product_name=line.name,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            unit_cost_cents=line.unit_cost_cents,
            subtotal_cents=line.subtotal_cents,
            profit_cents=line.profit_cents,
        ))
    db.session.flush()

    for line in lines:
        _decrement_stock(account_id, line.product_id, line.quantity)

    db.session.commit()
    return sale


def commit_sale(
    ctx,
    cart: Cart,
    payment_method: str = PAYMENT_CASH,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    *,
    receipt_number: str | None = None,
    now: datetime | None = None,
) -> SaleReceipt:
    """
    Post the cart as a sale for ctx.account_id.

    Line prices and profits are the ones computed when the cart was built.
    Passing a receipt_number makes the call idempotent: if that receipt
    already exists for the account, its receipt is returned and nothing is
    written. On success the cart is emptied and its snapshot reloaded.

    Raises ValidationError, OutOfStock, SaleCreationFailed,
    PersistenceUnavailable.
    """
    payment_method = require_choice(payment_method, PAYMENT_METHODS, "payment_method")
    if cart.account_id != ctx.account_id:
        raise ValidationError("Cart belongs to a different account")
    if cart.is_empty:
        raise ValidationError("Cannot post a sale with no items")

    ensure_available()
    receipt_number = _clean(receipt_number)
    if receipt_number:
        existing = _find_receipt(ctx.account_id, receipt_number)
        if existing is not None:
            logger.info("Sale %s already posted for account %s", receipt_number, ctx.account_id)
            return existing
    receipt_number = receipt_number or generate_receipt_number(now)

    lines = cart.lines
    created_at = now or utcnow()

    def _op() -> Sale:
        return _post_sale(
            ctx.account_id,
            lines,
            payment_method=payment_method,
            customer_name=_clean(customer_name),
            customer_phone=_clean(customer_phone),
            receipt_number=receipt_number,
            created_at=created_at,
        )

    try:
        sale = run_with_retry(_op, attempts=current_app.config.get("COMMIT_RETRY_ATTEMPTS", 3))
    except OutOfStock as exc:
        db.session.rollback()
        logger.warning("Sale %s rejected for account %s: %s", receipt_number, ctx.account_id, exc.details)
        raise
    except PersistenceUnavailable:
        logger.error("Sale %s not posted: database unavailable", receipt_number)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        if is_disconnect(exc):
            raise PersistenceUnavailable("Database unavailable") from exc
        logger.exception("Sale %s failed for account %s; rolled back", receipt_number, ctx.account_id)
        raise SaleCreationFailed(
            "Sale could not be recorded; nothing was saved",
            details={"receipt_number": receipt_number},
        ) from exc

    receipt = SaleReceipt.from_sale(sale)
    logger.info(
        "Posted sale %s for account %s: %d lines, total=%d, profit=%d",
        receipt.receipt_number, ctx.account_id, len(lines), receipt.total_amount_cents, receipt.profit_cents,
    )

    cart.clear()
    cart.reload()
    return receipt


def get_sale(account_id: int, sale_id: int) -> dict:
    sale = db.session.query(Sale).filter_by(id=sale_id, account_id=account_id).first()
    if sale is None:
        raise NotFound("Sale not found", details={"sale_id": sale_id})
    return {
        "sale": sale.to_dict(),
        "lines": [line.to_dict() for line in sale.lines],
    }


def list_sales(
    account_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 50,
) -> list[dict]:
    query = db.session.query(Sale).filter(Sale.account_id == account_id)
    if start:
        query = query.filter(Sale.created_at >= start)
    if end:
        query = query.filter(Sale.created_at <= end)
    sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
    return [sale.to_dict() for sale in sales]

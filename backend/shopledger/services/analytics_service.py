# Overview: Dashboard and report aggregation over the sales/expense ledger.

"""
Windows (shared by dashboard and reports):

- today: local midnight -> now
- week:  now - 7 days -> now (rolling)
- month: local midnight on the 1st of the current month -> now

Both bounds are inclusive; nothing stamped after `now` is counted. "Local"
is the ACCOUNT_TIMEZONE setting.

Dashboard profit and loss cover everything up to now; report expenses are
window-scoped.
Without full access the dashboard's weekly/monthly figures are zeroed and
both results carry limited=True. Today's sales, profit, loss and low stock
are never gated.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Product, Sale, SaleLineItem
from ..validation import require_choice
from shopledger.time_utils import get_zone, local_date, local_day_start, local_month_start, to_utc_z, utcnow
from .entitlement_service import WINDOW_MONTH, WINDOW_TODAY, WINDOW_WEEK, resolve_for_account
from .expense_service import total_expenses

WINDOWS = (WINDOW_TODAY, WINDOW_WEEK, WINDOW_MONTH)
TOP_PRODUCT_LIMIT = 5
UNKNOWN_PRODUCT = "Unknown"


@dataclass(frozen=True)
class TopProduct:
    product_id: int
    name: str
    units_sold: int
    revenue_cents: int


@dataclass(frozen=True)
class LowStockProduct:
    product_id: int
    name: str
    quantity: int
    threshold: int


@dataclass(frozen=True)
class DashboardMetrics:
    today_sales_cents: int = 0
    weekly_sales_cents: int = 0
    monthly_sales_cents: int = 0
    total_profit_cents: int = 0
    total_loss_cents: int = 0
    low_stock_count: int = 0
    top_products: tuple[TopProduct, ...] = ()
    low_stock_products: tuple[LowStockProduct, ...] = ()
    limited: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["top_products"] = [asdict(p) for p in self.top_products]
        data["low_stock_products"] = [asdict(p) for p in self.low_stock_products]
        return data


@dataclass(frozen=True)
class DailySales:
    date: str
    total_cents: int
    count: int


@dataclass(frozen=True)
class ProductSales:
    product_id: int | None
    name: str
    quantity: int
    revenue_cents: int


@dataclass(frozen=True)
class ReportMetrics:
    window: str
    start: datetime
    sales_by_date: tuple[DailySales, ...] = ()
    product_sales: tuple[ProductSales, ...] = ()
    total_sales_cents: int = 0
    total_profit_cents: int = 0
    total_expenses_cents: int = 0
    limited: bool = False

    def to_dict(self) -> dict:
        return {
            "window": self.window,
            "start": to_utc_z(self.start),
            "sales_by_date": [asdict(d) for d in self.sales_by_date],
            "product_sales": [asdict(p) for p in self.product_sales],
            "total_sales_cents": self.total_sales_cents,
            "total_profit_cents": self.total_profit_cents,
            "total_expenses_cents": self.total_expenses_cents,
            "limited": self.limited,
        }


def _zone():
    return get_zone(current_app.config.get("ACCOUNT_TIMEZONE"))


def window_start(window: str, now: datetime, zone) -> datetime:
    if window == WINDOW_TODAY:
        return local_day_start(now, zone)
    if window == WINDOW_WEEK:
        return now - timedelta(days=7)
    return local_month_start(now, zone)


def _products_by_id(account_id: int) -> dict[int, Product]:
    products = db.session.query(Product).filter(Product.account_id == account_id).all()
    return {p.id: p for p in products}


def _top_products(
    account_id: int, products: dict[int, Product], locale: str | None, now: datetime
) -> tuple[TopProduct, ...]:
    revenue = func.sum(SaleLineItem.subtotal_cents)
    rows = (
        db.session.query(
            SaleLineItem.product_id.label("product_id"),
            func.coalesce(func.sum(SaleLineItem.quantity), 0).label("units_sold"),
            func.coalesce(revenue, 0).label("revenue_cents"),
        )
        .join(Sale, SaleLineItem.sale_id == Sale.id)
        .join(Product, SaleLineItem.product_id == Product.id)
        .filter(Sale.account_id == account_id, Product.account_id == account_id, Sale.created_at <= now)
        .group_by(SaleLineItem.product_id)
        .order_by(revenue.desc(), SaleLineItem.product_id.asc())
        .limit(TOP_PRODUCT_LIMIT)
        .all()
    )
    return tuple(
        TopProduct(
            product_id=row.product_id,
            name=products[row.product_id].display_name(locale),
            units_sold=int(row.units_sold),
            revenue_cents=int(row.revenue_cents),
        )
        for row in rows
        if row.product_id in products
    )


def compute_dashboard(ctx, now: datetime | None = None) -> DashboardMetrics:
    now = now or utcnow()
    zone = _zone()
    account_id = ctx.account_id
    entitlement = resolve_for_account(account_id, now=now)

    bounds = {window: window_start(window, now, zone) for window in WINDOWS}

    def _window_sum(window: str):
        return func.coalesce(
            func.sum(case((Sale.created_at >= bounds[window], Sale.total_amount_cents), else_=0)), 0
        )

    totals = db.session.query(
        _window_sum(WINDOW_TODAY).label("today"),
        _window_sum(WINDOW_WEEK).label("week"),
        _window_sum(WINDOW_MONTH).label("month"),
        func.coalesce(func.sum(Sale.profit_cents), 0).label("profit"),
    ).filter(Sale.account_id == account_id, Sale.created_at <= now).one()

    total_loss = total_expenses(account_id, end=local_date(now, zone))

    products = _products_by_id(account_id)
    low_stock = sorted(
        (p for p in products.values() if p.is_low_stock),
        key=lambda p: (p.quantity, p.id),
    )

    limited = not entitlement.full_access
    return DashboardMetrics(
        today_sales_cents=int(totals.today),
        weekly_sales_cents=0 if limited else int(totals.week),
        monthly_sales_cents=0 if limited else int(totals.month),
        total_profit_cents=int(totals.profit),
        total_loss_cents=total_loss,
        low_stock_count=len(low_stock),
        top_products=_top_products(account_id, products, ctx.locale, now),
        low_stock_products=tuple(
            LowStockProduct(
                product_id=p.id,
                name=p.display_name(ctx.locale),
                quantity=p.quantity,
                threshold=p.low_stock_threshold,
            )
            for p in low_stock
        ),
        limited=limited,
    )


def compute_report(ctx, window: str, now: datetime | None = None) -> ReportMetrics:
    window = require_choice(window, WINDOWS, "window")
    now = now or utcnow()
    zone = _zone()
    account_id = ctx.account_id
    entitlement = resolve_for_account(account_id, now=now)
    start = window_start(window, now, zone)

    sales = (
        db.session.query(Sale.created_at, Sale.total_amount_cents, Sale.profit_cents)
        .filter(Sale.account_id == account_id, Sale.created_at >= start, Sale.created_at <= now)
        .order_by(Sale.created_at.asc())
        .all()
    )

    total_sales = 0
    total_profit = 0
    by_date: dict[str, list[int]] = {}
    for created_at, amount, profit in sales:
        total_sales += amount
        total_profit += profit
        bucket = by_date.setdefault(local_date(created_at, zone).isoformat(), [0, 0])
        bucket[0] += amount
        bucket[1] += 1

    revenue = func.sum(SaleLineItem.subtotal_cents)
    line_rows = (
        db.session.query(
            SaleLineItem.product_id.label("product_id"),
            func.coalesce(func.sum(SaleLineItem.quantity), 0).label("quantity"),
            func.coalesce(revenue, 0).label("revenue_cents"),
        )
        .join(Sale, SaleLineItem.sale_id == Sale.id)
        .filter(Sale.account_id == account_id, Sale.created_at >= start, Sale.created_at <= now)
        .group_by(SaleLineItem.product_id)
        .order_by(revenue.desc(), SaleLineItem.product_id.asc())
        .all()
    )
    products = _products_by_id(account_id)
    product_sales = tuple(
        ProductSales(
            product_id=row.product_id,
            name=products[row.product_id].display_name(ctx.locale) if row.product_id in products else UNKNOWN_PRODUCT,
            quantity=int(row.quantity),
            revenue_cents=int(row.revenue_cents),
        )
        for row in line_rows
    )

    window_expenses = total_expenses(account_id, start=local_date(start, zone), end=local_date(now, zone))

    return ReportMetrics(
        window=window,
        start=start,
        sales_by_date=tuple(
            DailySales(date=day, total_cents=values[0], count=values[1])
            for day, values in sorted(by_date.items())
        ),
        product_sales=product_sales,
        total_sales_cents=total_sales,
        total_profit_cents=total_profit,
        total_expenses_cents=window_expenses,
        limited=not entitlement.full_access,
    )

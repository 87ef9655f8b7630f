# Overview: In-memory cart staging for a sale before it is committed.

"""
Cart Builder

A cart holds at most one line per product. Adding a product that is already
in the cart merges quantities and recomputes the line from the product's
price (never by summing old subtotals). Stock is checked against the
catalog snapshot the cart was built from; the sale commit re-checks it
against the live rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import OutOfStock
from ..validation import ValidationError, require_quantity
from .catalog_service import ProductSnapshot, catalog_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: int
    name: str
    quantity: int
    unit_price_cents: int
    unit_cost_cents: int
    subtotal_cents: int
    profit_cents: int

    @classmethod
    def build(cls, product: ProductSnapshot, quantity: int) -> "CartLine":
        return cls(
            product_id=product.id,
            name=product.name,
            quantity=quantity,
            unit_price_cents=product.selling_price_cents,
            unit_cost_cents=product.purchase_price_cents,
            subtotal_cents=quantity * product.selling_price_cents,
            profit_cents=quantity * (product.selling_price_cents - product.purchase_price_cents),
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "profit_cents": self.profit_cents,
        }


@dataclass(frozen=True)
class CartTotals:
    subtotal_cents: int
    profit_cents: int


class Cart:
    def __init__(self, account_id: int, snapshot: dict[int, ProductSnapshot], locale: str | None = None):
        self.account_id = account_id
        self.locale = locale
        self._snapshot = dict(snapshot)
        self._lines: dict[int, CartLine] = {}

    @classmethod
    def for_account(cls, account_id: int, locale: str | None = None) -> "Cart":
        return cls(account_id, catalog_snapshot(account_id, locale), locale=locale)

    @classmethod
    def for_session(cls, ctx) -> "Cart":
        return cls.for_account(ctx.account_id, ctx.locale)

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def product(self, product_id: int) -> ProductSnapshot | None:
        return self._snapshot.get(product_id)

    def quantity_of(self, product_id: int) -> int:
        line = self._lines.get(product_id)
        return line.quantity if line else 0

    def add_item(self, product_id: int, quantity) -> CartLine:
        qty = require_quantity(quantity)
        product = self._snapshot.get(product_id)
        if product is None:
            raise ValidationError(f"Product {product_id} is not in the catalog")

        new_quantity = self.quantity_of(product_id) + qty
        if new_quantity > product.quantity:
            logger.warning(
                "Cart for account %s rejected product %s: requested %d, on hand %d",
                self.account_id, product_id, new_quantity, product.quantity,
            )
            raise OutOfStock(product_id, new_quantity, product.quantity, name=product.name)

        line = CartLine.build(product, new_quantity)
        self._lines[product_id] = line
        return line

    def remove_item(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def totals(self) -> CartTotals:
        return CartTotals(
            subtotal_cents=sum(line.subtotal_cents for line in self._lines.values()),
            profit_cents=sum(line.profit_cents for line in self._lines.values()),
        )

    def clear(self) -> None:
        self._lines.clear()

    def reload(self) -> None:
        """Refresh the catalog snapshot. Lines for products that no longer exist are dropped."""
        self._snapshot = catalog_snapshot(self.account_id, self.locale)
        for product_id in list(self._lines):
            if product_id not in self._snapshot:
                del self._lines[product_id]

    def to_dict(self) -> dict:
        totals = self.totals()
        return {
            "account_id": self.account_id,
            "lines": [line.to_dict() for line in self._lines.values()],
            "subtotal_cents": totals.subtotal_cents,
            "profit_cents": totals.profit_cents,
        }

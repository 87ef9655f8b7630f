# backend/shopledger/services/catalog_service.py
"""
Catalog accessor.

Product rows are account-scoped: every read and write filters on
account_id, so a product id from another account behaves as missing.
Carts never hold Product rows; they get immutable ProductSnapshot values
from catalog_snapshot() so a later catalog edit cannot change a price that
is already in a cart.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..models import Product, SaleLineItem
from ..errors import NotFound
from ..validation import enforce_rules_product
from .entitlement_service import effective_product_limit, ensure_product_capacity, resolve_for_account

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "name_en", "name_ur", "name_ps",
    "purchase_price_cents", "selling_price_cents",
    "quantity", "unit", "category", "supplier", "low_stock_threshold",
}


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    selling_price_cents: int
    purchase_price_cents: int
    quantity: int
    low_stock_threshold: int

    @classmethod
    def from_product(cls, product: Product, locale: str | None = None) -> "ProductSnapshot":
        return cls(
            id=product.id,
            name=product.display_name(locale),
            selling_price_cents=product.selling_price_cents,
            purchase_price_cents=product.purchase_price_cents,
            quantity=product.quantity,
            low_stock_threshold=product.low_stock_threshold,
        )


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(account_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, account_id=account_id).first()
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})
    return product


def catalog_snapshot(account_id: int, locale: str | None = None) -> dict[int, ProductSnapshot]:
    products = db.session.query(Product).filter_by(account_id=account_id).all()
    return {p.id: ProductSnapshot.from_product(p, locale) for p in products}


def list_products(
    account_id: int,
    *,
    search: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Newest-first product listing, truncated to the plan's product limit.
    """
    query = db.session.query(Product).filter(Product.account_id == account_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            Product.name_en.ilike(pattern) | Product.name_ur.ilike(pattern) | Product.name_ps.ilike(pattern)
        )
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    limit = effective_product_limit(resolve_for_account(account_id, now=now))
    visible = products if limit is None else products[:limit]
    return {
        "items": [p.to_dict() for p in visible],
        "count": len(visible),
        "total": len(products),
        "product_limit": limit,
    }


def create_product(account_id: int, patch: dict, *, now: datetime | None = None) -> Product:
    """Create a product from a validated patch; the plan's product limit applies."""
    enforce_rules_product(patch)
    ensure_product_capacity(account_id, now=now)

    product = Product(account_id=account_id)
    apply_product_patch(product, patch)
    db.session.add(product)
    db.session.commit()
    logger.info("Created product %s for account %s", product.id, account_id)
    return product


def update_product(account_id: int, product_id: int, patch: dict) -> Product:
    enforce_rules_product(patch)
    product = get_product(account_id, product_id)
    apply_product_patch(product, patch)
    db.session.commit()
    return product


def delete_product(account_id: int, product_id: int) -> None:
    """
    Delete a product. Historical line items keep their price/name snapshot
    and lose only the product reference.
    """
    product = get_product(account_id, product_id)
    db.session.query(SaleLineItem).filter(SaleLineItem.product_id == product.id).update(
        {SaleLineItem.product_id: None}, synchronize_session=False
    )
    db.session.delete(product)
    db.session.commit()
    logger.info("Deleted product %s for account %s", product_id, account_id)


def low_stock_products(account_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.account_id == account_id,
            Product.quantity <= Product.low_stock_threshold,
        )
        .order_by(Product.quantity.asc(), Product.name_en.asc())
        .all()
    )

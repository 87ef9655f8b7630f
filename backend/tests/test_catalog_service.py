# Overview: Pytest coverage for product listing, limits and deletion.

from datetime import timedelta

import pytest

from shopledger.errors import NotFound, ProductLimitExceeded
from shopledger.models import Product, SaleLineItem
from shopledger.services import catalog_service
from shopledger.services.cart_service import Cart
from shopledger.services.sales_service import commit_sale
from shopledger.validation import ValidationError

from conftest import NOW, session_for


def test_create_product_applies_plan_limit(account):
    for i in range(10):
        catalog_service.create_product(account.id, {"name_en": f"Item {i}", "selling_price_cents": 100}, now=NOW)

    with pytest.raises(ProductLimitExceeded):
        catalog_service.create_product(account.id, {"name_en": "Eleventh"}, now=NOW)


def test_create_product_rejects_negative_values(account):
    with pytest.raises(ValidationError):
        catalog_service.create_product(account.id, {"name_en": "Bad", "quantity": -1}, now=NOW)


def test_listing_truncated_to_effective_limit(db_session, make_account, make_product):
    lapsed = make_account(tier="standard", expiry=NOW - timedelta(days=1))
    for i in range(12):
        make_product(lapsed, name=f"Item {i}")

    result = catalog_service.list_products(lapsed.id, now=NOW)

    assert result["total"] == 12
    assert result["count"] == 10
    assert result["product_limit"] == 10


def test_search_matches_any_language(make_account, make_product):
    account = make_account(tier="premium", expiry=NOW + timedelta(days=3))
    make_product(account, name="Sugar", name_ur="چینی")
    make_product(account, name="Salt")

    result = catalog_service.list_products(account.id, search="چینی", now=NOW)
    assert [item["name_en"] for item in result["items"]] == ["Sugar"]


def test_update_is_account_scoped(account, make_account, make_product):
    other = make_account(name="Other")
    product = make_product(other)

    with pytest.raises(NotFound):
        catalog_service.update_product(account.id, product.id, {"quantity": 99})

    updated = catalog_service.update_product(other.id, product.id, {"quantity": 99})
    assert updated.quantity == 99


def test_delete_keeps_sale_history(db_session, account, make_product):
    product = make_product(account)
    ctx = session_for(account)
    cart = Cart.for_session(ctx)
    cart.add_item(product.id, 1)
    commit_sale(ctx, cart, now=NOW)

    catalog_service.delete_product(account.id, product.id)

    assert db_session.get(Product, product.id) is None
    line = db_session.query(SaleLineItem).one()
    assert line.product_id is None
    assert line.product_name == "Rice 5kg"
    assert line.subtotal_cents == 10000


def test_low_stock_products(account, make_product):
    make_product(account, name="Low", quantity=2, threshold=5)
    make_product(account, name="Fine", quantity=20, threshold=5)

    assert [p.name_en for p in catalog_service.low_stock_products(account.id)] == ["Low"]

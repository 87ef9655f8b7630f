# Overview: Pytest coverage for posting sales: totals, stock, rollback and idempotency.

"""
Sale posting tests.

A sale is all-or-nothing: header, every line and every stock decrement
land together or not at all.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from shopledger.errors import NotFound, OutOfStock, SaleCreationFailed
from shopledger.models import Product, Sale, SaleLineItem
from shopledger.services import sales_service
from shopledger.services.cart_service import Cart
from shopledger.services.sales_service import commit_sale, generate_receipt_number, get_sale, list_sales
from shopledger.validation import ValidationError

from conftest import NOW, session_for


def _quantity(db_session, product_id):
    return db_session.query(Product.quantity).filter_by(id=product_id).scalar()


class TestCommitSale:
    def test_posts_header_lines_and_decrements_stock(self, db_session, account, make_product):
        product = make_product(account)
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 3)

        receipt = commit_sale(ctx, cart, "cash", customer_name="  Ali  ", now=NOW)

        assert receipt.total_amount_cents == 30000
        assert receipt.profit_cents == 12000
        assert receipt.receipt_number.startswith("RCP-")
        assert _quantity(db_session, product.id) == 2

        sale = db_session.get(Sale, receipt.sale_id)
        assert sale.customer_name == "Ali"
        assert sale.payment_method == "cash"
        assert len(sale.lines) == 1
        line = sale.lines[0]
        assert (line.quantity, line.unit_price_cents, line.subtotal_cents, line.profit_cents) == (3, 10000, 30000, 12000)
        assert line.product_name == "Rice 5kg"

    def test_total_equals_sum_of_lines(self, db_session, account, make_product):
        rice = make_product(account, name="Rice", quantity=10)
        oil = make_product(account, name="Oil", purchase=25000, selling=30000, quantity=4)
        bystander = make_product(account, name="Salt")
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(rice.id, 2)
        cart.add_item(oil.id, 1)
        cart.add_item(rice.id, 1)

        receipt = commit_sale(ctx, cart, "card", now=NOW)

        lines = db_session.query(SaleLineItem).filter_by(sale_id=receipt.sale_id).all()
        assert receipt.total_amount_cents == sum(l.subtotal_cents for l in lines) == 60000
        assert receipt.profit_cents == sum(l.profit_cents for l in lines) == 17000
        assert _quantity(db_session, rice.id) == 7
        assert _quantity(db_session, oil.id) == 3
        assert _quantity(db_session, bystander.id) == 5

    def test_cart_is_cleared_and_snapshot_reloaded(self, account, make_product):
        product = make_product(account)
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 3)

        commit_sale(ctx, cart, now=NOW)

        assert cart.is_empty
        assert cart.product(product.id).quantity == 2
        with pytest.raises(OutOfStock):
            cart.add_item(product.id, 3)

    def test_prices_fixed_when_added_to_cart(self, db_session, account, make_product):
        product = make_product(account)
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 1)

        product.selling_price_cents = 99999
        db_session.commit()

        receipt = commit_sale(ctx, cart, now=NOW)
        assert receipt.total_amount_cents == 10000

    def test_empty_cart_rejected(self, account):
        ctx = session_for(account)
        with pytest.raises(ValidationError):
            commit_sale(ctx, Cart.for_session(ctx))

    def test_unknown_payment_method_rejected(self, db_session, account, make_product):
        product = make_product(account)
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 1)

        with pytest.raises(ValidationError):
            commit_sale(ctx, cart, "barter")
        assert db_session.query(Sale).count() == 0

    def test_cart_from_another_account_rejected(self, account, make_account, make_product):
        other = make_account(name="Other")
        product = make_product(other)
        cart = Cart.for_account(other.id)
        cart.add_item(product.id, 1)

        with pytest.raises(ValidationError):
            commit_sale(session_for(account), cart)


class TestAtomicity:
    def test_stale_snapshot_cannot_oversell(self, db_session, account, make_product):
        product = make_product(account)
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 4)

        # Another register sold 3 after this cart was built
        db_session.query(Product).filter_by(id=product.id).update({"quantity": 2})
        db_session.commit()

        with pytest.raises(OutOfStock) as exc:
            commit_sale(ctx, cart, now=NOW)

        assert exc.value.details["on_hand"] == 2
        assert _quantity(db_session, product.id) == 2
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLineItem).count() == 0
        assert cart.quantity_of(product.id) == 4

    def test_failure_mid_sale_rolls_everything_back(self, db_session, account, make_product, monkeypatch):
        first = make_product(account, name="First")
        second = make_product(account, name="Second")
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(first.id, 2)
        cart.add_item(second.id, 2)

        real_decrement = sales_service._decrement_stock

        def flaky_decrement(account_id, product_id, quantity):
            if product_id == second.id:
                raise IntegrityError("UPDATE products", {}, Exception("constraint failed"))
            real_decrement(account_id, product_id, quantity)

        monkeypatch.setattr(sales_service, "_decrement_stock", flaky_decrement)

        with pytest.raises(SaleCreationFailed):
            commit_sale(ctx, cart, now=NOW)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLineItem).count() == 0
        assert _quantity(db_session, first.id) == 5
        assert _quantity(db_session, second.id) == 5
        assert not cart.is_empty

    def test_receipt_number_makes_retry_idempotent(self, db_session, account, make_product):
        product = make_product(account)
        ctx = session_for(account)

        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 2)
        first = commit_sale(ctx, cart, receipt_number="POS-0001", now=NOW)

        retry = Cart.for_session(ctx)
        retry.add_item(product.id, 2)
        second = commit_sale(ctx, retry, receipt_number="POS-0001", now=NOW)

        assert second.sale_id == first.sale_id
        assert db_session.query(Sale).count() == 1
        assert _quantity(db_session, product.id) == 3


class TestQueries:
    def test_get_sale_is_account_scoped(self, account, make_account, make_product):
        product = make_product(account)
        ctx = session_for(account)
        cart = Cart.for_session(ctx)
        cart.add_item(product.id, 1)
        receipt = commit_sale(ctx, cart, now=NOW)

        detail = get_sale(account.id, receipt.sale_id)
        assert detail["sale"]["receipt_number"] == receipt.receipt_number
        assert detail["lines"][0]["quantity"] == 1

        other = make_account(name="Other")
        with pytest.raises(NotFound):
            get_sale(other.id, receipt.sale_id)

    def test_list_sales_newest_first_with_range(self, account, make_product):
        product = make_product(account, quantity=10)
        ctx = session_for(account)
        for offset in (2, 1, 0):
            cart = Cart.for_session(ctx)
            cart.add_item(product.id, 1)
            commit_sale(ctx, cart, now=NOW - timedelta(days=offset))

        items = list_sales(account.id)
        assert len(items) == 3
        assert items[0]["created_at"] > items[-1]["created_at"]

        recent = list_sales(account.id, start=NOW - timedelta(days=1, hours=1))
        assert len(recent) == 2


def test_receipt_number_format():
    number = generate_receipt_number(NOW)
    prefix, epoch_ms, suffix = number.split("-")
    assert prefix == "RCP"
    assert epoch_ms == "1773576000000"
    assert len(suffix) == 4 and suffix == suffix.upper()

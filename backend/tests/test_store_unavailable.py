# Overview: Writes against a database that cannot be opened.

"""
A store that cannot be reached must surface as PersistenceUnavailable
(HTTP 503), not as a rejected write.
"""

import pytest

from shopledger import create_app
from shopledger.context import SessionContext
from shopledger.errors import PersistenceUnavailable, http_status
from shopledger.extensions import db
from shopledger.services.cart_service import Cart
from shopledger.services.catalog_service import ProductSnapshot
from shopledger.services.sales_service import commit_sale
from shopledger.services.subscription_service import subscribe

from conftest import NOW


@pytest.fixture
def unreachable_app(tmp_path):
    # Parent directory does not exist, so sqlite cannot open the file
    db_path = tmp_path / "missing" / "shop.db"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'COMMIT_RETRY_ATTEMPTS': 3,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _cart(account_id):
    snapshot = {
        1: ProductSnapshot(
            id=1,
            name="Rice 5kg",
            selling_price_cents=10000,
            purchase_price_cents=6000,
            quantity=5,
            low_stock_threshold=10,
        )
    }
    cart = Cart(account_id, snapshot)
    cart.add_item(1, 2)
    return cart


def test_commit_sale_reports_unavailable_store(unreachable_app):
    with unreachable_app.app_context():
        ctx = SessionContext(account_id=1)
        cart = _cart(1)

        with pytest.raises(PersistenceUnavailable) as excinfo:
            commit_sale(ctx, cart, "cash", now=NOW)

        assert http_status(excinfo.value) == 503
        # Cart is kept for a retry once the store is back
        assert cart.quantity_of(1) == 2


def test_idempotent_commit_reports_unavailable_store(unreachable_app):
    with unreachable_app.app_context():
        with pytest.raises(PersistenceUnavailable):
            commit_sale(SessionContext(account_id=1), _cart(1), receipt_number="RCP-1", now=NOW)


def test_subscribe_reports_unavailable_store(unreachable_app):
    with unreachable_app.app_context():
        with pytest.raises(PersistenceUnavailable):
            subscribe(SessionContext(account_id=1), "standard", now=NOW)

# Overview: Threaded race between two registers selling the same stock.

"""
Two sessions build carts from the same snapshot (5 on hand, 4 each) and
commit at the same moment against a file-backed database. At most one
sale may post and stock must never go negative.
"""

import threading

import pytest

from shopledger import create_app
from shopledger.context import SessionContext
from shopledger.errors import OutOfStock, SaleCreationFailed
from shopledger.extensions import db
from shopledger.models import Account, Product, Sale
from shopledger.services.cart_service import Cart
from shopledger.services.sales_service import commit_sale


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'COMMIT_RETRY_ATTEMPTS': 5,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_concurrent_commits_never_oversell(file_app):
    with file_app.app_context():
        account = Account(business_name="Race Store")
        db.session.add(account)
        db.session.flush()
        product = Product(
            account_id=account.id,
            name_en="Flour",
            purchase_price_cents=6000,
            selling_price_cents=10000,
            quantity=5,
        )
        db.session.add(product)
        db.session.commit()
        account_id, product_id = account.id, product.id

    barrier = threading.Barrier(2)
    results = []
    lock = threading.Lock()

    def register():
        with file_app.app_context():
            ctx = SessionContext(account_id=account_id)
            cart = Cart.for_session(ctx)
            cart.add_item(product_id, 4)
            barrier.wait()
            try:
                receipt = commit_sale(ctx, cart)
                outcome = receipt
            except (OutOfStock, SaleCreationFailed) as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=register) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(results) == 2
    posted = [r for r in results if not isinstance(r, Exception)]
    assert len(posted) <= 1

    with file_app.app_context():
        quantity = db.session.query(Product.quantity).filter_by(id=product_id).scalar()
        sales = db.session.query(Sale).count()

    assert quantity >= 0
    assert sales == len(posted)
    assert quantity == 5 - 4 * len(posted)

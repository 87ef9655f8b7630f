"""
Pytest fixtures for shopledger backend tests.

Provides an in-memory database shared for the session, a table wipe per
test, account/product factories and a test client.
"""

from datetime import datetime, timedelta

import pytest
from shopledger import create_app
from shopledger.context import SessionContext
from shopledger.extensions import db
from shopledger.models import Account, Coupon, Product

# Fixed clock for window and expiry tests (a Sunday, mid-month)
NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ACCOUNT_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_account(db_session):
    """Factory: make_account(tier="standard", expiry=NOW + timedelta(days=30))."""
    def _make(tier="free", expiry=None, role="user", language="en", name="Corner Store"):
        account = Account(
            business_name=name,
            subscription_tier=tier,
            subscription_expiry=expiry,
            role=role,
            language=language,
        )
        db_session.add(account)
        db_session.commit()
        return account
    return _make


@pytest.fixture(scope='function')
def account(make_account):
    """Free-tier account."""
    return make_account()


@pytest.fixture(scope='function')
def paid_account(make_account):
    """Standard-tier account, paid well past NOW."""
    return make_account(tier="standard", expiry=NOW + timedelta(days=30), name="Paid Store")


@pytest.fixture(scope='function')
def admin_account(make_account):
    return make_account(tier="premium", role="admin", name="Platform Admin")


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory with the classic shelf item: cost 60.00, price 100.00, 5 on hand."""
    def _make(account, name="Rice 5kg", purchase=6000, selling=10000, quantity=5, threshold=10, **extra):
        product = Product(
            account_id=account.id,
            name_en=name,
            purchase_price_cents=purchase,
            selling_price_cents=selling,
            quantity=quantity,
            low_stock_threshold=threshold,
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_coupon(db_session):
    def _make(code="SAVE50", discount=5000, usage_limit=100, used_count=0, is_active=True, expiry=None):
        coupon = Coupon(
            code=code,
            discount_amount_cents=discount,
            usage_limit=usage_limit,
            used_count=used_count,
            is_active=is_active,
            expiry_date=expiry,
        )
        db_session.add(coupon)
        db_session.commit()
        return coupon
    return _make


def session_for(account, locale="en") -> SessionContext:
    return SessionContext(account_id=account.id, locale=locale)


def account_headers(account) -> dict:
    """Helper to create account headers."""
    return {'X-Account-Id': str(account.id)}

# Overview: Flask CLI command groups for bootstrap, accounts and coupons.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-name "Platform Admin"]
#   Idempotent: creates tables and the platform admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask accounts list
# - python -m flask accounts create --name "Corner Store" --tier standard --language ur
#
# Coupons (acts as the first admin account):
# - python -m flask coupons list [--all]
# - python -m flask coupons create --code WELCOME50 --discount 5000 --limit 100
# - python -m flask coupons deactivate WELCOME50

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account
from .models.accounts import LANGUAGES, ROLE_ADMIN, ROLE_USER, TIERS, TIER_FREE, TIER_PREMIUM
from .services import account_service, subscription_service
from .errors import ShopLedgerError
from .validation import ValidationError
from .time_utils import add_months, parse_iso_datetime, utcnow


def _first_admin() -> Account:
    admin = (
        db.session.query(Account)
        .filter(Account.role == ROLE_ADMIN, Account.is_active.is_(True))
        .order_by(Account.id.asc())
        .first()
    )
    if admin is None:
        raise click.ClickException("No admin account. Run 'python -m flask system init' first.")
    return admin


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Platform Admin', help='Business name for the admin account')
@with_appcontext
def init_system(admin_name):
    """Create tables and the platform admin account if missing."""
    click.echo("START Initializing shopledger...")
    db.create_all()

    admin = db.session.query(Account).filter_by(role=ROLE_ADMIN).first()
    if admin:
        click.echo(f"PASS Using existing admin account: {admin.business_name} (ID: {admin.id})")
    else:
        admin = account_service.create_account(
            business_name=admin_name,
            tier=TIER_PREMIUM,
            role=ROLE_ADMIN,
        )
        click.echo(f"PASS Created admin account: {admin.business_name} (ID: {admin.id})")

    click.echo("DONE System ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('accounts')
def accounts_group():
    """Account inspection and bootstrap."""


@accounts_group.command('list')
@with_appcontext
def list_accounts():
    accounts = account_service.list_accounts()
    if not accounts:
        click.echo("No accounts.")
        return
    for a in accounts:
        expiry = a.subscription_expiry.date().isoformat() if a.subscription_expiry else "-"
        status = "active" if a.is_active else "inactive"
        click.echo(f"{a.id:>5}  {a.business_name:<30} {a.subscription_tier:<9} {expiry:<11} {a.role:<6} {status}")


@accounts_group.command('create')
@click.option('--name', 'business_name', prompt=True, help='Business name')
@click.option('--type', 'business_type', default=None, help='Business type, e.g. grocery')
@click.option('--phone', default=None)
@click.option('--tier', type=click.Choice(TIERS), default=TIER_FREE, show_default=True)
@click.option('--months', type=int, default=1, show_default=True, help='Paid period for non-free tiers')
@click.option('--language', type=click.Choice(LANGUAGES), default='en', show_default=True)
@click.option('--admin', 'is_admin', is_flag=True, help='Grant the admin role')
@with_appcontext
def create_account(business_name, business_type, phone, tier, months, language, is_admin):
    expiry = add_months(utcnow(), months) if tier != TIER_FREE else None
    try:
        account = account_service.create_account(
            business_name=business_name,
            business_type=business_type,
            phone=phone,
            tier=tier,
            expiry=expiry,
            role=ROLE_ADMIN if is_admin else ROLE_USER,
            language=language,
        )
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created account {account.business_name} (ID: {account.id}, tier: {account.subscription_tier})")


@click.group('coupons')
def coupons_group():
    """Subscription coupon management."""


@coupons_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Include deactivated coupons')
@with_appcontext
def list_coupons(show_all):
    admin = _first_admin()
    coupons = subscription_service.list_coupons(admin.id, active_only=not show_all)
    if not coupons:
        click.echo("No coupons.")
        return
    for c in coupons:
        state = "active" if c.is_active else "inactive"
        expiry = c.expiry_date.date().isoformat() if c.expiry_date else "-"
        click.echo(f"{c.code:<20} {c.discount_amount_cents:>8}  {c.used_count}/{c.usage_limit:<6} {expiry:<11} {state}")


@coupons_group.command('create')
@click.option('--code', prompt=True)
@click.option('--discount', 'discount_cents', type=int, prompt=True, help='Discount in cents')
@click.option('--limit', 'usage_limit', type=int, default=100, show_default=True)
@click.option('--expires', default=None, help='ISO-8601 expiry, e.g. 2026-12-31T23:59:59Z')
@with_appcontext
def create_coupon(code, discount_cents, usage_limit, expires):
    admin = _first_admin()
    try:
        coupon = subscription_service.create_coupon(
            admin.id,
            code=code,
            discount_amount_cents=discount_cents,
            usage_limit=usage_limit,
            expiry_date=parse_iso_datetime(expires),
        )
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created coupon {coupon.code} ({coupon.discount_amount_cents} off, {coupon.usage_limit} uses)")


@coupons_group.command('deactivate')
@click.argument('code')
@with_appcontext
def deactivate_coupon(code):
    admin = _first_admin()
    try:
        coupon = subscription_service.deactivate_coupon(admin.id, code)
    except ShopLedgerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Deactivated coupon {coupon.code}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(coupons_group)

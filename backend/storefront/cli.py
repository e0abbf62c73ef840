# Overview: Flask CLI command groups for bootstrap and store administration.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent; use `flask db upgrade` for migrated deployments).
#
# Store management (MULTI-TENANT):
# - python -m flask stores create --business "Acme" --name "Acme Store" --url acme.sqale.shop --code ACM --booking
#   Create a business (if needed) and a store.
# - python -m flask stores issue-key --store-id 1 --label "Front desk"
#   Issue a staff API key; the token is printed once.
#
# Inventory:
# - python -m flask inventory low-stock --store-id 1
#   List products/variants at or below their low-stock threshold.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Business, Store
from .services.auth_service import issue_api_key
from .services.inventory_service import low_stock_report


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@click.group('stores')
def stores_group():
    """Business and store management."""


@stores_group.command('create')
@click.option('--business', 'business_name', required=True, help='Business (tenant) name')
@click.option('--name', required=True, help='Store name')
@click.option('--url', required=True, help='Unique storefront URL, e.g. acme.sqale.shop')
@click.option('--code', default=None, help='Store code; its last 3 characters prefix order numbers')
@click.option('--currency', default=None, help='ISO currency code (default from config)')
@click.option('--booking/--no-booking', default=False, help='Enable bookings for the store')
@with_appcontext
def create_store(business_name, name, url, code, currency, booking):
    """Create a store, creating its business when it does not exist."""
    url = url.strip().lower()
    if db.session.query(Store).filter_by(url=url).first():
        raise click.ClickException(f"Store URL already in use: {url}")

    business = db.session.query(Business).filter_by(name=business_name).first()
    if business is None:
        business = Business(name=business_name)
        db.session.add(business)
        db.session.flush()
        click.echo(f"Created business {business.id}: {business.name}")

    store = Store(
        business_id=business.id,
        name=name,
        url=url,
        code=code,
        currency=currency or current_app.config["DEFAULT_CURRENCY"],
        booking_enabled=booking,
    )
    db.session.add(store)
    db.session.commit()
    click.echo(f"PASS Created store {store.id}: {store.name} ({store.url}), order prefix {store.order_prefix}")


@stores_group.command('issue-key')
@click.option('--store-id', type=int, required=True)
@click.option('--label', required=True, help='Shown as the actor on timeline entries')
@with_appcontext
def issue_key(store_id, label):
    """Issue a staff API key for a store."""
    store = db.session.get(Store, store_id)
    if store is None:
        raise click.ClickException(f"Store {store_id} not found")

    key, token = issue_api_key(store, label)
    click.echo(f"PASS Issued key {key.id} for store {store.id} ({label})")
    click.echo(f"Token (shown once): {token}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection."""


@inventory_group.command('low-stock')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def low_stock(store_id):
    """List products and variants at or below their low-stock threshold."""
    rows = low_stock_report(store_id)
    if not rows:
        click.echo("No low-stock items.")
        return
    for row in rows:
        click.echo(f"{row['name']}: {row['inventory']} (threshold {row['threshold']})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(inventory_group)

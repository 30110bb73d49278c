# Overview: Flask CLI command groups for bootstrap, catalog setup, and inspection.

# backend/ordering/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="ordering:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Retailers:
# - python -m flask retailers list [--status active]
#   List retailers with balance and credit limit.
# - python -m flask retailers create --name "Corner Shop" --credit-limit 50000
#   Create a retailer in 'pending' (credit limit in cents).
# - python -m flask retailers activate <retailer_id>
#   Activate a pending or suspended retailer.
#
# Products:
# - python -m flask products create --sku SKU-1 --name "Rice 5kg" --price 1250 --stock 100 [--tax-bps 1500]
#   Create a product (price in cents, tax in basis points).
# - python -m flask products adjust-stock <product_id> --delta -3 --reason "Damaged"
#   Direct stock correction; never goes below zero.
#
# Orders:
# - python -m flask orders stats [--from 2026-01-01] [--to 2026-01-31] [--retailer-id <id>]
#   Counts by status, revenue and week-over-week trend.

import click
from flask.cli import with_appcontext

from .errors import OrderingError
from .extensions import db
from .services import order_stats_service, products_service, retailer_service, stock_service


CLI_ACTOR = "cli"


def _fail(exc: OrderingError):
    raise click.ClickException(exc.message)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete.")


@click.group('retailers')
def retailers_group():
    """Retailer account management."""


@retailers_group.command('list')
@click.option('--status', default=None, help='Filter by status')
@with_appcontext
def list_retailers(status):
    """List retailers."""
    try:
        retailers = retailer_service.list_retailers(status=status)
    except OrderingError as e:
        _fail(e)

    if not retailers:
        click.echo("No retailers found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<38} {'Name':<25} {'Status':<10} {'Balance':>12} {'Limit':>12}")
    click.echo("="*100)
    for r in retailers:
        click.echo(
            f"{r.id:<38} {r.business_name[:25]:<25} {r.status:<10} "
            f"{r.current_balance_cents:>12} {r.credit_limit_cents:>12}"
        )
    click.echo("="*100 + "\n")


@retailers_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--phone', default=None)
@click.option('--email', default=None)
@click.option('--credit-limit', 'credit_limit', default=0, type=int, help='Credit limit in cents')
@with_appcontext
def create_retailer(name, phone, email, credit_limit):
    """Create a retailer in 'pending' status."""
    try:
        retailer = retailer_service.create_retailer(
            name, phone=phone, email=email, credit_limit_cents=credit_limit, actor_id=CLI_ACTOR
        )
    except OrderingError as e:
        _fail(e)
    click.echo(f"PASS Created retailer: {retailer.business_name} (ID: {retailer.id})")


@retailers_group.command('activate')
@click.argument('retailer_id')
@with_appcontext
def activate_retailer(retailer_id):
    """Activate a retailer so it can place orders."""
    try:
        retailer = retailer_service.set_retailer_status(retailer_id, "active", actor_id=CLI_ACTOR)
    except OrderingError as e:
        _fail(e)
    click.echo(f"PASS Retailer {retailer.business_name} is now active")


@click.group('products')
def products_group():
    """Catalog and stock commands."""


@products_group.command('create')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--price', 'price_cents', required=True, type=int, help='Base price in cents')
@click.option('--stock', default=0, type=int, help='Initial stock quantity')
@click.option('--tax-bps', default=0, type=int, help='Tax rate in basis points')
@click.option('--unit', default=None)
@with_appcontext
def create_product(sku, name, price_cents, stock, tax_bps, unit):
    """Create a product."""
    try:
        product = products_service.create_product(
            sku=sku,
            name=name,
            base_price_cents=price_cents,
            stock_quantity=stock,
            tax_rate_bps=tax_bps,
            unit=unit,
            actor_id=CLI_ACTOR,
        )
    except OrderingError as e:
        _fail(e)
    click.echo(f"PASS Created product: {product.sku} (ID: {product.id}, stock: {product.stock_quantity})")


@products_group.command('adjust-stock')
@click.argument('product_id')
@click.option('--delta', required=True, type=int, help='Signed quantity change')
@click.option('--reason', required=True)
@with_appcontext
def adjust_stock(product_id, delta, reason):
    """Apply a direct stock correction."""
    try:
        product = stock_service.adjust_stock(product_id, delta, reason=reason, actor_id=CLI_ACTOR)
    except OrderingError as e:
        _fail(e)
    click.echo(f"PASS Stock for {product.sku} is now {product.stock_quantity}")


@click.group('orders')
def orders_group():
    """Order inspection commands."""


@orders_group.command('stats')
@click.option('--from', 'date_from', default=None, help='ISO date/datetime (inclusive)')
@click.option('--to', 'date_to', default=None, help='ISO date/datetime (inclusive)')
@click.option('--retailer-id', default=None)
@with_appcontext
def order_stats(date_from, date_to, retailer_id):
    """Print order statistics."""
    try:
        stats = order_stats_service.get_order_stats(date_from=date_from, date_to=date_to, retailer_id=retailer_id)
    except OrderingError as e:
        _fail(e)

    click.echo("\n" + "="*60)
    click.echo(f"Total orders:        {stats['total_orders']}")
    click.echo(f"Total revenue:       {stats['total_revenue_cents'] / 100:.2f}")
    click.echo(f"Average order value: {stats['average_order_value_cents'] / 100:.2f}")
    click.echo(f"Last 7 days:         {stats['recent_orders_count']} ({stats['order_trend_percent']:+.2f}%)")
    click.echo("-"*60)
    for status, count in stats["status_breakdown"].items():
        click.echo(f"  {status:<12} {count}")
    click.echo("="*60 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(retailers_group)
    app.cli.add_command(products_group)
    app.cli.add_command(orders_group)

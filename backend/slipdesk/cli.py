# Overview: Flask CLI command group for database bootstrap and maintenance.

# backend/slipdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask store init-db
#   Create any missing tables (no data is touched).
# - python -m flask store reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask store wipe --yes
#   Delete all slips, income records and items, keeping the schema.
# - python -m flask store low-stock
#   List active items at or below their minimum stock level.

import click
from flask.cli import with_appcontext

from .extensions import db


@click.group('store')
def store_group():
    """Store data management commands."""
    pass


@store_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@store_group.command('reset-db')
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


@store_group.command('wipe')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe_data(yes):
    """Delete all slips, income records and items while keeping the schema."""
    if not yes:
        click.confirm("WARN This will DELETE all slips, income and items. Are you sure?", abort=True)

    from .services import reset_service

    deleted = reset_service.wipe_all(db.session)
    click.echo(
        f"PASS Deleted {deleted['slips']} slips, "
        f"{deleted['incomeRecords']} income records, {deleted['items']} items."
    )


@store_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active items at or below their minimum stock level."""
    from .services import item_service

    result = item_service.list_items(db.session, low_stock=True, limit=1000)
    if not result["items"]:
        click.echo("No low-stock items.")
        return

    click.echo(f"{'SKU':<36} {'Name':<40} {'Qty':>5} {'Min':>5}")
    click.echo("-" * 89)
    for item in result["items"]:
        click.echo(
            f"{item['sku']:<36} {item['name'][:40]:<40} "
            f"{item['quantity']:>5} {item['minStockLevel']:>5}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(store_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/toursales/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent). Use `flask db upgrade` when running migrations.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sale inspection:
# - python -m flask sales show TUR-20250515-AB12
#   Print a sale (by secure id or idSaleProvider) as JSON.
#
# Provider:
# - python -m flask provider token
#   Fetch a provider token and print its expiry (token shown only in development).
#
# Maintenance:
# - python -m flask maintenance cleanup-login-attempts --retention-days 90
#   Delete login attempts older than the retention window.

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import TourSalesError
from .extensions import db
from .services import login_throttle_service
from .services import sale_lifecycle_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    click.echo("START Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


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


@click.group('sales')
def sales_group():
    """Sale inspection commands."""


@sales_group.command('show')
@click.argument('sale_id')
@with_appcontext
def show_sale_cli(sale_id):
    """
    Print one sale in its public form.

    Example:
        flask sales show TUR-20250515-AB12
        flask sales show PROV-000123
    """
    try:
        sale = sale_lifecycle_service.get_sale(sale_id)
    except TourSalesError as e:
        raise click.ClickException(e.message)
    click.echo(json.dumps(sale.to_dict(), indent=2, ensure_ascii=False))


@click.group('provider')
def provider_group():
    """Tour provider commands."""


@provider_group.command('token')
@with_appcontext
def provider_token_cli():
    """Fetch a provider access token and show when it expires."""
    token_cache = current_app.extensions["tour_provider"].token_cache
    try:
        token = token_cache.get_token()
    except TourSalesError as e:
        raise click.ClickException(e.message)

    state = token_cache.state()
    click.echo(f"PASS Token obtained, expires at {state['expires_at']}")
    if current_app.config.get("APP_ENV") == "development":
        click.echo(token)


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-login-attempts')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_login_attempts_cli(retention_days):
    """
    Cleanup old login attempts.

    Default retention: 90 days.
    """
    deleted = login_throttle_service.cleanup_login_attempts(retention_days=retention_days)
    click.echo(f"Deleted {deleted} login attempts older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(provider_group)
    app.cli.add_command(maintenance_group)

# Overview: Flask CLI command groups for bootstrap, users and inspection.

# backend/stockpilot/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users and API tokens:
# - python -m flask users create --username admin --name "Admin" --role admin
#   Create a user and print its API token (shown once).
# - python -m flask users issue-token admin
#   Replace a user's API token and print the new one.
# - python -m flask users list
#   List users with roles and active status.
#
# Inspection:
# - python -m flask products low-stock
#   List active products at or below their low-stock threshold.
# - python -m flask products expiring --days 30
#   List active products (or lots with stock left) expiring within the window.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User, USER_ROLES
from .services import session_service
from .services.products_service import EXPIRY_ALERT_DAYS, list_expiring_products, list_low_stock_products


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add a user.")


@click.group('users')
def users_group():
    """User and API token commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name (recorded on orders and movements)')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, name, role):
    """Create a new user and print its API token."""
    try:
        user, token = session_service.create_user(username=username, name=name, role=role)
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user '{user.username}' (id={user.id}, role={user.role})")
    click.echo(f"Token: {token}")
    click.echo("Store this token now; it cannot be shown again.")


@users_group.command('issue-token')
@click.argument('username')
@with_appcontext
def issue_token_cli(username):
    """Replace a user's API token. The previous token stops working."""
    try:
        token = session_service.issue_token(username)
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS New token for '{username}'")
    click.echo(f"Token: {token}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found. Run 'python -m flask users create'.")
        return

    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.name:<30} {user.role:<6} {status}")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below their low-stock threshold."""
    products = list_low_stock_products()
    if not products:
        click.echo("PASS No products are low on stock.")
        return

    click.echo(f"WARN {len(products)} product(s) low on stock:")
    for p in products:
        click.echo(f"  [{p.id}] {p.name} (sku={p.sku or '-'}): stock {p.stock} <= threshold {p.low_stock_threshold}")


@products_group.command('expiring')
@click.option('--days', type=click.IntRange(min=0), default=EXPIRY_ALERT_DAYS, show_default=True,
              help='Alert window in days from today')
@with_appcontext
def expiring(days):
    """List active products expiring within the next N days."""
    try:
        alerts = list_expiring_products(days)
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    if not alerts:
        click.echo(f"PASS No products expire within {days} day(s).")
        return

    click.echo(f"WARN {len(alerts)} product(s) expire within {days} day(s):")
    for a in alerts:
        p = a.product
        click.echo(f"  [{p.id}] {p.name} (sku={p.sku or '-'}): expires {a.expires_on.isoformat()}, stock {p.stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)

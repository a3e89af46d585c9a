# Overview: Flask CLI command groups for bootstrap, inspection, and ledger maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables plus default admin and cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username alice --email alice@pos.local --password "secret1" --role cashier
#   Create a user (prompts if options are omitted).
#
# Stock ledger:
# - python -m flask stock reconcile
#   Report products whose stock_quantity differs from the ledger balance.
# - python -m flask stock low --limit 20
#   List active products at or below minimum stock.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .errors import DuplicateUserError
from .models import User
from .models.auth import USER_ROLES
from .services.auth_service import create_user
from .services.catalog_service import list_low_stock_products
from .services.stock_service import reconcile_stock
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--password', default='Password123!', show_default=True, help='Password for the default users')
@with_appcontext
def init_system(password):
    """
    Initialize the POS database: tables and default users.

    Creates:
    - All tables (no-op for tables that already exist)
    - Users: admin/admin@pos.local (admin), cashier/cashier@pos.local (cashier)

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing POS system...")

    db.create_all()
    click.echo("PASS Tables created")

    default_users = [
        ("admin", "admin@pos.local", "admin"),
        ("cashier", "cashier@pos.local", "cashier"),
    ]

    for username, email, role in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username=username, email=email, password=password, role=role)
        except (DuplicateUserError, ValidationError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{username}': {e}")
            continue
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")

    click.echo("\nDONE POS system initialized.")
    click.echo("SECURITY Change the default passwords before going live!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='cashier', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """Create a new user."""
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except (DuplicateUserError, ValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<10} {active_str}")
    click.echo("="*80 + "\n")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('reconcile')
@with_appcontext
def reconcile_cli():
    """
    Compare every product's stock_quantity with its ledger balance.

    Exits non-zero when any product is out of balance. Floor-clamped
    movements are the expected cause.
    """
    mismatches = reconcile_stock()
    if not mismatches:
        click.echo("PASS Every product matches its stock ledger.")
        return

    click.echo(f"{'Product':<8} {'Barcode':<20} {'Stock':>8} {'Ledger':>8} {'Diff':>8}")
    for row in mismatches:
        click.echo(
            f"{row['product_id']:<8} {row['barcode']:<20} "
            f"{row['stock_quantity']:>8} {row['ledger_balance']:>8} {row['difference']:>8}"
        )
    raise click.ClickException(f"{len(mismatches)} product(s) out of balance")


@stock_group.command('low')
@click.option('--limit', type=int, default=None, help='Maximum rows (defaults to LOW_STOCK_DEFAULT_LIMIT)')
@with_appcontext
def low_stock_cli(limit):
    """List active products at or below their minimum stock."""
    limit = limit or current_app.config["LOW_STOCK_DEFAULT_LIMIT"]
    products = list_low_stock_products(limit=limit)
    if not products:
        click.echo("No low-stock products.")
        return

    for product in products:
        click.echo(
            f"{product.id:<6} {product.barcode:<20} {product.name:<30} "
            f"{product.stock_quantity:>6} / min {product.minimum_stock}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)

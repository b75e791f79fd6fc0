# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --failsafe-password "..."
#   Create tables (if missing) and create or repair the failsafe admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email jane@example.com --first-name Jane --last-name Doe --role manager
#
# Products:
# - python -m flask products compact
#   Renumber products to 1..N in creation order and reset the counter.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User
from .permissions import ROLES, ROLE_EMPLOYEE
from .services import user_service
from .services.concurrency import run_with_retry
from .services.sequence_service import compact_product_numbers


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--failsafe-password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Password for the failsafe admin account')
@with_appcontext
def init_system(failsafe_password):
    """
    Create missing tables and the failsafe admin account.

    Idempotent: re-running repairs the failsafe account (admin, active) and
    resets its password.
    """
    click.echo("START Initializing stockroom...")
    db.create_all()

    try:
        user = user_service.ensure_failsafe_admin(failsafe_password)
    except DomainError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Failsafe admin ready: {user.email} (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default=ROLE_EMPLOYEE, show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, first_name, last_name, password, role):
    """Create a user (password min 6 characters)."""
    try:
        user = user_service.provision_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
    except DomainError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<10} {'Active':<8}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        name = user.full_name + (" *" if user.is_failsafe else "")
        click.echo(f"{user.id:<5} {user.email:<35} {name:<25} {user.role:<10} {active_str:<8}")

    click.echo("="*90 + "\n")


@click.group('products')
def products_group():
    """Product maintenance."""


@products_group.command('compact')
@with_appcontext
def compact_products():
    """Renumber products densely (1..N by creation order)."""
    def _op():
        moved = compact_product_numbers()
        db.session.commit()
        return moved

    moved = run_with_retry(_op)
    click.echo(f"PASS Product numbers compacted ({moved} renumbered)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)

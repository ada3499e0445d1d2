# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend:
# - Set FLASK_APP to wsgi.py, then use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--store-code MAIN01]
#   Create tables and, when no store exists yet, a demo store with an admin user.
#
# Store management:
# - python -m flask stores list
# - python -m flask stores create --name "Corner Shop" --code CORNER --username owner --name-of-admin "Owner"
#   Register a store with its first admin user (prompts for the password).
#
# User bootstrap:
# - python -m flask users create --store-code MAIN01 --username bob --name "Bob" --role staff
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked sessions.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User
from .models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF
from .services import auth_service, session_service, store_service
from .validation import ConflictError, ValidationError

DEMO_PASSWORD = "secret1"


def _echo_validation_error(e: ValidationError) -> None:
    click.echo(f"FAIL {e.message}")
    for err in e.errors:
        click.echo(f"     {err['field']}: {err['message']}")


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--store-code', default='MAIN01', show_default=True, help='Code of the demo store')
@click.option('--store-name', default='Main Store', show_default=True, help='Name of the demo store')
@with_appcontext
def init_system(store_code, store_name):
    """
    Create all tables and a demo store on an empty database.

    Idempotent: existing stores are left untouched.

    SECURITY: The demo admin password is "secret1". Change it in production!
    """
    db.create_all()
    click.echo("PASS Tables ready")

    if db.session.query(Store).first() is not None:
        click.echo("PASS Stores already exist, skipping demo data")
        return

    try:
        store, user = auth_service.register_store(
            store_data={"name": store_name, "code": store_code},
            username="admin",
            password=DEMO_PASSWORD,
            name="Administrator",
        )
    except ValidationError as e:
        _echo_validation_error(e)
        return

    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")
    click.echo(f"PASS Created admin user: {user.username} / {DEMO_PASSWORD}")
    click.echo("SECURITY Change the admin password before going live!")


@click.group('stores')
def stores_group():
    """Store (tenant) management commands."""


@stores_group.command('list')
@with_appcontext
def list_stores_cli():
    """List all stores."""
    stores = store_service.list_stores()
    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<35} {'Users'}")
    click.echo("=" * 70)
    for store in stores:
        user_count = db.session.query(User).filter_by(store_id=store.id).count()
        click.echo(f"{store.id:<5} {store.code:<12} {store.name:<35} {user_count}")
    click.echo("=" * 70 + "\n")


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', required=True, help='Store code staff type at login (unique)')
@click.option('--username', prompt=True, help='Admin username')
@click.option('--name-of-admin', 'admin_name', prompt=True, help='Admin display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def create_store_cli(name, code, username, admin_name, password):
    """Register a store and its first admin user."""
    try:
        store, user = auth_service.register_store(
            store_data={"name": name, "code": code},
            username=username,
            password=password,
            name=admin_name,
        )
    except ValidationError as e:
        _echo_validation_error(e)
        return
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")
    click.echo(f"PASS Created admin user: {user.username}")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--store-code', required=True, help='Store code')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF]), default=ROLE_STAFF, show_default=True)
@with_appcontext
def create_user_cli(store_code, username, name, email, password, role):
    """Create a user inside an existing store."""
    store = auth_service.get_store_by_code(store_code)
    if store is None:
        click.echo(f"FAIL Store code '{store_code}' not found")
        return

    try:
        user = auth_service.create_user(
            store_id=store.id,
            username=username,
            password=password,
            name=name,
            email=email,
            role=role,
        )
    except ValidationError as e:
        _echo_validation_error(e)
        return
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.username} with role '{user.role}' in store {store.code}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked sessions created before the cutoff."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)

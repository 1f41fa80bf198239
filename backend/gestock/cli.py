# Overview: Flask CLI command groups for bootstrap, user administration, and maintenance.

# backend/gestock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Apply the schema first: python -m flask db upgrade
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--email admin@gestock.local] [--password "..."]
#   Idempotent: seeds the three stocks and a super_admin account.
#
# User administration:
# - python -m flask users list [--all]
#   List users with role, stock and active status.
# - python -m flask users create --username amina --email amina@example.com --password "secret1" --role caissier --stock renaissance
#   Create a user (prompts if options are omitted). --stock is ignored for super_admin.
# - python -m flask users migrate-passwords
#   Hash every stored password that is not already bcrypt.
#
# Maintenance:
# - python -m flask maintenance find-duplicates
#   Print the duplicate product consolidation plan.
# - python -m flask maintenance cleanup-duplicates [--execute]
#   Apply the plan (dry run unless --execute).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import ROLES, ROLE_SUPER_ADMIN, User
from .services import duplicate_service
from .services.auth_service import UserError, create_user, migrate_plaintext_passwords
from .services.stock_service import STOCKS, ensure_stocks, stock_slug


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--username', default='superadmin', show_default=True, help='Super admin username')
@click.option('--email', default='admin@gestock.local', show_default=True, help='Super admin email')
@click.option('--password', default='ChangeMe123', show_default=True, help='Super admin password')
@with_appcontext
def init_system(username, email, password):
    """
    Seed the stock registry and a super admin.

    Safe to run repeatedly: existing stocks and an existing super admin are
    left alone.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing GeStock...")

    created = ensure_stocks()
    db.session.commit()
    click.echo(f"PASS Stocks ready ({created} created): {', '.join(s.slug for s in STOCKS)}")

    existing = db.session.query(User).filter_by(role=ROLE_SUPER_ADMIN).first()
    if existing:
        click.echo(f"WARN  Super admin '{existing.username}' already exists, skipping...")
        return

    try:
        user = create_user(username=username, email=email, password=password, role=ROLE_SUPER_ADMIN)
        db.session.commit()
    except UserError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create super admin: {e.message}")
        return

    click.echo(f"PASS Created super admin: {user.username} ({user.email})")
    click.echo("\nSECURITY Change this password immediately in production!")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--stock', 'stock', help='Stock slug or id (required unless super_admin)')
@with_appcontext
def create_user_cli(username, email, password, role, stock):
    """
    Create a new user.

    Password must be at least 6 characters; it is stored as a bcrypt hash.
    """
    try:
        user = create_user(username=username, email=email, password=password, role=role, stock_id=stock)
        db.session.commit()
    except UserError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e.message}")
        return

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    if user.stock_id:
        click.echo(f"     Stock: {stock_slug(user.stock_id)}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive users')
@with_appcontext
def list_users(include_inactive):
    """List users with their role and stock."""
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<12} {'Stock':<12} {'Active'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        stock_str = stock_slug(user.stock_id) or "-"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<12} {stock_str:<12} {active_str}")

    click.echo("="*100 + "\n")


@users_group.command('migrate-passwords')
@with_appcontext
def migrate_passwords_cli():
    """Replace legacy plain-text passwords with bcrypt hashes."""
    migrated = migrate_plaintext_passwords()
    db.session.commit()
    click.echo(f"PASS Migrated {migrated} password(s) to bcrypt.")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('find-duplicates')
@with_appcontext
def find_duplicates_cli():
    """Print products sharing a normalized name and which one would be kept."""
    plan = duplicate_service.find_duplicates()
    if not plan["groups"]:
        click.echo("No duplicate products found.")
        return

    for group in plan["groups"]:
        click.echo(
            f"{group['name']}: keep #{group['keepId']}, "
            f"delete {', '.join(f'#{i}' for i in group['deleteIds'])} "
            f"({group['totalSales']} sale lines)"
        )
    click.echo(f"\n{plan['totalGroups']} group(s), {plan['totalToDelete']} product(s) to delete.")


@maintenance_group.command('cleanup-duplicates')
@click.option('--execute', is_flag=True, help='Write changes (default is a dry run)')
@with_appcontext
def cleanup_duplicates_cli(execute):
    """
    Consolidate duplicate products onto the most-sold one.

    Each group commits on its own; a failing group is reported and skipped.
    """
    result = duplicate_service.cleanup_duplicates(dry_run=not execute)
    label = "DONE" if execute else "DRY RUN"
    click.echo(
        f"{label} {result['groupsProcessed']} group(s), "
        f"{result['productsDeleted']} product(s) deleted, "
        f"{result['saleItemsMoved']} sale line(s) moved"
    )
    for error in result["errors"]:
        click.echo(f"FAIL group {error.get('keepId')}: {error.get('error')}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)

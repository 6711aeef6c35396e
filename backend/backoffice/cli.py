# Overview: Flask CLI command groups for bootstrap, user approval, invoices, and backups.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create missing tables and seed the predefined categories (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions
#   Delete expired and revoked session tokens older than 30 days.
#
# Users:
# - python -m flask users create-admin --email admin@example.com --password "Password123"
#   Create an approved admin account (prompts if options are omitted).
# - python -m flask users list [--status pending]
#
# Invoices:
# - python -m flask invoices mark-overdue
#   Flip issued invoices past their due date to overdue.
#
# Backups:
# - python -m flask backup export --output backup.json
# - python -m flask backup restore backup.json --yes

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, UserRole, UserStatus
from .services import backup_service, invoice_service
from .services.auth_service import AccountError, PasswordValidationError, get_account_service
from .services.backup_service import BackupError
from .services.categories_service import PREDEFINED_CATEGORIES
from .services.session_service import cleanup_expired_sessions
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the back-office database.

    Creates:
    - All tables that do not exist yet
    - The predefined product categories, in display order
    """
    click.echo("START Initializing back-office...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = {name.lower() for (name,) in db.session.query(Category.name).all()}
    created = 0
    for position, name in enumerate(PREDEFINED_CATEGORIES):
        if name.lower() in existing:
            continue
        db.session.add(Category(name=name, sort_order=position))
        created += 1
    db.session.commit()

    if created:
        click.echo(f"PASS Created {created} categories")
    else:
        click.echo("PASS Categories already present")

    admins = get_account_service().repository.list(UserStatus.APPROVED.value)
    if not any(u.role == UserRole.ADMIN.value for u in admins):
        click.echo("WARN No approved admin yet. Run 'python -m flask users create-admin'.")

    click.echo("PASS Initialization complete")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("WARN This will DELETE all data. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired and revoked sessions older than 30 days."""
    count = cleanup_expired_sessions()
    click.echo(f"PASS Deleted {count} stale session(s)")


@click.group('users')
def users_group():
    """User account commands."""


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', 'display_name', default=None, help='Display name')
@with_appcontext
def create_admin(email, password, display_name):
    """Create an approved admin account."""
    try:
        user = get_account_service().register(
            email=email,
            password=password,
            display_name=display_name,
            role=UserRole.ADMIN.value,
            status=UserStatus.APPROVED.value,
        )
    except (ValidationError, PasswordValidationError, AccountError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin {user.email} (ID: {user.id})")


@users_group.command('list')
@click.option('--status', type=click.Choice([s.value for s in UserStatus]), help='Filter by status')
@with_appcontext
def list_users(status):
    """List user accounts with role, status and brand scope."""
    users = get_account_service().list_users(status)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<20} {'Role':<7} {'Status':<10} {'Brand'}")
    click.echo("="*90)

    for user in users:
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.display_name:<20} "
            f"{user.role:<7} {user.status:<10} {user.brand or 'all'}"
        )

    click.echo("="*90 + "\n")


@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('mark-overdue')
@with_appcontext
def mark_overdue():
    """Mark issued, unpaid invoices past their due date as overdue."""
    count = invoice_service.mark_overdue_invoices()
    click.echo(f"PASS Marked {count} invoice(s) overdue")


@click.group('backup')
def backup_group():
    """JSON backup and restore."""


@backup_group.command('export')
@click.option('--output', type=click.Path(dir_okay=False, writable=True), required=True, help='Target JSON file')
@with_appcontext
def export_backup(output):
    data = backup_service.create_backup()
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    meta = data["metadata"]
    summary = (
        f"{meta['total_customers']} customers, {meta['total_products']} products, "
        f"{meta['total_invoices']} invoices"
    )
    click.echo(f"PASS Backup written to {output} ({summary})")


@backup_group.command('restore')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def restore_backup(path, yes):
    """Upsert every record in a backup file. Nothing is deleted."""
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Not a JSON file: {e}")

    errors = backup_service.validate_backup(data)
    if errors:
        for err in errors:
            click.echo(f"FAIL {err}")
        raise click.ClickException("Invalid backup file")

    if not yes:
        click.confirm("WARN Restore will overwrite matching records. Continue?", abort=True)

    try:
        summary = backup_service.restore_backup(data)
    except BackupError as e:
        raise click.ClickException(str(e))

    for section, stats in summary.items():
        click.echo(
            f"PASS {section}: {stats['processed']} processed, "
            f"{stats['added']} added, {stats['updated']} updated"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(backup_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and cycle maintenance.

# backend/bookcycle/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables and the settings row (idempotent).
#
# Profile inspection/bootstrap:
# - python -m flask users list
#   List all profiles with role, department and active status.
# - python -m flask users create --email admin@school.local --full-name "Ada Admin" --department computer_science_and_engineering --role admin --password "Password123!"
#   Create a profile (prompts if options are omitted).
#
# Purchase cycles:
# - python -m flask cycles list
#   List archived cycles, newest first.
# - python -m flask cycles close --closed-by 1 --yes
#   Archive the live workspace into history and clear it. IRREVERSIBLE.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .departments import Department
from .errors import PurchaseCycleError
from .models.auth import ROLE_ADMIN, ROLE_TEACHER
from .services import auth_service, cycle_service, settings_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables (if missing) and the default settings row."""
    click.echo("START Initializing purchase cycle database...")
    db.create_all()
    settings = settings_service.get_settings()
    click.echo(f"PASS Tables ready: {', '.join(sorted(db.metadata.tables))}")
    click.echo(
        "PASS Settings: teacher registration "
        f"{'on' if settings.teacher_registration_enabled else 'off'}, admin registration "
        f"{'on' if settings.admin_registration_enabled else 'off'}"
    )


@click.group('users')
def users_group():
    """Profile inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--department', type=click.Choice([d.value for d in Department]), prompt=True, help='Department')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_TEACHER]), default=ROLE_TEACHER, show_default=True, help='Role')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, full_name, department, role, password):
    """
    Create a new profile.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        profile = auth_service.create_profile(
            email=email,
            password=password,
            full_name=full_name,
            department=department,
            role=role,
            bcrypt_rounds=current_app.config.get("BCRYPT_ROUNDS", 12),
        )
    except PurchaseCycleError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created profile: {profile.email} (ID: {profile.id}) with role '{profile.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all profiles."""
    profiles = auth_service.list_profiles()

    if not profiles:
        click.echo("No profiles found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<25} {'Role':<9} {'Department':<20} {'Active'}")
    click.echo("="*100)

    for p in profiles:
        active_str = "Yes" if p.is_active else "No"
        click.echo(f"{p.id:<5} {p.email:<32} {p.full_name:<25} {p.role:<9} {p.department:<20} {active_str}")

    click.echo("="*100 + "\n")


@click.group('cycles')
def cycles_group():
    """Purchase cycle history commands."""


@cycles_group.command('list')
@with_appcontext
def list_cycles_cli():
    """List archived purchase cycles, newest first."""
    cycles = cycle_service.list_cycles()

    if not cycles:
        click.echo("No closed cycles found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Cycle':<38} {'Closed at':<22} {'Sheets':<7} {'Requests':<9} {'Purchases':<10} {'Total'}")
    click.echo("="*100)

    for c in cycles:
        click.echo(
            f"{c['cycle_id']:<38} {c['cycle_closed_at'] or '-':<22} {c['sheet_count']:<7} "
            f"{c['request_count']:<9} {c['total_purchases']:<10} {c['total_amount']}"
        )

    click.echo("="*100 + "\n")


@cycles_group.command('close')
@click.option('--closed-by', type=int, default=None, help='Profile ID recorded as closing the cycle')
@click.option('--yes', is_flag=True, help='Confirm the irreversible close')
@with_appcontext
def close_cycle_cli(closed_by, yes):
    """
    Archive every live sheet, request and finalized purchase, then clear them.

    WARNING: This cannot be undone.
    """
    if not yes:
        click.echo("FAIL Refusing to close the cycle without --yes")
        return

    try:
        result = cycle_service.close_cycle(closed_by=closed_by)
    except PurchaseCycleError as e:
        raise click.ClickException(e.message)

    summary = result.to_dict()
    click.echo(f"PASS Closed cycle {summary['cycle_id']}")
    click.echo(
        f"     {summary['sheets_archived']} sheets, {summary['requests_archived']} requests, "
        f"{summary['purchases_archived']} purchases archived (total {summary['total_amount']})"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(cycles_group)

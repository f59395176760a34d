# Overview: Flask CLI command groups for bootstrap, month locks, and revenue inspection.

# backend/gymledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant bootstrap (MULTI-TENANT):
# - python -m flask tenants create --name "Iron Gym" --timezone "Europe/Istanbul"
# - python -m flask tenants add-branch --tenant-id <id> --name "Kadikoy"
# - python -m flask tenants add-member --tenant-id <id> --branch-id <id> --first-name Ada --last-name Yilmaz
#
# Month locks:
# - python -m flask locks list --tenant-id <id> --branch-id <id>
# - python -m flask locks lock --tenant-id <id> --branch-id <id> --month 2026-01
# - python -m flask locks unlock --tenant-id <id> --branch-id <id> --month 2026-01
#
# Revenue:
# - python -m flask reports monthly --tenant-id <id> --branch-id <id> --month 2026-01
# - python -m flask reports trend --tenant-id <id> --branch-id <id> --months 6

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Member, Tenant
from .money import to_money_string
from .services import month_lock_service, reporting_service
from .services.member_service import get_branch
from .time_utils import today_in_timezone
from .validation import LedgerError


def _fail(exc: LedgerError):
    raise click.ClickException(f"{exc.code}: {exc.message}")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create every table that does not exist yet."""
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

    click.echo("PASS Database reset complete.")


@click.group('tenants')
def tenants_group():
    """Tenant, branch and member bootstrap."""


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--timezone', 'tz_name', default='UTC', show_default=True, help='IANA timezone')
@with_appcontext
def create_tenant_cli(name, tz_name):
    try:
        today_in_timezone(tz_name)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint='--timezone')

    tenant = Tenant(name=name, timezone=tz_name)
    db.session.add(tenant)
    db.session.commit()
    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, TZ: {tenant.timezone})")


@tenants_group.command('add-branch')
@click.option('--tenant-id', required=True, help='Tenant ID')
@click.option('--name', required=True, help='Branch name')
@with_appcontext
def add_branch_cli(tenant_id, name):
    if not db.session.get(Tenant, tenant_id):
        raise click.ClickException(f"Tenant {tenant_id} not found")

    branch = Branch(tenant_id=tenant_id, name=name)
    db.session.add(branch)
    db.session.commit()
    click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")


@tenants_group.command('add-member')
@click.option('--tenant-id', required=True, help='Tenant ID')
@click.option('--branch-id', required=True, help='Branch ID')
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@with_appcontext
def add_member_cli(tenant_id, branch_id, first_name, last_name):
    try:
        get_branch(tenant_id, branch_id)
    except LedgerError as exc:
        _fail(exc)

    member = Member(tenant_id=tenant_id, branch_id=branch_id, first_name=first_name, last_name=last_name)
    db.session.add(member)
    db.session.commit()
    click.echo(f"PASS Created member: {member.first_name} {member.last_name} (ID: {member.id})")


@click.group('locks')
def locks_group():
    """Revenue month lock commands."""


@locks_group.command('list')
@click.option('--tenant-id', required=True)
@click.option('--branch-id', required=True)
@with_appcontext
def list_locks_cli(tenant_id, branch_id):
    locks = month_lock_service.list_locks(tenant_id, branch_id)
    if not locks:
        click.echo("No locked months.")
        return

    click.echo(f"{'Month':<10} {'Locked At':<22} {'Locked By'}")
    for lock in locks:
        click.echo(f"{lock.month:<10} {str(lock.locked_at)[:19]:<22} {lock.locked_by or '-'}")


@locks_group.command('lock')
@click.option('--tenant-id', required=True)
@click.option('--branch-id', required=True)
@click.option('--month', required=True, help='YYYY-MM')
@click.option('--locked-by', default=None, help='Actor recorded on the lock')
@with_appcontext
def lock_month_cli(tenant_id, branch_id, month, locked_by):
    try:
        get_branch(tenant_id, branch_id)
        month_lock_service.lock_month(tenant_id, branch_id, month, locked_by=locked_by)
    except LedgerError as exc:
        _fail(exc)
    click.echo(f"PASS Locked {month}")


@locks_group.command('unlock')
@click.option('--tenant-id', required=True)
@click.option('--branch-id', required=True)
@click.option('--month', required=True, help='YYYY-MM')
@with_appcontext
def unlock_month_cli(tenant_id, branch_id, month):
    try:
        month_lock_service.unlock_month(tenant_id, branch_id, month)
    except LedgerError as exc:
        _fail(exc)
    click.echo(f"PASS Unlocked {month}")


@click.group('reports')
def reports_group():
    """Revenue inspection commands."""


def _echo_month(row):
    lock_flag = "LOCKED" if row.locked else ""
    click.echo(
        f"{row.month:<8} {to_money_string(row.membership_revenue):>14} "
        f"{to_money_string(row.product_revenue):>14} {to_money_string(row.total_revenue):>14} {lock_flag}"
    )


def _echo_header():
    click.echo(f"{'Month':<8} {'Membership':>14} {'Products':>14} {'Total':>14}")


@reports_group.command('monthly')
@click.option('--tenant-id', required=True)
@click.option('--branch-id', required=True)
@click.option('--month', required=True, help='YYYY-MM')
@with_appcontext
def monthly_report_cli(tenant_id, branch_id, month):
    try:
        row = reporting_service.monthly_revenue(tenant_id, branch_id, month)
    except LedgerError as exc:
        _fail(exc)
    _echo_header()
    _echo_month(row)


@reports_group.command('trend')
@click.option('--tenant-id', required=True)
@click.option('--branch-id', required=True)
@click.option('--months', type=int, default=reporting_service.DEFAULT_TREND_MONTHS, show_default=True)
@with_appcontext
def trend_report_cli(tenant_id, branch_id, months):
    try:
        rows = reporting_service.revenue_trend(tenant_id, branch_id, months=months)
    except LedgerError as exc:
        _fail(exc)
    _echo_header()
    for row in rows:
        _echo_month(row)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(locks_group)
    app.cli.add_command(reports_group)

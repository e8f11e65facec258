# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/frigo/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (bash: export FLASK_APP="frigo:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--tenant "Frigo Atlas"] [--code ATLAS]
#   Idempotent bootstrap: creates the tables, a default tenant with settings and default users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
#   List all tenants with their user and client counts.
# - python -m flask tenants create --name "Frigo Souss" --code SOUSS --currency MAD --timezone Africa/Casablanca
#   Create a new tenant with its settings row.
#
# User inspection/bootstrap:
# - python -m flask users list [--tenant-id 1]
#   List users with role and active status.
# - python -m flask users create --tenant-id 1 --name "Admin" --email admin@frigo.local --role admin
#   Create a user (prompts for the password).
#
# Billing:
# - python -m flask invoices mark-overdue [--tenant-id 1]
#   Move sent invoices past their due date to overdue (all tenants by default).
#
# Cash register:
# - python -m flask cash summary --tenant-id 1 [--date 2025-06-01]
#   Print the day's opening balance, in/out totals, balance and closure state.
#
# Maintenance:
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.
# - python -m flask maintenance purge-sessions --grace-days 7
#   Delete expired or revoked session rows older than the grace window.

from datetime import date

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User, Client, USER_ROLES
from .services import cash_service, invoice_service, maintenance_service, user_service
from .services.auth_service import PasswordValidationError
from .services.tenant_service import create_tenant
from .validation import ValidationError, ConflictError


def _format_cents(cents: int, currency: str) -> str:
    return f"{cents / 100:,.2f} {currency}"


def _get_tenant(tenant_id):
    if tenant_id:
        return db.session.get(Tenant, tenant_id)
    return db.session.query(Tenant).order_by(Tenant.id).first()


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--tenant', 'tenant_name', default='Default Frigo', help='Tenant name')
@click.option('--code', 'tenant_code', default='DEFAULT', help='Tenant code (login company code)')
@with_appcontext
def init_system(tenant_name, tenant_code):
    """
    Initialize the system: schema, default tenant and default users.

    MULTI-TENANT: The first tenant is created only when none exists.

    Creates:
    - Default tenant (if none exists) with a settings row
    - Users: admin/admin@frigo.local, manager/manager@frigo.local, viewer/viewer@frigo.local
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Frigo system...")
    db.create_all()

    tenant = db.session.query(Tenant).order_by(Tenant.id).first()
    if not tenant:
        tenant = create_tenant(tenant_name, tenant_code)
        click.echo(f"PASS Created default tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")
    else:
        click.echo(f"PASS Using existing tenant: {tenant.name} (ID: {tenant.id})")

    click.echo("\nUSERS Creating default users...")
    default_password = "Password123!"

    for role in ("admin", "manager", "viewer"):
        email = f"{role}@frigo.local"
        try:
            if db.session.query(User).filter_by(tenant_id=tenant.id, email=email).first():
                click.echo(f"WARN  User '{email}' already exists in tenant, skipping...")
                continue
            user_service.create_user(
                tenant.id,
                name=role.capitalize(),
                email=email,
                username=role,
                password=default_password,
                role=role,
            )
            click.echo(f"PASS Created user: {role} ({email}) with role '{role}'")

        except (PasswordValidationError, ValidationError, ConflictError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{role}': {e}")

    current_app.logger.info("System initialized for tenant %s", tenant.code)
    click.echo("\n" + "="*60)
    click.echo("DONE Frigo System Initialized Successfully!")
    click.echo("="*60)
    click.echo(f"\nTenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo("   admin   -> admin@frigo.local   / Password123!")
    click.echo("   manager -> manager@frigo.local / Password123!")
    click.echo("   viewer  -> viewer@frigo.local  / Password123!")
    click.echo("")


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

    click.echo("PASS Database reset. Run 'python -m flask system init' to bootstrap.")


# =============================================================================
# TENANT MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users':<8} {'Clients'}")
    click.echo("="*80)

    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        client_count = db.session.query(Client).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"

        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.code:<15} {active_str:<8} {user_count:<8} {client_count}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code (unique, used at login)')
@click.option('--currency', default='MAD', show_default=True, help='Display currency')
@click.option('--timezone', default='UTC', show_default=True, help='IANA timezone for business dates')
@with_appcontext
def create_tenant_cli(name, code, currency, timezone):
    """Create a new tenant with its settings."""
    try:
        tenant = create_tenant(name, code, currency=currency, timezone=timezone)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--tenant-id', type=int, help='Tenant ID (uses the first tenant if not specified)')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', default=None, help='Email address')
@click.option('--phone', default=None, help='Phone number')
@click.option('--username', default=None, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES), default='viewer', show_default=True, help='Role')
@click.option('--client-id', type=int, default=None, help='Client record for role "client"')
@with_appcontext
def create_user_cli(tenant_id, name, email, phone, username, password, role, client_id):
    """
    Create a new user.

    MULTI-TENANT: User is created within the given tenant. At least one of
    email, phone or username is required.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    tenant = _get_tenant(tenant_id)
    if not tenant:
        click.echo("FAIL No tenant found. Run 'python -m flask system init' first.")
        return

    try:
        user = user_service.create_user(
            tenant.id,
            name=name,
            email=email,
            phone=phone,
            username=username,
            password=password,
            role=role,
            client_id=client_id,
        )
    except PasswordValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL Password validation failed: {e}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except (ValidationError, ConflictError) as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e}")
        return

    click.echo(f"PASS Created user: {user.name} (ID: {user.id}) with role '{role}'")
    click.echo(f"     Tenant: {tenant.name} (ID: {tenant.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--tenant-id', type=int, help='Filter by tenant ID')
@with_appcontext
def list_users(tenant_id):
    """List users with their roles."""
    query = db.session.query(User)
    if tenant_id:
        query = query.filter_by(tenant_id=tenant_id)
    users = query.order_by(User.tenant_id, User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Tenant':<7} {'Name':<22} {'Login':<30} {'Role':<9} {'Active'}")
    click.echo("="*100)

    for user in users:
        login = user.email or user.phone or user.username or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.tenant_id:<7} {user.name:<22} {login:<30} {user.role:<9} {active_str}")

    click.echo("="*100 + "\n")


# =============================================================================
# BILLING COMMANDS
# =============================================================================

@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('mark-overdue')
@click.option('--tenant-id', type=int, help='Only this tenant (default: all active tenants)')
@with_appcontext
def mark_overdue_cli(tenant_id):
    """Move sent invoices whose due date has passed to overdue."""
    query = db.session.query(Tenant).filter(Tenant.is_active.is_(True))
    if tenant_id:
        query = query.filter(Tenant.id == tenant_id)

    total = 0
    for tenant in query.order_by(Tenant.id).all():
        invoices = invoice_service.mark_overdue(tenant.id)
        total += len(invoices)
        if invoices:
            click.echo(f"PASS {tenant.code}: {', '.join(i.number for i in invoices)}")

    click.echo(f"DONE {total} invoice(s) marked overdue")


# =============================================================================
# CASH REGISTER COMMANDS
# =============================================================================

@click.group('cash')
def cash_group():
    """Cash register inspection commands."""


@cash_group.command('summary')
@click.option('--tenant-id', type=int, help='Tenant ID (uses the first tenant if not specified)')
@click.option('--date', 'day', type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help='Business date (default: today in the tenant timezone)')
@with_appcontext
def cash_summary_cli(tenant_id, day):
    """Print a cash day summary."""
    tenant = _get_tenant(tenant_id)
    if not tenant:
        click.echo("FAIL No tenant found.")
        return

    business_day: date | None = day.date() if day else None
    summary = cash_service.day_summary(tenant.id, business_day)
    currency = summary["currency"]

    click.echo("\n" + "="*60)
    click.echo(f"Cash day {summary['business_date']} - {tenant.name}")
    click.echo("="*60)
    click.echo(f"Opening balance: {_format_cents(summary['opening_balance_cents'], currency)}")
    click.echo(f"Total in:        {_format_cents(summary['total_in_cents'], currency)}")
    click.echo(f"Total out:       {_format_cents(summary['total_out_cents'], currency)}")
    click.echo(f"Balance:         {_format_cents(summary['balance_cents'], currency)}")
    click.echo(f"Movements:       {summary['movement_count']}")

    for method, bucket in summary["by_payment_method"].items():
        if bucket["in_cents"] or bucket["out_cents"]:
            click.echo(
                f"  {method:<10} in {_format_cents(bucket['in_cents'], currency)}"
                f" / out {_format_cents(bucket['out_cents'], currency)}"
            )

    closure = summary["closure"]
    if closure:
        click.echo(
            f"CLOSED by {closure.get('closed_by_name') or '-'}: expected "
            f"{_format_cents(closure['expected_cash_cents'], currency)}, actual "
            f"{_format_cents(closure['actual_cash_cents'], currency)}"
        )
    else:
        click.echo("OPEN Day not closed yet")
    click.echo("")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """Delete security events older than the retention window."""
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} security event(s)")


@maintenance_group.command('purge-sessions')
@click.option('--grace-days', type=int, default=7, show_default=True)
@with_appcontext
def purge_sessions_cli(grace_days):
    """Delete expired or revoked session rows older than the grace window."""
    deleted = maintenance_service.purge_expired_sessions(grace_days=grace_days)
    click.echo(f"PASS Deleted {deleted} session row(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)  # Multi-tenant management
    app.cli.add_command(users_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(cash_group)
    app.cli.add_command(maintenance_group)

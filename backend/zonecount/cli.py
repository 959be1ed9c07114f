# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Acme Logistics"] [--company-code ACME]
#   Idempotent bootstrap: creates tables, a first company and an admin user.
# - python -m flask system seed-demo --company-id 1
#   Adds demo zones (C01-E01..C03-E04), products and a few scans.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management:
# - python -m flask companies list
# - python -m flask companies create --name "Acme Logistics" --code ACME
#
# Users:
# - python -m flask users list [--company-id 1]
# - python -m flask users create --company-id 1 --name "Ana Ruiz" --email ana@acme.test --role user
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired and revoked session tokens.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .records import ROLES, ROLE_ADMIN, ROLE_USER
from .repositories import get_repository
from .services import scan_service, session_service, user_service, zone_service, product_service
from .services.auth_service import PasswordValidationError
from .services.permission_service import Principal
from .services.tenant_service import TenantAccessError
from .validation import ConflictError, ValidationError
from .time_utils import utcnow


DEFAULT_ADMIN_EMAIL = "admin@zonecount.local"
DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Default Company', help='Company name')
@click.option('--company-code', default='DEFAULT', help='Company code')
@with_appcontext
def init_system(company_name, company_code):
    """
    Create tables, a first company and its admin user.

    Admin credentials: admin@zonecount.local / Password123!
    Change the password immediately in production.
    """
    click.echo("START Initializing ZoneCount...")
    db.create_all()

    repo = get_repository()
    companies = repo.list_companies()
    if companies:
        company = companies[0]
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")
    else:
        company = user_service.create_company(company_name, company_code, repo=repo)
        click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code})")

    if repo.get_user_by_email(company.id, DEFAULT_ADMIN_EMAIL):
        click.echo(f"WARN  User '{DEFAULT_ADMIN_EMAIL}' already exists, skipping...")
    else:
        user, _ = user_service.register_user(
            company.id, "Administrator", DEFAULT_ADMIN_EMAIL, ROLE_ADMIN,
            password=DEFAULT_PASSWORD, repo=repo,
        )
        click.echo(f"PASS Created admin user: {user.email}")

    click.echo("\nDONE ZoneCount initialized.")
    click.echo(f"   admin -> {DEFAULT_ADMIN_EMAIL} / {DEFAULT_PASSWORD} (CHANGE IN PRODUCTION!)")


@system_group.command('seed-demo')
@click.option('--company-id', type=int, required=True, help='Company to fill with demo data')
@with_appcontext
def seed_demo(company_id):
    """Demo zones, products and scans for trying out the reports."""
    repo = get_repository()
    admins = [u for u in repo.list_users(company_id) if u.role == ROLE_ADMIN]
    if not admins:
        click.echo(f"FAIL Company {company_id} has no admin. Run 'python -m flask system init' first.")
        return
    principal = Principal.from_user(admins[0])

    try:
        zones = zone_service.build_zones(principal, {
            "street_prefix": "C", "street_from": 1, "street_to": 3,
            "rack_prefix": "E", "rack_from": 1, "rack_to": 4,
        }, repo=repo)
        click.echo(f"PASS Created {len(zones)} zones")
    except ConflictError:
        zones = repo.list_zones(company_id)
        click.echo("WARN  Demo zones already exist, reusing them")

    rows = [
        {"code": f"84100000000{i:02d}", "sku": f"SKU-{i:03d}", "description": f"Demo article {i}"}
        for i in range(1, 11)
    ]
    result = product_service.import_products(principal, rows, repo=repo)
    click.echo(f"PASS Products: {result['created']} created, {result['updated']} updated")

    now = utcnow()
    ordered = sorted(zones, key=lambda z: zone_service.natural_sort_key(z.name))
    entries = []
    for i, row in enumerate(rows):
        # Count 1 and 2 disagree on every third article
        first = ordered[i % len(ordered)]
        second = ordered[(i + (1 if i % 3 == 0 else 0)) % len(ordered)]
        entries.append({"code": row["code"], "zone_id": first.id, "count_number": 1,
                        "scanned_at": now - timedelta(minutes=30)})
        entries.append({"code": row["code"], "zone_id": second.id, "count_number": 2,
                        "scanned_at": now - timedelta(minutes=10)})
    created = scan_service.submit_batch(principal, entries, repo=repo)
    click.echo(f"PASS Added {len(created)} demo scans")


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


@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    repo = get_repository()
    companies = repo.list_companies()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users':<8} {'Scans'}")
    click.echo("="*80)

    for company in companies:
        user_count = len(repo.list_users(company.id))
        scan_count = repo.count_scans(company.id)
        active_str = "Yes" if company.is_active else "No"
        click.echo(f"{company.id:<5} {company.name:<30} {company.code or '-':<15} {active_str:<8} {user_count:<8} {scan_count}")

    click.echo("="*80 + "\n")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--code', default=None, help='Short code (unique)')
@with_appcontext
def create_company_cli(name, code):
    try:
        company = user_service.create_company(name, code)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code or '-'})")


@click.group('users')
def users_group():
    """User inspection/bootstrap commands."""


@users_group.command('create')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default=ROLE_USER, show_default=True, help='Role')
@with_appcontext
def create_user_cli(company_id, name, email, password, role):
    """
    Create a user in a company.

    Password must meet strength requirements:
    8+ chars, uppercase, lowercase, digit, special char.
    """
    try:
        user, _ = user_service.register_user(company_id, name, email, role, password=password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except (ValidationError, ConflictError, TenantAccessError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company ID')
@with_appcontext
def list_users(company_id):
    repo = get_repository()
    company_ids = [company_id] if company_id else [c.id for c in repo.list_companies()]
    users = [u for cid in company_ids for u in repo.list_users(cid)]

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Company':<8} {'Name':<25} {'Email':<35} {'Role'}")
    click.echo("="*90)
    for user in users:
        click.echo(f"{user.id:<5} {user.company_id:<8} {user.name:<25} {user.email:<35} {user.role}")
    click.echo("="*90 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired and revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} session tokens older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)

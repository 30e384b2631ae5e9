# Overview: Flask CLI command groups for bootstrap and local development data.

# backend/workshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenants (MULTI-TENANT):
# - python -m flask tenants list
# - python -m flask tenants create --name "Northside Garage" --code "NORTH"
#
# Users and sessions:
# - python -m flask users create --tenant-id 1 --username mechanic
# - python -m flask sessions issue --tenant-id 1 --username mechanic
#   Prints a bearer token for local API calls.
#
# Workshop data:
# - python -m flask jobs create --tenant-id 1 --job-number JC-1001
#   Creates a job card and its (empty) estimate.
# - python -m flask inventory add-item --tenant-id 1 --name "Brake pad set" --stock 10 --sell-price-cents 4500

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Estimate, JobCard, Tenant, User
from .services import inventory_service, session_service
from .errors import WorkshopError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' next.")


@click.group('tenants')
def tenants_group():
    """Tenant (workshop) management."""


@tenants_group.command('list')
@with_appcontext
def list_tenants_cli():
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()
    if not tenants:
        click.echo("No tenants found")
        return
    for tenant in tenants:
        status = "active" if tenant.is_active else "inactive"
        click.echo(f"{tenant.id}\t{tenant.code or '-'}\t{tenant.name}\t{status}")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new tenant."""
    existing = db.session.query(Tenant).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Tenant with code '{code}' already exists")
        return

    tenant = Tenant(name=name, code=code, is_active=True)
    db.session.add(tenant)
    db.session.commit()

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")


def _require_tenant(tenant_id: int) -> Tenant | None:
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        click.echo(f"FAIL Tenant ID {tenant_id} not found")
    return tenant


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--username', required=True)
@click.option('--email', default=None)
@click.option('--display-name', default=None)
@with_appcontext
def create_user_cli(tenant_id, username, email, display_name):
    if not _require_tenant(tenant_id):
        return

    existing = db.session.query(User).filter_by(tenant_id=tenant_id, username=username).first()
    if existing:
        click.echo(f"FAIL User '{username}' already exists in tenant {tenant_id}")
        return

    user = User(tenant_id=tenant_id, username=username, email=email, display_name=display_name)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Tenant: {tenant_id})")


@click.group('sessions')
def sessions_group():
    """Bearer token management."""


@sessions_group.command('issue')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--username', required=True)
@with_appcontext
def issue_session_cli(tenant_id, username):
    """Issue a session token; the plaintext is shown once."""
    user = db.session.query(User).filter_by(tenant_id=tenant_id, username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found in tenant {tenant_id}")
        return

    try:
        session, token = session_service.create_session(user.id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Session {session.id} expires {session.expires_at.isoformat()}Z")
    click.echo(token)


@click.group('jobs')
def jobs_group():
    """Job card bootstrap for local development."""


@jobs_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--job-number', required=True)
@with_appcontext
def create_job_cli(tenant_id, job_number):
    if not _require_tenant(tenant_id):
        return

    existing = db.session.query(JobCard).filter_by(tenant_id=tenant_id, job_number=job_number).first()
    if existing:
        click.echo(f"FAIL Job {job_number} already exists (ID: {existing.id})")
        return

    job = JobCard(tenant_id=tenant_id, job_number=job_number)
    db.session.add(job)
    db.session.flush()
    db.session.add(Estimate(tenant_id=tenant_id, jobcard_id=job.id))
    db.session.commit()
    click.echo(f"PASS Created job {job.job_number} (ID: {job.id}) with an empty estimate")


@click.group('inventory')
def inventory_group():
    """Stock item bootstrap."""


@inventory_group.command('add-item')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--name', required=True)
@click.option('--sku', default=None)
@click.option('--stock', type=int, default=0, help='Opening stock on hand')
@click.option('--unit-cost-cents', type=int, default=0)
@click.option('--sell-price-cents', type=int, default=0)
@with_appcontext
def add_item_cli(tenant_id, name, sku, stock, unit_cost_cents, sell_price_cents):
    if not _require_tenant(tenant_id):
        return

    payload = {
        "name": name,
        "sku": sku,
        "stockOnHand": stock,
        "unitCostCents": unit_cost_cents,
        "sellPriceCents": sell_price_cents,
    }
    try:
        item = inventory_service.create_item(tenant_id, payload)
    except WorkshopError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created item {item.name} (ID: {item.id}, on hand: {item.stock_on_hand})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(jobs_group)
    app.cli.add_command(inventory_group)

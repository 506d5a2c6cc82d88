# Overview: Flask CLI command groups for bootstrap, inspection, and the scheduled sweeps.

# backend/wholesale/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use "flask db upgrade" for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Store inspection/bootstrap:
# - python -m flask stores list [--active-only]
#   List stores with credit limit and current balance.
# - python -m flask stores create --name "Corner Deli" --code "DELI01" --credit-limit-cents 500000
#   Create a customer store.
#
# Replenishment (schedule once per window, e.g. nightly):
# - python -m flask replenishment generate [--store-id 1] [--run-key 2026-10-19]
#   Create draft orders for stores below their minimum stock levels.
#
# Invoices (schedule daily, mark-overdue before send-reminders):
# - python -m flask invoices mark-overdue [--today 2026-10-19]
#   Flip unpaid invoices past their due date to overdue.
# - python -m flask invoices send-reminders [--today 2026-10-19]
#   Record one reminder per overdue invoice per day and notify the store.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import WholesaleError
from .models import Store
from .time_utils import parse_iso_date
from .services import store_service, replenishment_service, invoice_service, reminder_service


def _parse_today(value):
    try:
        return parse_iso_date(value)
    except ValueError:
        raise click.BadParameter("expected YYYY-MM-DD", param_hint="--today") from None


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet. Existing data is untouched."""
    click.echo("BUILD  Creating missing tables...")
    db.create_all()
    click.echo("PASS Database ready.")


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


# =============================================================================
# STORES
# =============================================================================

@click.group('stores')
def stores_group():
    """Customer store inspection and bootstrap."""


@stores_group.command('list')
@click.option('--active-only', is_flag=True, help='Hide deactivated stores')
@with_appcontext
def list_stores(active_only):
    stores = store_service.list_stores(active_only=active_only)
    if not stores:
        click.echo("No stores found.")
        return

    click.echo(f"{'ID':<5} {'Code':<10} {'Name':<30} {'Limit':>12} {'Balance':>12} {'Active':<6}")
    click.echo("-" * 80)
    for s in stores:
        limit = "unlimited" if not s.has_credit_limit else str(s.credit_limit_cents)
        click.echo(
            f"{s.id:<5} {(s.code or '-'):<10} {s.name[:30]:<30} {limit:>12} "
            f"{s.current_balance_cents:>12} {'yes' if s.is_active else 'no':<6}"
        )


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', default=None, help='Unique store code')
@click.option('--email', default=None, help='Contact email')
@click.option('--credit-limit-cents', type=int, default=None, help='Credit limit (omit or 0 for unlimited)')
@with_appcontext
def create_store(name, code, email, credit_limit_cents):
    if credit_limit_cents is not None and credit_limit_cents < 0:
        raise click.BadParameter("must be >= 0", param_hint="--credit-limit-cents")
    try:
        store = store_service.create_store(
            patch={"name": name, "code": code, "email": email, "credit_limit_cents": credit_limit_cents},
            actor_id="cli",
        )
    except WholesaleError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created store {store.name} (ID: {store.id})")


# =============================================================================
# REPLENISHMENT
# =============================================================================

@click.group('replenishment')
def replenishment_group():
    """Replenishment draft generation."""


@replenishment_group.command('generate')
@click.option('--store-id', type=int, default=None, help='Only this store (default: every active store)')
@click.option('--run-key', default=None, help='Dedup key for this run (default: current window start)')
@with_appcontext
def generate_replenishment(store_id, run_key):
    if store_id is not None:
        if db.session.get(Store, store_id) is None:
            click.echo(f"FAIL Store {store_id} not found")
            raise SystemExit(1)
        try:
            result = replenishment_service.generate(store_id, run_key, created_by="cli")
        except WholesaleError as e:
            click.echo(f"FAIL {e.message}")
            raise SystemExit(1)
        click.echo(f"PASS Store {store_id}: {result.message}")
        return

    run = replenishment_service.generate_all(run_key, created_by="cli")
    for result in run.results:
        click.echo(f"PASS Store {result.store_id}: {result.message}")
    for failure in run.failures:
        click.echo(f"FAIL Store {failure['store_id']}: {failure['error']}")
    click.echo(
        f"\nRun {run.run_key}: {run.count(replenishment_service.CREATED)} created, "
        f"{run.count(replenishment_service.EXISTING)} existing, "
        f"{run.count(replenishment_service.NOT_NEEDED)} not needed, {len(run.failures)} failed"
    )


# =============================================================================
# INVOICES
# =============================================================================

@click.group('invoices')
def invoices_group():
    """Invoice sweeps."""


@invoices_group.command('mark-overdue')
@click.option('--today', default=None, help='Evaluate as of this date (YYYY-MM-DD)')
@with_appcontext
def mark_overdue(today):
    flipped = invoice_service.mark_overdue_invoices(_parse_today(today))
    for invoice in flipped:
        click.echo(f"WARN  {invoice.invoice_number} overdue (due {invoice.due_date.isoformat()})")
    click.echo(f"PASS {len(flipped)} invoice(s) marked overdue")


@invoices_group.command('send-reminders')
@click.option('--today', default=None, help='Evaluate as of this date (YYYY-MM-DD)')
@with_appcontext
def send_reminders(today):
    result = reminder_service.send_payment_reminders(_parse_today(today))
    for failure in result.failed:
        click.echo(f"FAIL Invoice {failure['invoice_id']}: {failure['error']}")
    click.echo(f"PASS {len(result.sent)} sent, {result.skipped} skipped, {len(result.failed)} failed")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(replenishment_group)
    app.cli.add_command(invoices_group)

# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/stocktrack/cli.py
# Commands Legend (run from the backend directory):
# - flask --app stocktrack system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - flask --app stocktrack system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - flask --app stocktrack units stats
#   Unit counts per status and kind.
# - flask --app stocktrack approvals list [--search TERM] [--decision approved]
#   Pending change requests, or recent decisions.
# - flask --app stocktrack sales unpaid
#   Unpaid sales, oldest debt first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import approval_service, inventory_service, sales_service
from .models import UNIT_STATUSES, DECISIONS


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet. Safe to re-run."""
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


@click.group('units')
def units_group():
    """Unit inspection commands."""


@units_group.command('stats')
@with_appcontext
def unit_stats():
    """Show unit counts per status, overall and per kind."""
    stats = inventory_service.inventory_stats()

    click.echo("\n" + "=" * 60)
    click.echo(f"{'Kind':<16} " + " ".join(f"{s:<10}" for s in UNIT_STATUSES))
    click.echo("=" * 60)
    for kind, counts in stats["by_kind"].items():
        click.echo(f"{kind:<16} " + " ".join(f"{counts.get(s, 0):<10}" for s in UNIT_STATUSES))
    click.echo("-" * 60)
    click.echo(f"{'all':<16} " + " ".join(f"{stats['by_status'].get(s, 0):<10}" for s in UNIT_STATUSES))
    click.echo(f"\nTotal units: {stats['total']}")


@click.group('approvals')
def approvals_group():
    """Approval queue inspection commands."""


@approvals_group.command('list')
@click.option('--search', help='Match smartcard, serial number or requester name')
@click.option('--decision', type=click.Choice(DECISIONS), default='pending', help='Which requests to show')
@click.option('--limit', type=int, default=None, help='Max decided requests to show')
@with_appcontext
def list_approvals(search, decision, limit):
    """
    List change requests.

    Example:
        flask approvals list
        flask approvals list --search 7012
        flask approvals list --decision approved --limit 50
    """
    if decision == "pending":
        rows = approval_service.list_pending(search=search)
    else:
        rows = [p for p in approval_service.list_decided(limit) if p.decision == decision]

    if not rows:
        click.echo("No requests found.")
        return

    click.echo("\n" + "=" * 110)
    click.echo(f"{'ID':<6} {'Unit':<6} {'Smartcard':<16} {'Requested by':<18} {'Requested':<20} {'Decision':<10} {'Last error'}")
    click.echo("=" * 110)

    for p in rows:
        requested = p.requested_at.strftime("%Y-%m-%d %H:%M") if p.requested_at else "-"
        requester = p.requested_by_name or p.requested_by
        click.echo(
            f"{p.id:<6} {p.unit_id:<6} {p.smartcard or '-':<16} {requester:<18} "
            f"{requested:<20} {p.decision:<10} {p.last_error or ''}"
        )

    click.echo(f"\nTotal: {len(rows)} request(s)")


@click.group('sales')
def sales_group():
    """Sale ledger inspection commands."""


@sales_group.command('unpaid')
@with_appcontext
def unpaid_sales():
    """List unpaid sales with how long they have been outstanding."""
    rows = sales_service.list_unpaid_sales()

    if not rows:
        click.echo("No unpaid sales.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'Code':<12} {'Smartcard':<16} {'Seller':<16} {'Phone':<16} {'Days unpaid'}")
    click.echo("=" * 90)

    for row in rows:
        unit = row.get("unit") or {}
        click.echo(
            f"{row['sale_code']:<12} {unit.get('smartcard') or '-':<16} {row['sold_by_user_id']:<16} "
            f"{row.get('customer_phone') or '-':<16} {row['days_unpaid']}"
        )

    click.echo(f"\nTotal: {len(rows)} unpaid sale(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(units_group)
    app.cli.add_command(approvals_group)
    app.cli.add_command(sales_group)

import json
from datetime import date

import click
from flask.cli import AppGroup

from .extensions import db
from .ledger import assess_late_fees, generate_periods_for_all_leases, resync_ledger
from .repository import LedgerStore
from .utils import parse_iso_date

ledger_cli = AppGroup("ledger", help="Rent ledger maintenance commands.")


def _as_date(ctx, param, value):
    if value is None:
        return date.today()
    try:
        return parse_iso_date(value)
    except ValueError:
        raise click.BadParameter("expected YYYY-MM-DD") from None


@ledger_cli.command("init-db")
def init_db():
    """Create all ledger tables."""
    db.create_all()
    click.echo("Database tables created")


@ledger_cli.command("generate-periods")
@click.option("--horizon", callback=_as_date, help="Generate through this date (default today).")
@click.option("--status", default="active", show_default=True, help="Only leases in this status.")
def generate_periods_command(horizon, status):
    """Generate rent periods for every lease."""
    summary = generate_periods_for_all_leases(LedgerStore(db.session), horizon, status=status)
    click.echo(
        f"Processed {summary['processed']} leases, skipped {summary['skipped']}, "
        f"{summary['periods']} periods through {horizon.isoformat()}"
    )
    for error in summary["errors"]:
        click.echo(f"  lease {error['lease_id']}: {error['message']}", err=True)


@ledger_cli.command("assess-late-fees")
@click.option("--as-of", "as_of", callback=_as_date, help="Assess as of this date (default today).")
def assess_late_fees_command(as_of):
    """Attach late fees that have come due on every active lease."""
    store = LedgerStore(db.session)
    total = 0
    for lease in store.list_leases(status="active"):
        total += len(assess_late_fees(store, lease.id, as_of))
    click.echo(f"Late fees applied: {total}")


@ledger_cli.command("resync")
@click.option("--as-of", "as_of", callback=_as_date, help="Derive statuses as of this date (default today).")
@click.option("--tenant-id", type=int, default=None)
@click.option("--details", is_flag=True, help="Print every period as JSON.")
def resync_command(as_of, tenant_id, details):
    """Recompute paid amounts and statuses from payment allocations."""
    report = resync_ledger(LedgerStore(db.session), as_of, tenant_id=tenant_id)
    payload = report.to_dict()
    if not details:
        payload = payload["summary"]
    click.echo(json.dumps(payload, indent=2))

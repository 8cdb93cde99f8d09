"""
Rent period generator.

Materializes one ``RentPeriod`` per cadence tick of a lease, and derives a
period's status from what has been paid against what is owed.
"""
import logging
from datetime import date
from typing import List

from ..models import PeriodStatus, RentPeriod
from ..utils import ZERO, to_money
from .cadence import DEFAULT_GRACE_DAYS, is_period_late, normalize_cadence, nth_due_date
from .errors import InvalidLeaseError

logger = logging.getLogger(__name__)


def validate_lease(lease):
    """Raise InvalidLeaseError unless the lease can produce a schedule"""
    cadence = normalize_cadence(lease.cadence)
    if lease.start_date is None:
        raise InvalidLeaseError(f"Lease {lease.id} has no start date")
    if lease.end_date is not None and lease.start_date > lease.end_date:
        raise InvalidLeaseError(
            f"Lease {lease.id} starts {lease.start_date} after it ends {lease.end_date}"
        )
    if lease.rent_amount is None or to_money(lease.rent_amount) <= ZERO:
        raise InvalidLeaseError(f"Lease {lease.id} must have a positive rent amount")
    return cadence


def resolve_grace_days(lease=None, override=None) -> int:
    if override is not None:
        return int(override)
    if lease is not None and lease.grace_days is not None:
        return lease.grace_days
    return DEFAULT_GRACE_DAYS


def plan_due_dates(lease, horizon_date: date) -> List[date]:
    """
    Due dates from the lease start up to and including the first one on or
    after ``horizon_date``, never past the lease end.
    """
    cadence = validate_lease(lease)
    dates = []
    tick = 0
    due = lease.start_date
    while lease.end_date is None or due <= lease.end_date:
        dates.append(due)
        if due >= horizon_date:
            break
        tick += 1
        # step from the anchor so monthly dates keep the lease's day of month
        due = nth_due_date(lease.start_date, cadence, tick)
    return dates


def generate_periods(store, lease, horizon_date: date) -> List[RentPeriod]:
    """
    Create the periods a lease owes through ``horizon_date``.

    Periods already present for a (lease, due date) pair are left untouched, so
    re-running with the same horizon is a no-op. Returns every period of the
    lease up to the horizon, oldest first.
    """
    due_dates = plan_due_dates(lease, horizon_date)
    cadence = normalize_cadence(lease.cadence)

    with store.transaction():
        existing = {p.period_due_date: p for p in store.list_periods_for_lease(lease.id)}
        created = 0
        for due in due_dates:
            if due in existing:
                continue
            period = RentPeriod(
                lease_id=lease.id,
                tenant_id=lease.tenant_id,
                property_id=lease.property_id,
                period_due_date=due,
                cadence=cadence.value,
                rent_amount=to_money(lease.rent_amount),
                amount_paid=ZERO,
                late_fee_applied=ZERO,
                late_fee_waived=False,
                status=PeriodStatus.UNPAID,
            )
            existing[due] = store.upsert_period(period)
            created += 1

    if created:
        logger.info("Generated %d rent periods for lease %s through %s", created, lease.id, horizon_date)
    last = due_dates[-1] if due_dates else None
    return [existing[d] for d in sorted(existing) if last is not None and d <= last]


def generate_periods_for_all_leases(store, horizon_date: date, status: str = 'active') -> dict:
    """Run the generator over every lease in ``status``; bad leases are skipped and reported."""
    summary = {"processed": 0, "skipped": 0, "periods": 0, "errors": []}
    for lease in store.list_leases(status=status):
        try:
            periods = generate_periods(store, lease, horizon_date)
        except InvalidLeaseError as e:
            logger.warning("Skipping lease %s: %s", lease.id, e)
            summary["skipped"] += 1
            summary["errors"].append({"lease_id": lease.id, "error": e.code, "message": e.message})
            continue
        summary["processed"] += 1
        summary["periods"] += len(periods)
    return summary


def derive_status(period, as_of: date, grace_days: int = DEFAULT_GRACE_DAYS) -> str:
    """Status as a pure function of paid vs owed and lateness on ``as_of``"""
    paid = to_money(period.amount_paid)
    if paid >= period.total_due:
        return PeriodStatus.PAID
    if is_period_late(period.effective_due_date, as_of, grace_days):
        return PeriodStatus.OVERDUE
    if paid > ZERO:
        return PeriodStatus.PARTIAL
    return PeriodStatus.UNPAID


def refresh_status(period, as_of: date, grace_days: int = DEFAULT_GRACE_DAYS) -> str:
    period.status = derive_status(period, as_of, grace_days)
    return period.status

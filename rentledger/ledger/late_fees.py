"""
Late fee policy: one flat fee per period, keyed by cadence, attached once.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List

from ..models import PeriodStatus
from ..utils import ZERO, to_money
from .cadence import DEFAULT_GRACE_DAYS, Cadence, is_period_late, normalize_cadence
from .periods import refresh_status, resolve_grace_days

logger = logging.getLogger(__name__)

LATE_FEE_SCHEDULE = {
    Cadence.WEEKLY: Decimal("10.00"),
    Cadence.BI_WEEKLY: Decimal("20.00"),
    Cadence.MONTHLY: Decimal("45.00"),
}


def get_late_fee_amount(cadence) -> Decimal:
    return LATE_FEE_SCHEDULE[normalize_cadence(cadence)]


def late_fee_due(period, as_of: date, grace_days: int = DEFAULT_GRACE_DAYS) -> Decimal:
    """
    Fee the period carries as of ``as_of`` without touching it: the attached
    fee if there is one, else the cadence fee once the grace window has passed.
    """
    if period.late_fee_waived:
        return ZERO
    attached = to_money(period.late_fee_applied)
    if attached > ZERO:
        return attached
    if is_period_late(period.effective_due_date, as_of, grace_days):
        return get_late_fee_amount(period.cadence)
    return ZERO


def apply_late_fee_if_due(period, as_of: date, grace_days: int = DEFAULT_GRACE_DAYS):
    """Attach the cadence fee to a late, unwaived period that has none yet"""
    if period.late_fee_waived:
        return period
    if to_money(period.late_fee_applied) > ZERO:
        return period
    if not is_period_late(period.effective_due_date, as_of, grace_days):
        return period

    period.late_fee_applied = get_late_fee_amount(period.cadence)
    logger.info(
        "Late fee %s attached to rent period %s (due %s, as of %s)",
        period.late_fee_applied, period.id, period.effective_due_date, as_of,
    )
    return period


def assess_late_fees(store, lease_id, as_of: date, grace_days=None) -> List:
    """Apply the policy to every unpaid period of a lease; returns the periods that got a fee."""
    with store.transaction():
        lease = store.get_lease_by_id(lease_id)
        grace = resolve_grace_days(lease, grace_days)
        assessed = []
        for period in store.list_periods_for_lease(lease.id):
            if period.status == PeriodStatus.PAID:
                continue
            before = to_money(period.late_fee_applied)
            apply_late_fee_if_due(period, as_of, grace)
            refresh_status(period, as_of, grace)
            store.upsert_period(period)
            if to_money(period.late_fee_applied) != before:
                assessed.append(period)
    return assessed

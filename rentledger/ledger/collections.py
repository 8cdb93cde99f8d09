"""
Arrears and collections reporting. Everything here is read-only: late fees
that have come due but are not attached yet are projected, never written.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from ..models import PeriodStatus
from ..utils import ZERO, format_iso_date, format_money, to_money
from .cadence import calculate_days_late, is_period_late
from .late_fees import late_fee_due
from .periods import resolve_grace_days


@dataclass
class MissedPayment:
    period_id: int
    period_due_date: date
    amount_due: Decimal
    late_fee: Decimal
    is_late: bool
    days_late: int

    def to_dict(self):
        return {
            "period_id": self.period_id,
            "period_due_date": format_iso_date(self.period_due_date),
            "amount_due": format_money(self.amount_due),
            "late_fee": format_money(self.late_fee),
            "is_late": self.is_late,
            "days_late": self.days_late,
        }


@dataclass
class TenantArrears:
    tenant_id: int
    as_of: date
    total_owed: Decimal = ZERO
    total_late_fees: Decimal = ZERO
    missed_periods: int = 0
    missed_payments: List[MissedPayment] = field(default_factory=list)

    def to_dict(self):
        return {
            "tenant_id": self.tenant_id,
            "as_of": format_iso_date(self.as_of),
            "total_owed": format_money(self.total_owed),
            "total_late_fees": format_money(self.total_late_fees),
            "missed_periods": self.missed_periods,
            "missed_payments": [m.to_dict() for m in self.missed_payments],
        }


def calculate_tenant_owed_amount(store, tenant_id, as_of: date, grace_days: Optional[int] = None) -> TenantArrears:
    """
    What a tenant owes on ``as_of`` across every period not yet paid,
    including late fees that would apply on that date.
    """
    store.get_tenant(tenant_id)
    arrears = TenantArrears(tenant_id=tenant_id, as_of=as_of)

    for period in store.list_periods(tenant_id):
        if period.status == PeriodStatus.PAID:
            continue
        grace = resolve_grace_days(period.lease, grace_days)
        fee = late_fee_due(period, as_of, grace)
        owed = max(ZERO, to_money(period.rent_amount) + fee - to_money(period.amount_paid))
        late = is_period_late(period.effective_due_date, as_of, grace)

        arrears.total_owed += owed
        arrears.total_late_fees += fee
        if late:
            arrears.missed_periods += 1
        arrears.missed_payments.append(MissedPayment(
            period_id=period.id,
            period_due_date=period.effective_due_date,
            amount_due=owed,
            late_fee=fee,
            is_late=late,
            days_late=calculate_days_late(period.effective_due_date, as_of, grace),
        ))

    return arrears


@dataclass
class CollectionsReport:
    start_date: date
    end_date: date
    total_collected: Decimal = ZERO
    total_allocated: Decimal = ZERO
    payment_count: int = 0
    by_tenant: Optional[Dict] = None
    by_property: Optional[Dict] = None

    @property
    def total_unapplied(self) -> Decimal:
        return self.total_collected - self.total_allocated

    @property
    def date_range(self):
        return self.start_date, self.end_date

    def to_dict(self):
        breakdown = {}
        if self.by_tenant is not None:
            breakdown["by_tenant"] = _format_breakdown(self.by_tenant)
        if self.by_property is not None:
            breakdown["by_property"] = _format_breakdown(self.by_property)
        return {
            "total_collected": format_money(self.total_collected),
            "total_allocated": format_money(self.total_allocated),
            "total_unapplied": format_money(self.total_unapplied),
            "payment_count": self.payment_count,
            "date_range": {
                "start": format_iso_date(self.start_date),
                "end": format_iso_date(self.end_date),
            },
            "breakdown": breakdown,
        }


def _format_breakdown(groups):
    return {
        str(key): {"total": format_money(row["total"]), "payment_count": row["payment_count"]}
        for key, row in groups.items()
    }


def _group(payments, key):
    groups = defaultdict(lambda: {"total": ZERO, "payment_count": 0})
    for payment in payments:
        row = groups[key(payment)]
        row["total"] += to_money(payment.amount)
        row["payment_count"] += 1
    return dict(groups)


def get_collected_total(store, start_date: date, end_date: date, tenant_id=None, property_id=None) -> CollectionsReport:
    """Cash received with ``start_date <= payment_date <= end_date`` (inclusive)."""
    payments = store.list_payments_between(start_date, end_date, tenant_id=tenant_id, property_id=property_id)

    report = CollectionsReport(start_date=start_date, end_date=end_date)
    report.payment_count = len(payments)
    report.total_collected = sum((to_money(p.amount) for p in payments), ZERO)
    report.total_allocated = sum((to_money(p.amount_allocated) for p in payments), ZERO)

    if tenant_id is None:
        report.by_tenant = _group(payments, lambda p: p.tenant_id)
    if property_id is None:
        report.by_property = _group(payments, lambda p: p.property_id)
    return report


def _month_bounds(day: date):
    first = day.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return first, next_first - timedelta(days=1)


def get_collections_summary(store, today: date) -> dict:
    """Collected totals for this month, last month, this year and last year"""
    this_month_start, _ = _month_bounds(today)
    last_month_start, last_month_end = _month_bounds(this_month_start - timedelta(days=1))
    windows = {
        "this_month": (this_month_start, today),
        "last_month": (last_month_start, last_month_end),
        "this_year": (date(today.year, 1, 1), today),
        "last_year": (date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)),
    }

    summary = {}
    for name, (start, end) in windows.items():
        report = get_collected_total(store, start, end)
        summary[name] = {
            "total_collected": format_money(report.total_collected),
            "payment_count": report.payment_count,
            "start": format_iso_date(start),
            "end": format_iso_date(end),
        }
    summary["as_of"] = format_iso_date(today)
    return summary

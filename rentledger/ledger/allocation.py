"""
Payment allocation engine.

A payment is spread over a tenant's outstanding rent periods by a waterfall:
the oldest period first, and within a period the late fee before rent. Every
call is all-or-nothing and can be repeated for the same payment; the previous
allocations of that payment are reversed before the money is spread again.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..models import PaymentAllocation, PeriodStatus
from ..utils import ZERO, format_iso_date, format_money, to_money
from .cadence import is_period_late
from .errors import NonPositiveAmountError, PaymentMismatchError, TenantNotFoundError
from .late_fees import apply_late_fee_if_due
from .periods import refresh_status, resolve_grace_days

logger = logging.getLogger(__name__)


@dataclass
class AppliedAllocation:
    period_id: int
    to_late_fee: Decimal
    to_rent: Decimal
    period_due_date: date
    status: str

    @property
    def amount(self) -> Decimal:
        return self.to_late_fee + self.to_rent

    def to_dict(self):
        return {
            "period_id": self.period_id,
            "to_late_fee": format_money(self.to_late_fee),
            "to_rent": format_money(self.to_rent),
            "period_due_date": format_iso_date(self.period_due_date),
            "status": self.status,
        }


@dataclass
class AllocationResult:
    payment_id: int
    amount: Decimal
    applied: List[AppliedAllocation] = field(default_factory=list)
    remainder: Decimal = ZERO

    @property
    def total_applied(self) -> Decimal:
        return sum((a.amount for a in self.applied), ZERO)

    def to_dict(self):
        return {
            "payment_id": self.payment_id,
            "amount": format_money(self.amount),
            "applied": [a.to_dict() for a in self.applied],
            "total_applied": format_money(self.total_applied),
            "remainder": format_money(self.remainder),
        }


class FifoFeeFirst:
    """
    Waterfall strategy: oldest due date first, and inside a period the late
    fee is covered before rent.
    """

    name = "fifo_fee_first"

    def order(self, periods):
        return sorted(periods, key=lambda p: (p.period_due_date, p.id))

    def split(self, remaining: Decimal, fee_due: Decimal, rent_due: Decimal):
        to_fee = min(remaining, fee_due)
        to_rent = min(remaining - to_fee, rent_due)
        return to_fee, to_rent


DEFAULT_STRATEGY = FifoFeeFirst()


def _reverse_allocations(store, payment_id, as_of: date, grace: int):
    """
    Undo a payment's allocations on the periods they funded. A late fee this
    payment attached is dropped again when it is not due as of ``as_of`` and no
    other payment has put money toward it.
    """
    touched = []
    for allocation in store.list_allocations_for_payment(payment_id):
        period = store.get_period(allocation.rent_period_id)
        period.amount_paid = to_money(period.amount_paid) - to_money(allocation.amount_allocated)
        if allocation.attached_late_fee and not is_period_late(period.effective_due_date, as_of, grace):
            fee_paid, _ = store.allocated_components(period.id)
            if fee_paid == to_money(allocation.amount_to_late_fee):
                period.late_fee_applied = ZERO
        touched.append(period)

    if touched:
        store.delete_allocations_for_payment(payment_id)
        for period in touched:
            refresh_status(period, as_of, grace)
            store.upsert_period(period)
        logger.info("Reversed %d allocations of payment %s", len(touched), payment_id)
    return touched


def allocate(store, tenant_id, payment_id, amount, payment_date: date,
             grace_days: Optional[int] = None, strategy=DEFAULT_STRATEGY) -> AllocationResult:
    """
    Spread ``amount`` of payment ``payment_id`` over the tenant's outstanding
    periods as of ``payment_date``.

    ``amount`` must equal the recorded payment amount; edit the payment first to
    allocate a different figure.

    Raises NonPositiveAmountError, TenantNotFoundError (no lease),
    PaymentNotFoundError or PaymentMismatchError (payment of another tenant, or
    a different amount); a missing period raises PeriodNotFoundError. Any
    failure leaves the ledger as it was before the call.
    """
    amount = to_money(amount)
    if amount <= ZERO:
        raise NonPositiveAmountError(f"Payment amount must be positive, got {amount}")

    with store.transaction():
        lease = store.get_lease(tenant_id)
        payment = store.get_payment(payment_id)
        if payment.tenant_id != tenant_id:
            raise PaymentMismatchError(
                f"Payment {payment_id} belongs to tenant {payment.tenant_id}, not tenant {tenant_id}"
            )
        if to_money(payment.amount) != amount:
            raise PaymentMismatchError(
                f"Payment {payment_id} is for {to_money(payment.amount)}, cannot allocate {amount}"
            )
        grace = resolve_grace_days(lease, grace_days)

        _reverse_allocations(store, payment_id, payment_date, grace)

        result = AllocationResult(payment_id=payment_id, amount=amount)
        remaining = amount
        for period in strategy.order(store.list_outstanding_periods(tenant_id)):
            if remaining <= ZERO:
                break

            fee_before = to_money(period.late_fee_applied)
            apply_late_fee_if_due(period, payment_date, grace)
            attached = fee_before == ZERO and to_money(period.late_fee_applied) > ZERO
            fee_paid, rent_paid = store.allocated_components(period.id)
            fee_due = max(ZERO, period.effective_late_fee - fee_paid)
            rent_due = max(ZERO, to_money(period.rent_amount) - rent_paid)

            to_fee, to_rent = strategy.split(remaining, fee_due, rent_due)
            applied = to_fee + to_rent
            if applied <= ZERO:
                # nothing left to cover here; only the status can be stale
                refresh_status(period, payment_date, grace)
                store.upsert_period(period)
                continue

            store.insert_allocation(PaymentAllocation(
                payment_id=payment_id,
                rent_period_id=period.id,
                amount_allocated=applied,
                amount_to_late_fee=to_fee,
                amount_to_rent=to_rent,
                attached_late_fee=attached,
            ))
            period.amount_paid = to_money(period.amount_paid) + applied
            refresh_status(period, payment_date, grace)
            store.upsert_period(period)
            remaining -= applied

            settled = applied == fee_due + rent_due
            result.applied.append(AppliedAllocation(
                period_id=period.id,
                to_late_fee=to_fee,
                to_rent=to_rent,
                period_due_date=period.period_due_date,
                status=PeriodStatus.PAID if settled else PeriodStatus.PARTIAL,
            ))
            if not settled:
                break

        result.remainder = remaining

    logger.info(
        "Allocated payment %s for tenant %s: %s over %d periods, remainder %s",
        payment_id, tenant_id, result.total_applied, len(result.applied), result.remainder,
    )
    return result


def allocate_payment(store, payment, grace_days: Optional[int] = None, strategy=DEFAULT_STRATEGY) -> AllocationResult:
    return allocate(
        store,
        tenant_id=payment.tenant_id,
        payment_id=payment.id,
        amount=payment.amount,
        payment_date=payment.payment_date,
        grace_days=grace_days,
        strategy=strategy,
    )


def release_allocations(store, payment_id, as_of: Optional[date] = None, grace_days: Optional[int] = None):
    """Reverse everything a payment funded, e.g. before the payment is deleted."""
    with store.transaction():
        payment = store.get_payment(payment_id)
        try:
            lease = store.get_lease(payment.tenant_id)
        except TenantNotFoundError:
            lease = None
        grace = resolve_grace_days(lease, grace_days)
        return _reverse_allocations(store, payment.id, as_of or payment.payment_date, grace)


def waive_late_fee(store, period_id, as_of: date, grace_days: Optional[int] = None):
    """
    Waive a period's late fee. Payments that already covered part of the fee
    are re-allocated so that money moves on to rent and later periods.
    """
    with store.transaction():
        period = store.get_period(period_id)
        if period.late_fee_waived:
            return period

        grace = resolve_grace_days(period.lease, grace_days)
        period.late_fee_waived = True
        refresh_status(period, as_of, grace)
        store.upsert_period(period)

        fee_paid, _ = store.allocated_components(period.id)
        if fee_paid > ZERO:
            for payment in store.list_payments_for_period(period.id):
                allocate_payment(store, payment, grace_days)

    logger.info("Late fee waived on rent period %s", period_id)
    return period


@dataclass
class ResyncRow:
    period_id: int
    tenant_id: int
    period_due_date: date
    total_due: Decimal
    amount_paid: Decimal
    remaining_due: Decimal
    status: str
    note: Optional[str] = None

    def to_dict(self):
        return {
            "period_id": self.period_id,
            "tenant_id": self.tenant_id,
            "period_due_date": format_iso_date(self.period_due_date),
            "total_due": format_money(self.total_due),
            "amount_paid": format_money(self.amount_paid),
            "remaining_due": format_money(self.remaining_due),
            "status": self.status,
            "note": self.note,
        }


@dataclass
class ResyncReport:
    as_of: date
    details: List[ResyncRow] = field(default_factory=list)

    @property
    def total_periods(self) -> int:
        return len(self.details)

    @property
    def overpaid_count(self) -> int:
        return len([r for r in self.details if r.note == "overpaid"])

    @property
    def total_remaining_due(self) -> Decimal:
        return sum((r.remaining_due for r in self.details), ZERO)

    def to_dict(self):
        return {
            "summary": {
                "total_periods": self.total_periods,
                "overpaid_count": self.overpaid_count,
                "total_remaining_due": format_money(self.total_remaining_due),
                "as_of_date": format_iso_date(self.as_of),
            },
            "details": [r.to_dict() for r in self.details],
        }


def resync_ledger(store, as_of: date, tenant_id=None, grace_days: Optional[int] = None) -> ResyncReport:
    """
    Rebuild ``amount_paid`` from allocation rows, attach fees that have come
    due and re-derive every status as of ``as_of``.
    """
    report = ResyncReport(as_of=as_of)
    with store.transaction():
        if tenant_id is not None:
            store.get_tenant(tenant_id)
        for period in store.list_periods(tenant_id):
            grace = resolve_grace_days(period.lease, grace_days)
            period.amount_paid = store.allocated_total(period.id)
            if period.amount_paid < period.total_due:
                apply_late_fee_if_due(period, as_of, grace)
            refresh_status(period, as_of, grace)
            store.upsert_period(period)

            paid = to_money(period.amount_paid)
            report.details.append(ResyncRow(
                period_id=period.id,
                tenant_id=period.tenant_id,
                period_due_date=period.period_due_date,
                total_due=period.total_due,
                amount_paid=paid,
                remaining_due=period.balance,
                status=period.status,
                note="overpaid" if paid > period.total_due else None,
            ))

    logger.info(
        "Resynced %d rent periods as of %s (%d overpaid)",
        report.total_periods, as_of, report.overpaid_count,
    )
    return report

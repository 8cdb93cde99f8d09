from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import text

from rentledger.ledger import (
    AllocationConflictError,
    FifoFeeFirst,
    NonPositiveAmountError,
    PaymentMismatchError,
    PaymentNotFoundError,
    PeriodNotFoundError,
    TenantNotFoundError,
    allocate,
    allocate_payment,
    assess_late_fees,
    release_allocations,
    resync_ledger,
    waive_late_fee,
)
from rentledger.models import PaymentAllocation, PeriodStatus, RentPeriod


def _state(db, tenant_id):
    periods = (
        db.session.query(RentPeriod)
        .filter_by(tenant_id=tenant_id)
        .order_by(RentPeriod.period_due_date)
        .all()
    )
    return [(p.period_due_date, p.amount_paid, p.late_fee_applied, p.status) for p in periods]


def test_late_payment_covers_fee_then_rent(store, db, monthly_tenant, make_payment):
    tenant, _, (jan,) = monthly_tenant(horizon=date(2024, 1, 1))
    payment = make_payment(tenant, "1200.00", date(2024, 1, 10))

    result = allocate_payment(store, payment)

    assert len(result.applied) == 1
    applied = result.applied[0]
    assert applied.period_id == jan.id
    assert applied.to_late_fee == Decimal("45.00")
    assert applied.to_rent == Decimal("1000.00")
    assert applied.status == PeriodStatus.PAID
    assert result.remainder == Decimal("155.00")

    jan = db.session.get(RentPeriod, jan.id)
    assert jan.late_fee_applied == Decimal("45.00")
    assert jan.amount_paid == Decimal("1045.00")
    assert jan.status == PeriodStatus.PAID


def test_oldest_period_first(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, feb) = monthly_tenant()
    payment = make_payment(tenant, "1000.00", date(2024, 1, 3))

    result = allocate_payment(store, payment)

    assert [a.period_id for a in result.applied] == [jan.id]
    assert result.remainder == Decimal("0.00")
    assert db.session.get(RentPeriod, jan.id).status == PeriodStatus.PAID
    feb = db.session.get(RentPeriod, feb.id)
    assert feb.status == PeriodStatus.UNPAID
    assert feb.amount_paid == Decimal("0.00")


def test_underfunded_period_stops_the_waterfall(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, feb) = monthly_tenant()
    payment = make_payment(tenant, "500.00", date(2024, 1, 10))

    result = allocate_payment(store, payment)

    assert len(result.applied) == 1
    assert result.applied[0].to_late_fee == Decimal("45.00")
    assert result.applied[0].to_rent == Decimal("455.00")
    assert result.applied[0].status == PeriodStatus.PARTIAL
    assert result.remainder == Decimal("0.00")
    # past grace and short: still overdue
    assert db.session.get(RentPeriod, jan.id).status == PeriodStatus.OVERDUE
    assert db.session.get(RentPeriod, feb.id).amount_paid == Decimal("0.00")


def test_payment_spans_several_periods(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, feb) = monthly_tenant()
    payment = make_payment(tenant, "2500.00", date(2024, 2, 3))

    result = allocate_payment(store, payment)

    assert [(a.to_late_fee, a.to_rent) for a in result.applied] == [
        (Decimal("45.00"), Decimal("1000.00")),
        (Decimal("0.00"), Decimal("1000.00")),
    ]
    assert result.remainder == Decimal("455.00")
    assert db.session.get(RentPeriod, feb.id).status == PeriodStatus.PAID


@pytest.mark.parametrize("amount,paid_on", [
    ("0.01", date(2024, 1, 2)),
    ("999.99", date(2024, 1, 20)),
    ("1045.00", date(2024, 1, 20)),
    ("3000.00", date(2024, 2, 20)),
])
def test_conservation(store, monthly_tenant, make_payment, amount, paid_on):
    tenant, _, _ = monthly_tenant()
    payment = make_payment(tenant, amount, paid_on)

    result = allocate_payment(store, payment)

    assert result.total_applied + result.remainder == Decimal(amount)
    assert all(a.to_late_fee >= 0 and a.to_rent >= 0 for a in result.applied)


def test_amount_paid_matches_allocations(store, db, monthly_tenant, make_payment):
    tenant, _, periods = monthly_tenant()
    for amount, day in (("300.00", date(2024, 1, 2)), ("900.00", date(2024, 1, 15)), ("400.00", date(2024, 2, 2))):
        allocate_payment(store, make_payment(tenant, amount, day))

    for period in periods:
        period = db.session.get(RentPeriod, period.id)
        assert period.amount_paid == store.allocated_total(period.id)
        assert period.amount_paid <= period.total_due


def test_other_tenants_untouched(store, db, monthly_tenant, make_payment):
    tenant, _, _ = monthly_tenant("Ann")
    other, _, _ = monthly_tenant("Bob")
    before = _state(db, other.id)

    allocate_payment(store, make_payment(tenant, "5000.00", date(2024, 3, 1)))

    assert _state(db, other.id) == before


def test_reallocation_matches_fresh_allocation(store, db, monthly_tenant, make_payment):
    edited, _, _ = monthly_tenant("Ann")
    fresh, _, _ = monthly_tenant("Bob")

    payment = make_payment(edited, "1200.00", date(2024, 1, 10))
    allocate_payment(store, payment)
    payment.amount = Decimal("500.00")
    db.session.commit()
    edited_result = allocate_payment(store, payment)

    fresh_result = allocate_payment(store, make_payment(fresh, "500.00", date(2024, 1, 10)))

    assert _state(db, edited.id) == _state(db, fresh.id)
    assert edited_result.remainder == fresh_result.remainder
    assert db.session.query(PaymentAllocation).filter_by(payment_id=payment.id).count() == 1


def test_reapplying_same_payment_is_stable(store, db, monthly_tenant, make_payment):
    tenant, _, _ = monthly_tenant()
    payment = make_payment(tenant, "1200.00", date(2024, 1, 10))

    first = allocate_payment(store, payment)
    state = _state(db, tenant.id)
    second = allocate_payment(store, payment)

    assert first.to_dict() == second.to_dict()
    assert _state(db, tenant.id) == state


@pytest.mark.parametrize("amount", ["0", "-10.00"])
def test_non_positive_amount_rejected(store, db, monthly_tenant, make_payment, amount):
    tenant, _, _ = monthly_tenant()
    payment = make_payment(tenant, "100.00", date(2024, 1, 2))

    with pytest.raises(NonPositiveAmountError):
        allocate(store, tenant.id, payment.id, Decimal(amount), date(2024, 1, 2))
    assert db.session.query(PaymentAllocation).count() == 0


def test_tenant_without_lease(store, make_tenant, make_payment):
    tenant = make_tenant()
    payment = make_payment(tenant, "100.00", date(2024, 1, 2))

    with pytest.raises(TenantNotFoundError):
        allocate_payment(store, payment)


def test_unknown_payment(store, monthly_tenant):
    tenant, _, _ = monthly_tenant()

    with pytest.raises(PaymentNotFoundError):
        allocate(store, tenant.id, 404, Decimal("100.00"), date(2024, 1, 2))


def test_failure_rolls_back_everything(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, feb) = monthly_tenant()
    payment = make_payment(tenant, "1500.00", date(2024, 1, 3))
    allocate_payment(store, payment)
    before = _state(db, tenant.id)

    # point the second allocation at a period that no longer exists
    broken = (
        db.session.query(PaymentAllocation)
        .filter_by(payment_id=payment.id, rent_period_id=feb.id)
        .one()
    )
    broken.rent_period_id = 9999
    db.session.commit()

    with pytest.raises(PeriodNotFoundError):
        allocate_payment(store, payment)

    assert _state(db, tenant.id) == before
    assert db.session.query(PaymentAllocation).filter_by(payment_id=payment.id).count() == 2


class _ConcurrentWriter(FifoFeeFirst):
    """Bumps every period row behind the session's back, as another writer would."""

    def __init__(self, db):
        self.db = db

    def order(self, periods):
        for period in periods:
            self.db.session.execute(
                text("UPDATE rent_periods SET version_id = version_id + 1 WHERE id = :id"),
                {"id": period.id},
            )
        return super().order(periods)


def test_write_conflict_surfaces_as_retryable(store, db, monthly_tenant, make_payment):
    tenant, _, _ = monthly_tenant()
    payment = make_payment(tenant, "1200.00", date(2024, 1, 10))
    before = _state(db, tenant.id)

    with pytest.raises(AllocationConflictError):
        allocate(store, tenant.id, payment.id, payment.amount, payment.payment_date,
                 strategy=_ConcurrentWriter(db))

    assert _state(db, tenant.id) == before
    assert db.session.query(PaymentAllocation).count() == 0

    # nothing was left behind, so a plain retry goes through
    result = allocate_payment(store, payment)
    assert result.total_applied == Decimal("1200.00")


def test_payment_of_another_tenant_rejected(store, db, monthly_tenant, make_payment):
    owner, _, _ = monthly_tenant("Ann")
    other, _, _ = monthly_tenant("Bob")
    payment = make_payment(owner, "1000.00", date(2024, 1, 3))
    allocate_payment(store, payment)
    owner_before = _state(db, owner.id)
    other_before = _state(db, other.id)

    with pytest.raises(PaymentMismatchError):
        allocate(store, other.id, payment.id, Decimal("1000.00"), date(2024, 1, 3))

    assert _state(db, owner.id) == owner_before
    assert _state(db, other.id) == other_before
    assert db.session.query(PaymentAllocation).filter_by(payment_id=payment.id).count() == 1


def test_amount_must_match_recorded_payment(store, db, monthly_tenant, make_payment):
    tenant, _, _ = monthly_tenant()
    payment = make_payment(tenant, "1000.00", date(2024, 1, 3))

    with pytest.raises(PaymentMismatchError):
        allocate(store, tenant.id, payment.id, Decimal("5000.00"), date(2024, 1, 3))
    assert db.session.query(PaymentAllocation).count() == 0


def test_moving_payment_into_grace_drops_its_late_fee(store, db, monthly_tenant, make_payment):
    edited, _, (edited_jan,) = monthly_tenant("Ann", horizon=date(2024, 1, 1))
    fresh, _, _ = monthly_tenant("Bob", horizon=date(2024, 1, 1))

    payment = make_payment(edited, "1200.00", date(2024, 1, 10))
    assert allocate_payment(store, payment).remainder == Decimal("155.00")
    payment.payment_date = date(2024, 1, 3)
    db.session.commit()
    edited_result = allocate_payment(store, payment)

    fresh_result = allocate_payment(store, make_payment(fresh, "1200.00", date(2024, 1, 3)))

    assert edited_result.remainder == fresh_result.remainder == Decimal("200.00")
    assert _state(db, edited.id) == _state(db, fresh.id)
    db.session.refresh(edited_jan)
    assert edited_jan.late_fee_applied == Decimal("0.00")
    assert edited_jan.status == PeriodStatus.PAID


def test_fee_attached_earlier_survives_reallocation(store, db, monthly_tenant, make_payment):
    tenant, lease, (jan,) = monthly_tenant(horizon=date(2024, 1, 1))
    assess_late_fees(store, lease.id, date(2024, 1, 10))
    payment = make_payment(tenant, "1200.00", date(2024, 1, 10))
    allocate_payment(store, payment)

    payment.payment_date = date(2024, 1, 3)
    db.session.commit()
    allocate_payment(store, payment)

    db.session.refresh(jan)
    assert jan.late_fee_applied == Decimal("45.00")


def test_release_allocations(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, _) = monthly_tenant()
    payment = make_payment(tenant, "1000.00", date(2024, 1, 3))
    allocate_payment(store, payment)

    released = release_allocations(store, payment.id)

    assert [p.id for p in released] == [jan.id]
    jan = db.session.get(RentPeriod, jan.id)
    assert jan.amount_paid == Decimal("0.00")
    assert jan.status == PeriodStatus.UNPAID
    assert db.session.query(PaymentAllocation).count() == 0


def test_waiving_fee_moves_money_forward(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, feb) = monthly_tenant()
    payment = make_payment(tenant, "1200.00", date(2024, 1, 10))
    allocate_payment(store, payment)
    assert db.session.get(RentPeriod, feb.id).amount_paid == Decimal("155.00")

    waive_late_fee(store, jan.id, date(2024, 1, 10))

    jan = db.session.get(RentPeriod, jan.id)
    feb = db.session.get(RentPeriod, feb.id)
    assert jan.late_fee_waived is True
    assert jan.amount_paid == Decimal("1000.00")
    assert jan.status == PeriodStatus.PAID
    assert feb.amount_paid == Decimal("200.00")
    assert feb.status == PeriodStatus.PARTIAL
    assert store.allocated_components(jan.id) == (Decimal("0.00"), Decimal("1000.00"))


def test_waiving_twice_is_a_no_op(store, db, monthly_tenant):
    _, _, (jan, _) = monthly_tenant()

    waive_late_fee(store, jan.id, date(2024, 1, 10))
    waive_late_fee(store, jan.id, date(2024, 1, 10))

    assert db.session.get(RentPeriod, jan.id).late_fee_waived is True


def test_resync_rebuilds_from_allocations(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, feb) = monthly_tenant()
    allocate_payment(store, make_payment(tenant, "1000.00", date(2024, 1, 3)))

    # drift: the cached total no longer matches the allocation rows
    drifted = db.session.get(RentPeriod, jan.id)
    drifted.amount_paid = Decimal("0.00")
    drifted.status = PeriodStatus.UNPAID
    db.session.commit()

    report = resync_ledger(store, date(2024, 2, 10))

    jan = db.session.get(RentPeriod, jan.id)
    feb = db.session.get(RentPeriod, feb.id)
    assert jan.amount_paid == Decimal("1000.00")
    assert jan.status == PeriodStatus.PAID
    assert feb.late_fee_applied == Decimal("45.00")
    assert feb.status == PeriodStatus.OVERDUE
    assert report.total_periods == 2
    assert report.overpaid_count == 0
    assert report.total_remaining_due == Decimal("1045.00")


def test_resync_flags_overpaid_periods(store, db, monthly_tenant, make_payment):
    tenant, _, (jan, _) = monthly_tenant()
    payment = make_payment(tenant, "1100.00", date(2024, 1, 3))
    db.session.add(PaymentAllocation(
        payment_id=payment.id,
        rent_period_id=jan.id,
        amount_allocated=Decimal("1100.00"),
        amount_to_late_fee=Decimal("0.00"),
        amount_to_rent=Decimal("1100.00"),
    ))
    db.session.commit()

    report = resync_ledger(store, date(2024, 1, 3), tenant_id=tenant.id)

    assert report.overpaid_count == 1
    row = report.details[0]
    assert row.note == "overpaid"
    assert row.status == PeriodStatus.PAID
    assert row.remaining_due == Decimal("0.00")


def test_resync_unknown_tenant(store):
    with pytest.raises(TenantNotFoundError):
        resync_ledger(store, date(2024, 1, 3), tenant_id=42)

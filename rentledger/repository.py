"""
Persistence collaborator for the rent ledger.

``Repository`` is the one CRUD wrapper shared by every entity; ``LedgerStore``
layers the ledger-specific queries on top and owns the transactional scope the
allocation engine runs in.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .ledger.errors import (
    AllocationConflictError,
    LeaseNotFoundError,
    PaymentNotFoundError,
    PeriodNotFoundError,
    TenantNotFoundError,
)
from .models import Lease, Payment, PaymentAllocation, PeriodStatus, RentPeriod, Tenant
from .utils import to_money

logger = logging.getLogger(__name__)


class Repository:
    """Generic single-table access parameterized by model class."""

    def __init__(self, model, session):
        self.model = model
        self.session = session

    def query(self):
        return self.session.query(self.model)

    def get(self, ident):
        return self.session.get(self.model, ident)

    def get_or_raise(self, ident, error_cls):
        instance = self.get(ident)
        if instance is None:
            raise error_cls(f"{self.model.__name__} {ident} not found")
        return instance

    def add(self, instance):
        self.session.add(instance)
        self.session.flush()
        return instance

    def delete(self, instance):
        self.session.delete(instance)
        self.session.flush()


class LedgerStore:
    """Ledger reads and writes over one SQLAlchemy session."""

    def __init__(self, session):
        self.session = session
        self.tenants = Repository(Tenant, session)
        self.leases = Repository(Lease, session)
        self.periods = Repository(RentPeriod, session)
        self.payments = Repository(Payment, session)
        self.allocations = Repository(PaymentAllocation, session)
        self._depth = 0

    # ----- unit of work -----------------------------------------------------

    @contextmanager
    def transaction(self):
        """
        Re-entrant unit of work: the outermost scope commits, any exception
        rolls everything back so callers never observe partial writes.
        """
        self._depth += 1
        outermost = self._depth == 1
        try:
            yield self
            if outermost:
                self.session.commit()
        except (StaleDataError, IntegrityError, OperationalError) as e:
            if outermost:
                self.session.rollback()
                logger.warning("Ledger write conflict, rolled back: %s", e)
                raise AllocationConflictError(
                    "Ledger was modified concurrently; retry the operation"
                ) from e
            raise
        except Exception:
            if outermost:
                self.session.rollback()
            raise
        finally:
            self._depth -= 1

    # ----- tenants & leases -------------------------------------------------

    def get_tenant(self, tenant_id) -> Tenant:
        return self.tenants.get_or_raise(tenant_id, TenantNotFoundError)

    def get_lease(self, tenant_id) -> Lease:
        """The tenant's current lease: an active one first, else the latest started."""
        leases = (
            self.leases.query()
            .filter(Lease.tenant_id == tenant_id)
            .order_by(Lease.start_date.desc(), Lease.id.desc())
            .all()
        )
        if not leases:
            raise TenantNotFoundError(f"Tenant {tenant_id} has no lease")
        active = [lease for lease in leases if lease.status == 'active']
        return active[0] if active else leases[0]

    def get_lease_by_id(self, lease_id) -> Lease:
        return self.leases.get_or_raise(lease_id, LeaseNotFoundError)

    def list_leases(self, status: Optional[str] = None) -> List[Lease]:
        query = self.leases.query()
        if status:
            query = query.filter(Lease.status == status)
        return query.order_by(Lease.id).all()

    # ----- rent periods -----------------------------------------------------

    def get_period(self, period_id) -> RentPeriod:
        return self.periods.get_or_raise(period_id, PeriodNotFoundError)

    def list_periods_for_lease(self, lease_id) -> List[RentPeriod]:
        return (
            self.periods.query()
            .filter(RentPeriod.lease_id == lease_id)
            .order_by(RentPeriod.period_due_date, RentPeriod.id)
            .all()
        )

    def list_periods(self, tenant_id=None) -> List[RentPeriod]:
        query = self.periods.query()
        if tenant_id is not None:
            query = query.filter(RentPeriod.tenant_id == tenant_id)
        return query.order_by(RentPeriod.period_due_date, RentPeriod.id).all()

    def list_outstanding_periods(self, tenant_id, lock: bool = True) -> List[RentPeriod]:
        """Non-paid periods oldest first, row-locked where the backend allows it."""
        query = (
            self.periods.query()
            .filter(RentPeriod.tenant_id == tenant_id, RentPeriod.status != PeriodStatus.PAID)
            .order_by(RentPeriod.period_due_date, RentPeriod.id)
        )
        if lock:
            query = query.with_for_update()
        return query.all()

    def upsert_period(self, period: RentPeriod) -> RentPeriod:
        return self.periods.add(period)

    # ----- payments & allocations -------------------------------------------

    def get_payment(self, payment_id) -> Payment:
        return self.payments.get_or_raise(payment_id, PaymentNotFoundError)

    def add_payment(self, payment: Payment) -> Payment:
        return self.payments.add(payment)

    def delete_payment(self, payment: Payment):
        # allocation rows may already be gone; don't let a stale collection cascade
        self.session.expire(payment, ["allocations"])
        self.payments.delete(payment)

    def list_payments_for_period(self, period_id) -> List[Payment]:
        return (
            self.payments.query()
            .join(PaymentAllocation, PaymentAllocation.payment_id == Payment.id)
            .filter(PaymentAllocation.rent_period_id == period_id)
            .order_by(Payment.payment_date, Payment.id)
            .distinct()
            .all()
        )

    def list_payments_between(self, start: date, end: date, tenant_id=None, property_id=None) -> List[Payment]:
        query = self.payments.query().filter(
            Payment.payment_date >= start,
            Payment.payment_date <= end,
        )
        if tenant_id is not None:
            query = query.filter(Payment.tenant_id == tenant_id)
        if property_id is not None:
            query = query.filter(Payment.property_id == property_id)
        return query.order_by(Payment.payment_date, Payment.id).all()

    def insert_allocation(self, allocation: PaymentAllocation) -> PaymentAllocation:
        return self.allocations.add(allocation)

    def list_allocations_for_payment(self, payment_id) -> List[PaymentAllocation]:
        return (
            self.allocations.query()
            .filter(PaymentAllocation.payment_id == payment_id)
            .order_by(PaymentAllocation.id)
            .all()
        )

    def delete_allocations_for_payment(self, payment_id) -> int:
        allocations = self.list_allocations_for_payment(payment_id)
        for allocation in allocations:
            self.session.delete(allocation)
        self.session.flush()
        return len(allocations)

    def allocated_components(self, period_id) -> Tuple:
        """(to_late_fee, to_rent) already allocated against a period."""
        to_fee, to_rent = (
            self.session.query(
                func.coalesce(func.sum(PaymentAllocation.amount_to_late_fee), 0),
                func.coalesce(func.sum(PaymentAllocation.amount_to_rent), 0),
            )
            .filter(PaymentAllocation.rent_period_id == period_id)
            .one()
        )
        return to_money(to_fee), to_money(to_rent)

    def allocated_total(self, period_id):
        to_fee, to_rent = self.allocated_components(period_id)
        return to_fee + to_rent

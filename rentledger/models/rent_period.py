from datetime import datetime

from . import db
from ..utils import ZERO, format_iso_date, format_money, to_money


class PeriodStatus:
    UNPAID = 'unpaid'
    PARTIAL = 'partial'
    PAID = 'paid'
    OVERDUE = 'overdue'


class RentPeriod(db.Model):
    __tablename__ = 'rent_periods'
    __table_args__ = (
        db.UniqueConstraint('lease_id', 'period_due_date', name='uq_rent_period_lease_due'),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Foreign Keys
    lease_id = db.Column(db.Integer, db.ForeignKey('leases.id'), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False)

    # Schedule
    period_due_date = db.Column(db.Date, nullable=False)
    due_date_override = db.Column(db.Date, nullable=True)
    cadence = db.Column(db.String(20), nullable=False)

    # Financial details (rent copied from the lease when the period is generated)
    rent_amount = db.Column(db.Numeric(10, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(10, 2), nullable=False, default=ZERO)
    late_fee_applied = db.Column(db.Numeric(10, 2), nullable=False, default=ZERO)
    late_fee_waived = db.Column(db.Boolean, nullable=False, default=False)

    # Status tracking
    status = db.Column(db.String(20), nullable=False, default=PeriodStatus.UNPAID, index=True)

    # Optimistic lock for concurrent allocations
    version_id = db.Column(db.Integer, nullable=False)

    # Metadata
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    notes = db.Column(db.Text, nullable=True)

    allocations = db.relationship('PaymentAllocation', backref='rent_period', lazy=True)

    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f'<RentPeriod {self.id}: Lease {self.lease_id}, Due {self.period_due_date}, {self.status}>'

    @property
    def effective_due_date(self):
        return self.due_date_override or self.period_due_date

    @property
    def effective_late_fee(self):
        """Late fee still owed on top of rent (zero once waived)"""
        if self.late_fee_waived:
            return ZERO
        return to_money(self.late_fee_applied)

    @property
    def total_due(self):
        return to_money(self.rent_amount) + self.effective_late_fee

    @property
    def balance(self):
        return max(ZERO, self.total_due - to_money(self.amount_paid))

    def serialize(self):
        return {
            'id': self.id,
            'lease_id': self.lease_id,
            'tenant_id': self.tenant_id,
            'property_id': self.property_id,
            'period_due_date': format_iso_date(self.period_due_date),
            'due_date_override': format_iso_date(self.due_date_override),
            'cadence': self.cadence,
            'rent_amount': format_money(self.rent_amount),
            'amount_paid': format_money(self.amount_paid),
            'late_fee_applied': format_money(self.late_fee_applied),
            'late_fee_waived': self.late_fee_waived,
            'total_due': format_money(self.total_due),
            'balance': format_money(self.balance),
            'status': self.status,
            'notes': self.notes,
        }

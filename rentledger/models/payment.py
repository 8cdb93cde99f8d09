from datetime import datetime

from . import db
from ..utils import ZERO, format_iso_date, format_money


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=True, index=True)

    # Payment details
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocations = db.relationship('PaymentAllocation', backref='payment', lazy=True)

    def __repr__(self):
        return f'<Payment {self.id}: ${self.amount} on {self.payment_date}>'

    @property
    def amount_allocated(self):
        return sum((a.amount_allocated for a in self.allocations), ZERO)

    def serialize(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "property_id": self.property_id,
            "amount": format_money(self.amount),
            "payment_date": format_iso_date(self.payment_date),
            "notes": self.notes,
            "amount_allocated": format_money(self.amount_allocated),
            "allocations": [a.serialize() for a in self.allocations],
        }


class PaymentAllocation(db.Model):
    __tablename__ = 'payment_allocations'

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey('payments.id'), nullable=False, index=True)
    rent_period_id = db.Column(db.Integer, db.ForeignKey('rent_periods.id'), nullable=False, index=True)

    amount_allocated = db.Column(db.Numeric(10, 2), nullable=False)
    amount_to_late_fee = db.Column(db.Numeric(10, 2), nullable=False, default=ZERO)
    amount_to_rent = db.Column(db.Numeric(10, 2), nullable=False, default=ZERO)
    # set when this allocation is what attached the period's late fee
    attached_late_fee = db.Column(db.Boolean, nullable=False, default=False)

    applied_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<PaymentAllocation {self.id}: Payment {self.payment_id} -> Period {self.rent_period_id}, ${self.amount_allocated}>'

    def serialize(self):
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "rent_period_id": self.rent_period_id,
            "amount_allocated": format_money(self.amount_allocated),
            "amount_to_late_fee": format_money(self.amount_to_late_fee),
            "amount_to_rent": format_money(self.amount_to_rent),
            "attached_late_fee": self.attached_late_fee,
        }

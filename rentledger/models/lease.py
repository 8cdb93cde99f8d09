from datetime import datetime

from . import db
from ..utils import format_iso_date, format_money


class Lease(db.Model):
    __tablename__ = 'leases'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False)

    # Lease Terms
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)  # open-ended when null

    # Financial Terms
    rent_amount = db.Column(db.Numeric(10, 2), nullable=False)
    cadence = db.Column(db.String(20), nullable=False, default='monthly')  # weekly, bi_weekly, monthly
    grace_days = db.Column(db.Integer, default=5)

    # Status
    status = db.Column(db.String(20), default='pending')  # pending, active, expired

    # Metadata
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    notes = db.Column(db.Text, nullable=True)

    # Relationships
    rent_periods = db.relationship('RentPeriod', backref='lease', lazy=True)

    def __repr__(self):
        return f'<Lease {self.id}: {self.start_date} to {self.end_date}>'

    def serialize(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'property_id': self.property_id,
            'start_date': format_iso_date(self.start_date),
            'end_date': format_iso_date(self.end_date),
            'rent_amount': format_money(self.rent_amount),
            'cadence': self.cadence,
            'grace_days': self.grace_days,
            'status': self.status,
            'notes': self.notes,
        }


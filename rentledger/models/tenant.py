from datetime import datetime

from . import db


class Tenant(db.Model):
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=True)

    # Personal Information
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)

    # Tenant Status
    status = db.Column(db.String(20), default='active')  # active, inactive, former

    # Metadata
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    leases = db.relationship('Lease', backref='tenant', lazy=True)
    rent_periods = db.relationship('RentPeriod', backref='tenant', lazy=True)
    payments = db.relationship('Payment', backref='tenant', lazy=True)

    def __repr__(self):
        return f'<Tenant {self.id}: {self.full_name}>'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def serialize(self):
        return {
            'id': self.id,
            'property_id': self.property_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'email': self.email,
            'status': self.status,
        }

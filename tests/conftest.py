"""
Pytest fixtures for the rent ledger test suite.
"""
from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from rentledger import create_app
from rentledger.config import TestingConfig
from rentledger.extensions import db as _db
from rentledger.ledger import generate_periods
from rentledger.models import Lease, Payment, Property, Tenant
from rentledger.repository import LedgerStore


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def store(app):
    return LedgerStore(_db.session)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def auth_headers(app):
    token = create_access_token(identity="manager@example.com", additional_claims={"role": "manager"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(app):
    token = create_access_token(identity="admin@example.com", additional_claims={"role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_tenant(app):
    """Tenant living at a fresh property."""
    def _make(first_name="Jane", last_name="Doe", property_name="Maple Court"):
        prop = Property(name=property_name, address="12 Maple Ct")
        _db.session.add(prop)
        _db.session.flush()
        tenant = Tenant(first_name=first_name, last_name=last_name, property_id=prop.id)
        _db.session.add(tenant)
        _db.session.commit()
        return tenant
    return _make


@pytest.fixture
def make_lease(app):
    def _make(tenant, rent_amount="1000.00", cadence="monthly", start_date=date(2024, 1, 1),
              end_date=None, status="active", grace_days=5):
        lease = Lease(
            tenant_id=tenant.id,
            property_id=tenant.property_id,
            rent_amount=Decimal(rent_amount),
            cadence=cadence,
            start_date=start_date,
            end_date=end_date,
            status=status,
            grace_days=grace_days,
        )
        _db.session.add(lease)
        _db.session.commit()
        return lease
    return _make


@pytest.fixture
def make_payment(app):
    def _make(tenant, amount, payment_date):
        payment = Payment(
            tenant_id=tenant.id,
            property_id=tenant.property_id,
            amount=Decimal(amount),
            payment_date=payment_date,
        )
        _db.session.add(payment)
        _db.session.commit()
        return payment
    return _make


@pytest.fixture
def monthly_tenant(store, make_tenant, make_lease):
    """Tenant on a 1000/month lease from 2024-01-01 with Jan and Feb periods generated."""
    def _make(first_name="Jane", horizon=date(2024, 2, 1)):
        tenant = make_tenant(first_name=first_name, property_name=f"{first_name} House")
        lease = make_lease(tenant)
        periods = generate_periods(store, lease, horizon)
        return tenant, lease, periods
    return _make

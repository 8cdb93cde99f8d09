from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..ledger import (
    assess_late_fees,
    calculate_tenant_owed_amount,
    generate_periods,
    resync_ledger,
    waive_late_fee,
)
from . import get_store, int_field, require_admin, today_field

ledger_bp = Blueprint("ledger", __name__)

# ============= RENT PERIODS =============


@ledger_bp.post("/leases/<int:lease_id>/generate-periods")
@jwt_required()
def generate_lease_periods(lease_id):
    """Materialize the lease's rent periods through the horizon date"""
    data = request.get_json(silent=True) or {}
    horizon = today_field(data, "horizon")

    store = get_store()
    lease = store.get_lease_by_id(lease_id)
    periods = generate_periods(store, lease, horizon)

    current_app.logger.info("Rent periods generated for lease %s through %s", lease_id, horizon)
    return jsonify({
        "lease_id": lease_id,
        "horizon": horizon.isoformat(),
        "rent_periods": [p.serialize() for p in periods],
        "count": len(periods),
    })


@ledger_bp.post("/leases/<int:lease_id>/assess-late-fees")
@jwt_required()
def assess_lease_late_fees(lease_id):
    data = request.get_json(silent=True) or {}
    as_of = today_field(data)

    store = get_store()
    assessed = assess_late_fees(store, lease_id, as_of)
    return jsonify({
        "lease_id": lease_id,
        "as_of": as_of.isoformat(),
        "assessed": [p.serialize() for p in assessed],
        "count": len(assessed),
    })


@ledger_bp.get("/tenants/<int:tenant_id>/rent-periods")
@jwt_required()
def list_tenant_periods(tenant_id):
    status = request.args.get("status")  # 'unpaid', 'partial', 'paid', 'overdue'

    store = get_store()
    store.get_tenant(tenant_id)
    periods = store.list_periods(tenant_id)
    if status:
        periods = [p for p in periods if p.status == status]
    return jsonify({
        "rent_periods": [p.serialize() for p in periods],
        "count": len(periods),
    })


@ledger_bp.get("/tenants/<int:tenant_id>/owed")
@jwt_required()
def tenant_owed(tenant_id):
    """What the tenant owes, with late fees projected to as_of"""
    as_of = today_field(request.args)
    arrears = calculate_tenant_owed_amount(get_store(), tenant_id, as_of)
    return jsonify(arrears.to_dict())


@ledger_bp.post("/rent-periods/<int:period_id>/waive-late-fee")
@jwt_required()
def waive_period_late_fee(period_id):
    data = request.get_json(silent=True) or {}
    as_of = today_field(data)

    period = waive_late_fee(get_store(), period_id, as_of)
    return jsonify(period.serialize())


# ============= ADMIN =============


@ledger_bp.post("/admin/rent/resync")
@jwt_required()
def resync_rent():
    """Rebuild paid amounts, fees and statuses from the allocation rows"""
    maybe_forbidden = require_admin()
    if maybe_forbidden:
        return maybe_forbidden

    data = request.get_json(silent=True) or {}
    as_of = today_field(data)
    tenant_id = int_field(data, "tenant_id")

    report = resync_ledger(get_store(), as_of, tenant_id=tenant_id)
    return jsonify(report.to_dict())

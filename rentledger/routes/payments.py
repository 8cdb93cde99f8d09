from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..ledger import allocate_payment, release_allocations
from ..models import Payment
from . import amount_field, date_field, get_store, int_field, today_field

payments_bp = Blueprint("payments", __name__)


@payments_bp.post("/payments")
@jwt_required()
def create_payment():
    """Record a payment and spread it over the tenant's outstanding periods"""
    data = request.get_json(silent=True) or {}
    tenant_id = int_field(data, "tenant_id", required=True)
    amount = amount_field(data)
    payment_date = today_field(data, "payment_date")

    store = get_store()
    with store.transaction():
        store.get_tenant(tenant_id)
        lease = store.get_lease(tenant_id)
        payment = store.add_payment(Payment(
            tenant_id=tenant_id,
            property_id=int_field(data, "property_id") or lease.property_id,
            amount=amount,
            payment_date=payment_date,
            notes=data.get("notes"),
        ))
        result = allocate_payment(store, payment)

    current_app.logger.info(
        "Payment %s recorded for tenant %s: %s, remainder %s",
        payment.id, tenant_id, amount, result.remainder,
    )
    return jsonify({"payment": payment.serialize(), "allocation": result.to_dict()}), 201


@payments_bp.get("/payments/<int:payment_id>")
@jwt_required()
def get_payment(payment_id):
    payment = get_store().get_payment(payment_id)
    return jsonify(payment.serialize())


@payments_bp.put("/payments/<int:payment_id>")
@jwt_required()
def update_payment(payment_id):
    """Edit a payment and re-run its allocation"""
    data = request.get_json(silent=True) or {}

    store = get_store()
    with store.transaction():
        payment = store.get_payment(payment_id)
        if "amount" in data:
            payment.amount = amount_field(data)
        if "payment_date" in data:
            payment.payment_date = date_field(data, "payment_date", required=True)
        if "notes" in data:
            payment.notes = data["notes"]
        result = allocate_payment(store, payment)

    return jsonify({"payment": payment.serialize(), "allocation": result.to_dict()})


@payments_bp.post("/payments/<int:payment_id>/apply")
@jwt_required()
def apply_payment(payment_id):
    """Re-run allocation for an existing payment; repeated calls give the same result"""
    store = get_store()
    payment = store.get_payment(payment_id)
    result = allocate_payment(store, payment)
    return jsonify(result.to_dict())


@payments_bp.delete("/payments/<int:payment_id>")
@jwt_required()
def delete_payment(payment_id):
    store = get_store()
    with store.transaction():
        payment = store.get_payment(payment_id)
        released = release_allocations(store, payment_id)
        store.delete_payment(payment)

    current_app.logger.info("Payment %s deleted, %d periods released", payment_id, len(released))
    return jsonify({"message": "Payment deleted successfully", "released_periods": len(released)})

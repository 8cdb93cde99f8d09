from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from werkzeug.exceptions import BadRequest

from ..ledger import get_collected_total, get_collections_summary
from . import date_field, get_store, int_field, today_field

reports_bp = Blueprint("reports", __name__)


@reports_bp.get("/reports/collections")
@jwt_required()
def collections_report():
    """Cash collected between start and end (inclusive), optionally per tenant or property"""
    args = request.args
    start = date_field(args, "start", required=True)
    end = date_field(args, "end", required=True)
    if start > end:
        raise BadRequest("start must not be after end")

    report = get_collected_total(
        get_store(),
        start,
        end,
        tenant_id=int_field(args, "tenant_id"),
        property_id=int_field(args, "property_id"),
    )
    return jsonify(report.to_dict())


@reports_bp.get("/reports/collections/summary")
@jwt_required()
def collections_summary():
    today = today_field(request.args, "today")
    return jsonify(get_collections_summary(get_store(), today))

from datetime import date
from decimal import Decimal, InvalidOperation

from flask import jsonify
from flask_jwt_extended import get_jwt
from werkzeug.exceptions import BadRequest

from ..extensions import db
from ..repository import LedgerStore
from ..utils import parse_iso_date, to_money


def get_store() -> LedgerStore:
    return LedgerStore(db.session)


def date_field(data, field, default=None, required=False):
    """Read an ISO date from a JSON body or query args; BadRequest when malformed."""
    value = data.get(field)
    if value in (None, ""):
        if required:
            raise BadRequest(f"Missing required field: {field}")
        return default
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid date for {field}: {value!r} (expected YYYY-MM-DD)") from None


def today_field(data, field="as_of"):
    return date_field(data, field, default=date.today())


def amount_field(data, field="amount") -> Decimal:
    value = data.get(field)
    if value in (None, ""):
        raise BadRequest(f"Missing required field: {field}")
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise BadRequest(f"Invalid amount for {field}: {value!r}") from None


def int_field(data, field, required=False):
    value = data.get(field)
    if value in (None, ""):
        if required:
            raise BadRequest(f"Missing required field: {field}")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"Invalid integer for {field}: {value!r}") from None


def require_admin():
    claims = get_jwt()
    role = claims.get("role")
    if role not in ("admin", "super_admin"):
        return jsonify(error="forbidden", message="admin only"), 403
    return None

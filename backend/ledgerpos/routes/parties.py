# Overview: Flask API routes for customers, vendors and accounts; parses input and returns JSON responses.

"""
Party directory routes.

Balances are read-only here: they move only through sales, payments,
purchases and voids.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import party_service
from ..validation import ValidationError, ConflictError


parties_bp = Blueprint("parties", __name__, url_prefix="/api/parties")


def _write(action, label: str, status: int = 201):
    try:
        record = action()
        return jsonify(record.to_dict()), status
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        status_code = 404 if "not found" in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception:
        current_app.logger.exception("Failed to write %s", label)
        return jsonify({"error": "Internal server error"}), 500


def _balance_only() -> bool:
    return request.args.get("with_balance", "false").lower() == "true"


@parties_bp.get("/customers")
def list_customers():
    customers = party_service.list_customers(with_balance_only=_balance_only())
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@parties_bp.post("/customers")
def create_customer():
    """Request body: {"name", "phone", "email", "address", "credit_limit_cents"}"""
    data = dict(request.get_json(silent=True) or {})
    customer_id = data.pop("id", None)
    return _write(lambda: party_service.create_customer(data, customer_id=customer_id), "customer")


@parties_bp.patch("/customers/<customer_id>")
def update_customer(customer_id):
    data = request.get_json(silent=True) or {}
    return _write(lambda: party_service.update_customer(customer_id, data), "customer", 200)


@parties_bp.get("/vendors")
def list_vendors():
    vendors = party_service.list_vendors(with_balance_only=_balance_only())
    return jsonify({"items": [v.to_dict() for v in vendors], "count": len(vendors)}), 200


@parties_bp.post("/vendors")
def create_vendor():
    """Request body: {"name", "contact_person", "email", "phone", "address"}"""
    data = dict(request.get_json(silent=True) or {})
    vendor_id = data.pop("id", None)
    return _write(lambda: party_service.create_vendor(data, vendor_id=vendor_id), "vendor")


@parties_bp.patch("/vendors/<vendor_id>")
def update_vendor(vendor_id):
    data = request.get_json(silent=True) or {}
    return _write(lambda: party_service.update_vendor(vendor_id, data), "vendor", 200)


@parties_bp.get("/accounts")
def list_accounts():
    accounts = party_service.list_accounts()
    return jsonify({"items": [a.to_dict() for a in accounts], "count": len(accounts)}), 200


@parties_bp.post("/accounts")
def create_account():
    """Request body: {"id": "bank-1", "name": "Main bank", "account_number": "...", "opening_balance_cents": 0}"""
    data = request.get_json(silent=True) or {}
    return _write(lambda: party_service.create_account(
        data.get("id"),
        data.get("name"),
        account_number=data.get("account_number"),
        opening_balance_cents=data.get("opening_balance_cents", 0),
    ), "account")

# Overview: Flask API routes for customer quotations; parses input and returns JSON responses.

"""
Quotation API Routes

LIFECYCLE: DRAFT (editable) -> FINALIZED (frozen). Loading a quotation
into a terminal cart lives with the POS routes.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import quotation_service
from ..services.document_store import PersistenceFailure
from ..services.quotation_service import QuotationError


quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


def _error(e: QuotationError):
    if "status" in e.details:
        status = 409
    elif "quotation_id" in e.details:
        status = 404
    else:
        status = 400
    return jsonify({"error": str(e), "details": e.details}), status


def _save(data: dict, quotation_id=None, created=False):
    try:
        quotation = quotation_service.save_quotation(
            data.get("items") or [],
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            notes=data.get("notes"),
            valid_days=data.get("valid_days", quotation_service.DEFAULT_VALID_DAYS),
            quotation_id=quotation_id,
            finalize=bool(data.get("finalize")),
            branch_id=data.get("branch_id"),
        )
        return jsonify({"quotation": quotation.to_dict()}), 201 if created else 200
    except QuotationError as e:
        return _error(e)
    except PersistenceFailure as e:
        return jsonify({"error": "Could not save the quotation, try again", "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to save quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("")
def create_quotation_route():
    """
    Create a quotation.

    Request body:
    {
        "customer_id": "CUS-...",
        "items": [{"product_id": "PRD-...", "quantity": 2, "price_cents": 950, "discount_cents": 100}],
        "valid_days": 14,
        "notes": "Delivery included",
        "finalize": false
    }
    """
    return _save(request.get_json(silent=True) or {}, created=True)


@quotations_bp.put("/<quotation_id>")
def update_quotation_route(quotation_id):
    """Rewrite a DRAFT quotation. Same body as create."""
    return _save(request.get_json(silent=True) or {}, quotation_id=quotation_id)


@quotations_bp.get("")
def list_quotations_route():
    try:
        quotations = quotation_service.list_quotations(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id"),
        )
    except QuotationError as e:
        return _error(e)
    return jsonify({"quotations": [q.to_dict(include_items=False) for q in quotations]}), 200


@quotations_bp.get("/<quotation_id>")
def get_quotation_route(quotation_id):
    try:
        return jsonify({"quotation": quotation_service.get_quotation(quotation_id).to_dict()}), 200
    except QuotationError as e:
        return _error(e)


@quotations_bp.post("/<quotation_id>/finalize")
def finalize_quotation_route(quotation_id):
    try:
        quotation = quotation_service.finalize_quotation(quotation_id)
        return jsonify({"quotation": quotation.to_dict()}), 200
    except QuotationError as e:
        return _error(e)


@quotations_bp.delete("/<quotation_id>")
def delete_quotation_route(quotation_id):
    try:
        quotation_service.delete_quotation(quotation_id)
        return jsonify({"deleted": quotation_id}), 200
    except QuotationError as e:
        return _error(e)

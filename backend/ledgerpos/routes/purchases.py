# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

"""
Purchase Order API Routes

LIFECYCLE: DRAFT -> PENDING -> RECEIVED, or CANCELLED before receipt.
Receiving books the stock and the PURCHASE transaction.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import purchase_service
from ..services.document_store import PersistenceFailure
from ..services.purchase_service import PurchaseError


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _error(e: PurchaseError):
    status = 404 if "not found" in str(e) else 400
    return jsonify({"error": str(e), "details": e.details}), status


@purchases_bp.post("")
def create_purchase_order_route():
    """
    Create a purchase order.

    Request body:
    {
        "vendor_id": "VEN-...",
        "items": [{"product_id": "PRD-...", "quantity": 10, "cost_cents": 450}],
        "payment_method": "CREDIT",
        "account_id": null,
        "submit": true
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_service.create_purchase_order(
            data.get("vendor_id"),
            data.get("items") or [],
            payment_method=data.get("payment_method", "CREDIT"),
            account_id=data.get("account_id"),
            cheque_number=data.get("cheque_number"),
            cheque_date=data.get("cheque_date"),
            branch_id=data.get("branch_id"),
            submit=bool(data.get("submit")),
        )
        return jsonify({"purchase_order": po.to_dict()}), 201
    except PurchaseError as e:
        return _error(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
def list_purchase_orders_route():
    orders = purchase_service.list_purchase_orders(
        vendor_id=request.args.get("vendor_id"),
        status=request.args.get("status"),
    )
    return jsonify({"purchase_orders": [po.to_dict() for po in orders]}), 200


@purchases_bp.get("/<po_id>")
def get_purchase_order_route(po_id):
    po = purchase_service.get_purchase_order(po_id)
    if po is None:
        return jsonify({"error": "Purchase order not found"}), 404
    return jsonify({"purchase_order": po.to_dict()}), 200


@purchases_bp.post("/<po_id>/submit")
def submit_purchase_order_route(po_id):
    try:
        po = purchase_service.submit_purchase_order(po_id)
        return jsonify({"purchase_order": po.to_dict()}), 200
    except PurchaseError as e:
        return _error(e)


@purchases_bp.post("/<po_id>/cancel")
def cancel_purchase_order_route(po_id):
    try:
        po = purchase_service.cancel_purchase_order(po_id)
        return jsonify({"purchase_order": po.to_dict()}), 200
    except PurchaseError as e:
        return _error(e)


@purchases_bp.post("/<po_id>/receive")
def receive_purchase_order_route(po_id):
    """Receive a PENDING order: stock in, costs updated, PURCHASE recorded."""
    try:
        po, tx = purchase_service.receive_purchase_order(po_id)
        return jsonify({"purchase_order": po.to_dict(), "transaction": tx.to_dict()}), 200
    except PurchaseError as e:
        return _error(e)
    except PersistenceFailure as e:
        current_app.logger.error("Receiving %s failed: %s", po_id, e)
        return jsonify({"error": "Could not save, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for back-office postings; parses input and returns JSON responses.

"""
Finance API Routes

Expenses, loans, account transfers, customer and vendor payments, voids and
the transaction journal. Every posting moves its account and party balances
in the same DB transaction as the record itself.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import finance_service
from ..services.document_store import PersistenceFailure
from ..services.finance_service import FinanceError


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _amount(data: dict):
    value = data.get("amount_cents")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _posting(action, label: str):
    """Run a posting and translate service errors."""
    try:
        tx = action()
        return jsonify({"transaction": tx.to_dict()}), 201
    except FinanceError as e:
        status = 404 if "not found" in str(e) else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except PersistenceFailure as e:
        current_app.logger.error("%s failed: %s", label, e)
        return jsonify({"error": "Could not save, try again"}), 503
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record %s", label)
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/expenses")
def record_expense_route():
    """
    Record an expense or loan given.

    Request body:
    {
        "amount_cents": 2500,
        "payment_method": "BANK",
        "account_id": "bank-1",       (non-cash methods only; CASH uses the drawer)
        "description": "Tea and snacks",
        "loan": false,
        "business_date": "2026-02-01" (optional)
    }
    """
    data = _json()
    amount = _amount(data)
    if amount is None:
        return jsonify({"error": "amount_cents must be an integer"}), 400
    return _posting(lambda: finance_service.record_expense(
        amount,
        payment_method=data.get("payment_method", "CASH"),
        account_id=data.get("account_id"),
        description=data.get("description"),
        branch_id=data.get("branch_id"),
        business_date=data.get("business_date"),
        loan=bool(data.get("loan")),
        cheque_number=data.get("cheque_number"),
        cheque_date=data.get("cheque_date"),
    ), "expense")


@finance_bp.post("/transfers")
def record_transfer_route():
    """Request body: {"amount_cents", "source_account_id", "destination_account_id", "description"}"""
    data = _json()
    amount = _amount(data)
    if amount is None:
        return jsonify({"error": "amount_cents must be an integer"}), 400
    return _posting(lambda: finance_service.record_transfer(
        amount,
        data.get("source_account_id"),
        data.get("destination_account_id"),
        description=data.get("description"),
        branch_id=data.get("branch_id"),
        business_date=data.get("business_date"),
    ), "transfer")


@finance_bp.post("/customer-payments")
def record_customer_payment_route():
    """
    Customer pays down credit.

    Request body:
    {
        "customer_id": "CUS-...",
        "amount_cents": 1500,
        "payment_method": "CASH",
        "account_id": null,
        "parent_transaction_id": "TX-..."  (optional: settle this invoice)
    }
    """
    data = _json()
    amount = _amount(data)
    if amount is None:
        return jsonify({"error": "amount_cents must be an integer"}), 400
    return _posting(lambda: finance_service.record_customer_payment(
        data.get("customer_id"),
        amount,
        payment_method=data.get("payment_method", "CASH"),
        account_id=data.get("account_id"),
        parent_transaction_id=data.get("parent_transaction_id"),
        description=data.get("description"),
        branch_id=data.get("branch_id"),
        cheque_number=data.get("cheque_number"),
        cheque_date=data.get("cheque_date"),
    ), "customer payment")


@finance_bp.post("/vendor-payments")
def record_vendor_payment_route():
    """Request body: {"vendor_id", "amount_cents", "payment_method", "account_id"}"""
    data = _json()
    amount = _amount(data)
    if amount is None:
        return jsonify({"error": "amount_cents must be an integer"}), 400
    return _posting(lambda: finance_service.record_vendor_payment(
        data.get("vendor_id"),
        amount,
        payment_method=data.get("payment_method", "CASH"),
        account_id=data.get("account_id"),
        description=data.get("description"),
        branch_id=data.get("branch_id"),
        cheque_number=data.get("cheque_number"),
        cheque_date=data.get("cheque_date"),
    ), "vendor payment")


@finance_bp.post("/transactions/<tx_id>/void")
def void_transaction_route(tx_id):
    """Request body: {"reason": "Entered twice"}"""
    reason = _json().get("reason")
    return _posting(lambda: finance_service.void_transaction(tx_id, reason), "void")


@finance_bp.get("/transactions")
def list_transactions_route():
    """
    Transaction journal.

    Query params: branch_id, type, status, start_date, end_date, limit
    """
    try:
        txs = finance_service.list_transactions(
            branch_id=request.args.get("branch_id"),
            tx_type=request.args.get("type"),
            status=request.args.get("status"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=request.args.get("limit", 200, type=int),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"transactions": [finance_service.describe_transaction(tx, include_items=False) for tx in txs]}), 200


@finance_bp.get("/transactions/<tx_id>")
def get_transaction_route(tx_id):
    try:
        tx = finance_service.get_transaction(tx_id)
    except FinanceError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"transaction": finance_service.describe_transaction(tx)}), 200

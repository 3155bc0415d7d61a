# Overview: Flask API routes for POS terminal sessions; parses input and returns JSON responses.

# backend/ledgerpos/routes/pos.py
"""
POS Terminal API Routes

WHY: A terminal drives its cart through small commands. Every command
returns the full session state so the UI re-renders from one source.

DESIGN:
- One in-memory PosSession per terminal id (services.terminal_service)
- Cart commands never touch the database, except scan/add which read the product
- Checkout failures are 422 with {"error", "reason"}; store failures are 503
- Drafts are written in the background by the terminal's autosave coordinator
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import quotation_service, settlement_service
from ..services.document_store import PersistenceFailure
from ..services.identifier_service import lookup_product
from ..services.pos_session import PosSessionError
from ..services.quotation_service import QuotationError
from ..services.settlement_service import SettlementError
from ..services.terminal_service import terminals


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _int_field(data: dict, key: str, default=None) -> int:
    value = data.get(key, default)
    if value is None:
        raise ValueError(f"{key} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer number of cents")
    return value


def _session(terminal_id: str):
    branch_id = request.args.get("branch_id") or _json().get("branch_id")
    return terminals.get(terminal_id, branch_id=branch_id)


def _state(terminal_id: str, session, status: int = 200, **extra):
    body = {"session": session.to_dict()}
    autosaver = terminals.autosaver(terminal_id)
    if autosaver:
        body["autosave"] = autosaver.status()
    body.update(extra)
    return jsonify(body), status


def _command(terminal_id: str, action):
    """Run a cart command and answer with the session state."""
    session = _session(terminal_id)
    try:
        action(session)
    except (PosSessionError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    return _state(terminal_id, session)


# =============================================================================
# SESSION STATE
# =============================================================================

@pos_bp.get("/<terminal_id>")
def get_session_route(terminal_id):
    """Current cart, totals, lifecycle state and autosave status."""
    return _state(terminal_id, _session(terminal_id))


@pos_bp.get("/drafts")
def list_drafts_route():
    """DRAFT sales for a branch (or all branches), newest first."""
    branch_id = request.args.get("branch_id")
    drafts = settlement_service.list_drafts(branch_id)
    return jsonify({"drafts": [tx.to_dict() for tx in drafts]}), 200


# =============================================================================
# CART COMMANDS
# =============================================================================

@pos_bp.post("/<terminal_id>/scan")
def scan_route(terminal_id):
    """
    Add one unit by scanned code (product id or SKU).

    Request body: {"code": "8901234567890"}
    """
    code = (_json().get("code") or "").strip()
    if not code:
        return jsonify({"error": "code is required"}), 400
    product = lookup_product(code)
    if product is None:
        return jsonify({"error": "Product not found", "code": code}), 404
    return _command(terminal_id, lambda s: s.add_line(product))


@pos_bp.post("/<terminal_id>/lines")
def add_line_route(terminal_id):
    """Request body: {"product_id": "PRD-..."}"""
    product_id = _json().get("product_id")
    product = lookup_product(product_id) if product_id else None
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return _command(terminal_id, lambda s: s.add_line(product))


@pos_bp.patch("/<terminal_id>/lines/<product_id>")
def update_line_route(terminal_id, product_id):
    """
    Edit one line.

    Request body (any of):
    {
        "quantity": 3,
        "price_cents": 1250,
        "discount_value": "10",
        "discount_kind": "PERCENT"
    }
    """
    data = _json()

    def _apply(session):
        if "price_cents" in data:
            session.set_line_price(product_id, _int_field(data, "price_cents"))
        if "discount_value" in data:
            session.set_line_discount(product_id, data["discount_value"], data.get("discount_kind", "AMOUNT"))
        if "quantity" in data:
            session.set_quantity(product_id, _int_field(data, "quantity"))

    return _command(terminal_id, _apply)


@pos_bp.delete("/<terminal_id>/lines/<product_id>")
def remove_line_route(terminal_id, product_id):
    return _command(terminal_id, lambda s: s.set_quantity(product_id, 0))


@pos_bp.put("/<terminal_id>/global-discount")
def global_discount_route(terminal_id):
    """Request body: {"value": "5", "kind": "PERCENT"} or {"value": 500, "kind": "AMOUNT"}"""
    data = _json()
    return _command(terminal_id, lambda s: s.set_global_discount(data.get("value", 0), data.get("kind", "AMOUNT")))


# =============================================================================
# PAYMENT COMMANDS
# =============================================================================

@pos_bp.put("/<terminal_id>/payment")
def payment_route(terminal_id):
    """Request body: {"method": "BANK", "account_id": "acc-1"}"""
    data = _json()
    method = data.get("method")
    if not method:
        return jsonify({"error": "method is required"}), 400
    return _command(terminal_id, lambda s: s.select_payment_method(method, data.get("account_id")))


@pos_bp.put("/<terminal_id>/cheque")
def cheque_route(terminal_id):
    """Request body: {"number": "000123", "date": "2026-02-01"}"""
    data = _json()
    return _command(terminal_id, lambda s: s.set_cheque(data.get("number"), data.get("date")))


@pos_bp.put("/<terminal_id>/advance")
def advance_route(terminal_id):
    """Request body: {"enabled": true, "amount_cents": 2000}"""
    data = _json()

    def _apply(session):
        session.toggle_advance(bool(data.get("enabled")))
        if data.get("enabled") and "amount_cents" in data:
            session.set_advance_amount(_int_field(data, "amount_cents"))

    return _command(terminal_id, _apply)


@pos_bp.put("/<terminal_id>/tender")
def tender_route(terminal_id):
    """Request body: {"amount_cents": 5000}"""
    data = _json()
    return _command(terminal_id, lambda s: s.set_tendered(_int_field(data, "amount_cents")))


@pos_bp.put("/<terminal_id>/customer")
def customer_route(terminal_id):
    """Request body: {"customer_id": "CUS-..."} or {"customer_id": null}"""
    data = _json()
    return _command(terminal_id, lambda s: s.select_customer(data.get("customer_id")))


# =============================================================================
# CHECKOUT / LIFECYCLE
# =============================================================================

@pos_bp.post("/<terminal_id>/commit")
def commit_route(terminal_id):
    """
    Commit the cart as a sale.

    Request body: {"customer_id": "CUS-..."} (optional override)

    Returns:
    - 201: {"state": "COMMITTED", "transaction", "change_due_cents", "stock_warnings", "negative_lines"}
    - 422: {"error", "reason"}; the cart is kept
    - 503: the store rejected the write; the cart is kept
    """
    session = _session(terminal_id)
    try:
        result = settlement_service.commit(session, customer_id=_json().get("customer_id"))
    except PersistenceFailure as e:
        current_app.logger.error("Commit failed on terminal %s: %s", terminal_id, e)
        return jsonify({"error": "Could not save the sale, try again", "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500

    if not result.ok:
        return jsonify(result.to_dict()), 422

    terminals.committed(terminal_id)
    return jsonify(result.to_dict()), 201


@pos_bp.post("/<terminal_id>/abandon")
def abandon_route(terminal_id):
    """Discard the cart. Autosaved drafts stay in the store."""
    _session(terminal_id)
    terminals.abandon(terminal_id)
    return _state(terminal_id, terminals.get(terminal_id))


@pos_bp.post("/<terminal_id>/resume")
def resume_route(terminal_id):
    """
    Load a DRAFT sale into this terminal.

    Request body: {"transaction_id": "TX-..."}
    """
    tx_id = _json().get("transaction_id")
    if not tx_id:
        return jsonify({"error": "transaction_id is required"}), 400

    session = _session(terminal_id)
    try:
        skipped = settlement_service.resume_draft(session, tx_id)
    except SettlementError as e:
        status = 409 if "status" in e.details else 404
        return jsonify({"error": str(e), "details": e.details}), status

    autosaver = terminals.autosaver(terminal_id)
    if autosaver:
        autosaver.cancel()
    return _state(terminal_id, session, skipped_products=skipped)


@pos_bp.post("/<terminal_id>/autosave")
def flush_autosave_route(terminal_id):
    """Write the current cart as a draft now instead of waiting for the debounce."""
    _session(terminal_id)
    autosaver = terminals.autosaver(terminal_id)
    autosaver.cancel()
    written = autosaver.flush()
    return _state(terminal_id, terminals.get(terminal_id), written=written)


@pos_bp.post("/<terminal_id>/quotation")
def load_quotation_route(terminal_id):
    """
    Replace this terminal's cart with a quotation's lines under a new sale id.

    Request body: {"quotation_id": "QT-..."}
    """
    quotation_id = _json().get("quotation_id")
    if not quotation_id:
        return jsonify({"error": "quotation_id is required"}), 400

    session = _session(terminal_id)
    try:
        skipped = quotation_service.convert_to_session(session, quotation_id)
    except QuotationError as e:
        return jsonify({"error": str(e), "details": e.details}), 404

    autosaver = terminals.autosaver(terminal_id)
    if autosaver and session.lines:
        autosaver.schedule()
    return _state(terminal_id, session, skipped_products=skipped)

from flask import Blueprint, current_app, jsonify, request

from ledgerpos.services import aging_service, cash_session_service, ledger_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/aging/vendors")
def vendor_aging_report():
    try:
        report = aging_service.vendor_aging_report(as_of=request.args.get("as_of"))
        return jsonify(report), 200
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/aging/customers")
def customer_aging_report():
    try:
        report = aging_service.customer_aging_report(as_of=request.args.get("as_of"))
        return jsonify(report), 200
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/cash")
def cash_report():
    branch_id = request.args.get("branch_id") or current_app.config.get("DEFAULT_BRANCH_ID", "MAIN")
    business_date = request.args.get("business_date")

    try:
        flow = cash_session_service.expected_cash(branch_id, business_date)
        session = cash_session_service.get_day_session(branch_id, business_date)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({
        "branch_id": branch_id,
        "day_session": session.to_dict() if session else None,
        "cash_flow": flow.to_dict(),
        "accounts": ledger_service.account_totals(),
    }), 200


@reports_bp.get("/ledger-audit")
def ledger_audit_report():
    return jsonify(ledger_service.audit_balances()), 200


@reports_bp.post("/ledger-audit/rebuild")
def ledger_rebuild():
    """
    Rebuild running balances from history.

    Request body: {"customer_id": "..."} or {"vendor_id": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("customer_id"):
            customer = ledger_service.rebuild_customer_balance(data["customer_id"])
            return jsonify({"customer": customer.to_dict()}), 200
        if data.get("vendor_id"):
            vendor = ledger_service.rebuild_vendor_balance(data["vendor_id"])
            return jsonify({"vendor": vendor.to_dict()}), 200
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 404
    return jsonify({"error": "customer_id or vendor_id is required"}), 400

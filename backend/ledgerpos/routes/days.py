# Overview: Flask API routes for daily cash sessions; parses input and returns JSON responses.

"""
Day Session API Routes

WHY: Cash accountability per branch per business day. CASH sales are refused
until the day's float is opened; closing records the variance between the
operator's count and the expected drawer.

DESIGN:
- One session per (branch, business date); opening twice is a 409
- Once closed, a day is history and cannot be reopened
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import cash_session_service
from ..services.cash_session_service import DaySessionError


days_bp = Blueprint("days", __name__, url_prefix="/api/days")


def _branch(data: dict | None = None) -> str:
    data = data or {}
    return (
        data.get("branch_id")
        or request.args.get("branch_id")
        or current_app.config.get("DEFAULT_BRANCH_ID", "MAIN")
    )


@days_bp.post("/open")
def open_day_route():
    """
    Open the day's cash float.

    Request body:
    {
        "branch_id": "MAIN",            (optional)
        "opening_balance_cents": 50000,
        "business_date": "2026-02-01",  (optional, defaults to today)
        "notes": "..."                  (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    opening = data.get("opening_balance_cents")
    if isinstance(opening, bool) or not isinstance(opening, int):
        return jsonify({"error": "opening_balance_cents must be an integer"}), 400

    try:
        session = cash_session_service.open_day(
            _branch(data),
            opening,
            business_date=data.get("business_date"),
            notes=data.get("notes"),
        )
        return jsonify({"day_session": session.to_dict()}), 201
    except DaySessionError as e:
        status = 409 if "already" in str(e) else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to open day")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.post("/close")
def close_day_route():
    """
    Close the day against a physical count.

    Request body:
    {
        "branch_id": "MAIN",            (optional)
        "actual_closing_cents": 61250,
        "business_date": "2026-02-01",  (optional)
        "notes": "..."                  (optional)
    }

    Returns {"expected", "actual", "variance", "day_session"}.
    """
    data = request.get_json(silent=True) or {}
    actual = data.get("actual_closing_cents")
    if isinstance(actual, bool) or not isinstance(actual, int):
        return jsonify({"error": "actual_closing_cents must be an integer"}), 400

    try:
        result = cash_session_service.close_day(
            _branch(data),
            actual,
            business_date=data.get("business_date"),
            notes=data.get("notes"),
        )
        return jsonify({
            "expected": result["expected"],
            "actual": result["actual"],
            "variance": result["variance"],
            "day_session": result["session"].to_dict(),
        }), 200
    except DaySessionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to close day")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.get("/status")
def day_status_route():
    """
    Day session and running cash position for a branch/date.

    Query params: branch_id, business_date (both optional)
    """
    branch_id = _branch()
    business_date = request.args.get("business_date")
    try:
        session = cash_session_service.get_day_session(branch_id, business_date)
        flow = cash_session_service.expected_cash(branch_id, business_date)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "branch_id": branch_id,
        "is_open": bool(session and session.status == "OPEN"),
        "day_session": session.to_dict() if session else None,
        "cash_flow": flow.to_dict(),
    }), 200


@days_bp.get("")
def list_days_route():
    limit = request.args.get("limit", 30, type=int)
    sessions = cash_session_service.list_day_sessions(request.args.get("branch_id"), limit=limit)
    return jsonify({"day_sessions": [s.to_dict() for s in sessions]}), 200

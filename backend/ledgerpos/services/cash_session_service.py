"""
Cash Session Ledger

WHY: Cash accountability per branch per calendar day. The opening float plus
the day's cash movements gives the expected drawer balance; the operator's
physical count at close gives the variance.

DESIGN PRINCIPLES:
- One DaySession per (branch, business date); opening twice is rejected
- Closed sessions are immutable
- expected = opening + cash_in - cash_out, order-independent
- Only COMMITTED transactions move cash; drafts and voids never count
- Variance is a reported fact, never auto-corrected
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DaySession, Transaction
from ..models.cash import DAY_OPEN, DAY_CLOSED
from ..models.transactions import (
    TX_SALE,
    TX_PURCHASE,
    TX_EXPENSE,
    TX_CREDIT_PAYMENT,
    TX_TRANSFER,
    TX_LOAN_GIVEN,
    STATUS_COMMITTED,
    METHOD_CASH,
)
from .concurrency import lock_for_update
from .ledger_service import realized_inflow
from ledgerpos.time_utils import local_today, parse_business_date, utcnow


class DaySessionError(Exception):
    """Raised for day session operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class CashFlow:
    opening: int
    cash_in: int
    cash_out: int

    @property
    def expected_cash(self) -> int:
        return self.opening + self.cash_in - self.cash_out

    def to_dict(self) -> dict:
        return {
            "opening_cents": self.opening,
            "cash_in_cents": self.cash_in,
            "cash_out_cents": self.cash_out,
            "expected_cash_cents": self.expected_cash,
        }


# =============================================================================
# CASH FLOW (pure)
# =============================================================================

def cash_in_amount(tx, cash_account_id: str = "cash") -> int:
    """Cash a single record brings into the drawer."""
    if tx.status != STATUS_COMMITTED:
        return 0
    if tx.type == TX_TRANSFER:
        return tx.amount_cents if tx.destination_account_id == cash_account_id else 0
    if tx.payment_method != METHOD_CASH:
        return 0
    if tx.type == TX_SALE:
        return realized_inflow(tx)
    if tx.type == TX_CREDIT_PAYMENT and not tx.vendor_id:
        return tx.amount_cents
    return 0


def cash_out_amount(tx, cash_account_id: str = "cash") -> int:
    """Cash a single record takes out of the drawer."""
    if tx.status != STATUS_COMMITTED:
        return 0
    if tx.type == TX_TRANSFER:
        return tx.amount_cents if tx.account_id == cash_account_id else 0
    if tx.payment_method != METHOD_CASH:
        return 0
    if tx.type in (TX_EXPENSE, TX_LOAN_GIVEN, TX_PURCHASE):
        return tx.amount_cents
    if tx.type == TX_CREDIT_PAYMENT and tx.vendor_id:
        return tx.amount_cents
    return 0


def compute_cash_flow(opening_balance: int, transactions: Iterable, cash_account_id: str = "cash") -> CashFlow:
    """Sum a day's cash movements on top of the opening float."""
    cash_in = 0
    cash_out = 0
    for tx in transactions:
        cash_in += cash_in_amount(tx, cash_account_id)
        cash_out += cash_out_amount(tx, cash_account_id)
    return CashFlow(opening=int(opening_balance or 0), cash_in=cash_in, cash_out=cash_out)


# =============================================================================
# DAY SESSIONS
# =============================================================================

def _resolve_date(business_date) -> date:
    return parse_business_date(business_date) or local_today()


def get_day_session(branch_id: str, business_date=None) -> DaySession | None:
    return db.session.query(DaySession).filter_by(
        branch_id=branch_id,
        business_date=_resolve_date(business_date),
    ).first()


def is_day_open(branch_id: str, business_date=None) -> bool:
    session = get_day_session(branch_id, business_date)
    return session is not None and session.status == DAY_OPEN


def list_day_sessions(branch_id: str | None = None, limit: int = 30) -> list[DaySession]:
    query = db.session.query(DaySession)
    if branch_id:
        query = query.filter_by(branch_id=branch_id)
    return query.order_by(DaySession.business_date.desc()).limit(limit).all()


def day_transactions(branch_id: str, business_date=None) -> list[Transaction]:
    """COMMITTED records for a branch on a business date."""
    return db.session.query(Transaction).filter_by(
        branch_id=branch_id,
        business_date=_resolve_date(business_date),
        status=STATUS_COMMITTED,
    ).all()


def expected_cash(branch_id: str, business_date=None) -> CashFlow:
    """
    Cash flow for a branch/date from its day session and committed records.

    A missing day session counts as an opening float of zero.
    """
    business_date = _resolve_date(business_date)
    session = get_day_session(branch_id, business_date)
    opening = session.opening_balance_cents if session else 0
    return compute_cash_flow(
        opening,
        day_transactions(branch_id, business_date),
        current_app.config.get("CASH_ACCOUNT_ID", "cash"),
    )


def open_day(
    branch_id: str,
    opening_balance_cents: int,
    business_date=None,
    notes: str | None = None,
) -> DaySession:
    """
    Record the opening float for a branch's business day.

    Raises:
        DaySessionError: a session already exists for this branch and date,
            or the opening balance is negative
    """
    business_date = _resolve_date(business_date)
    if opening_balance_cents is None or opening_balance_cents < 0:
        raise DaySessionError("Opening balance cannot be negative")

    if get_day_session(branch_id, business_date):
        raise DaySessionError(
            "Day already opened for this branch",
            details={"branch_id": branch_id, "business_date": business_date.isoformat()},
        )

    session = DaySession(
        id=DaySession.make_id(branch_id, business_date),
        branch_id=branch_id,
        business_date=business_date,
        status=DAY_OPEN,
        opening_balance_cents=int(opening_balance_cents),
        notes=notes,
    )
    db.session.add(session)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Another terminal opened the same day first
        db.session.rollback()
        raise DaySessionError(
            "Day already opened for this branch",
            details={"branch_id": branch_id, "business_date": business_date.isoformat()},
        ) from exc
    return session


def close_day(
    branch_id: str,
    actual_closing_cents: int,
    business_date=None,
    notes: str | None = None,
) -> dict:
    """
    Close a branch's business day against the operator's physical count.

    Returns:
        {"expected": int, "actual": int, "variance": int, "session": DaySession}
        variance = actual - expected

    Raises:
        DaySessionError: no open session, or the count is missing/negative
    """
    business_date = _resolve_date(business_date)
    if actual_closing_cents is None or actual_closing_cents < 0:
        raise DaySessionError("Actual closing count is required")

    session = lock_for_update(
        db.session.query(DaySession).filter_by(branch_id=branch_id, business_date=business_date)
    ).first()
    if not session:
        raise DaySessionError("No day session for this branch and date")
    if session.status != DAY_OPEN:
        raise DaySessionError("Day session already closed")

    flow = expected_cash(branch_id, business_date)
    actual = int(actual_closing_cents)

    session.expected_closing_cents = flow.expected_cash
    session.actual_closing_cents = actual
    session.variance_cents = actual - flow.expected_cash
    session.status = DAY_CLOSED
    session.closed_at = utcnow()
    if notes:
        session.notes = notes
    db.session.commit()

    return {
        "expected": flow.expected_cash,
        "actual": actual,
        "variance": session.variance_cents,
        "session": session,
    }

from __future__ import annotations

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


DAY_OPEN = "OPEN"
DAY_CLOSED = "CLOSED"


class DaySession(db.Model):
    """
    Daily cash float for one branch.

    WHY: Cash accountability per branch per calendar day. A branch cannot take
    CASH sales until the day's float is opened.

    LIFECYCLE:
    - OPEN: float recorded, drawer in use
    - CLOSED: physical count entered, variance recorded

    IMMUTABLE: Once closed, the row is history and cannot be reopened.
    """
    __tablename__ = "day_sessions"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "business_date", name="uq_day_sessions_branch_date"),
    )

    id = db.Column(db.String(96), primary_key=True)
    branch_id = db.Column(db.String(64), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=DAY_OPEN, index=True)  # OPEN, CLOSED

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    expected_closing_cents = db.Column(db.Integer, nullable=True)  # set on close
    actual_closing_cents = db.Column(db.Integer, nullable=True)  # operator count, set on close
    variance_cents = db.Column(db.Integer, nullable=True)  # actual - expected

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    @staticmethod
    def make_id(branch_id: str, business_date) -> str:
        return f"{business_date.isoformat()}{branch_id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "business_date": self.business_date.isoformat(),
            "status": self.status,
            "opening_balance_cents": self.opening_balance_cents,
            "expected_closing_cents": self.expected_closing_cents,
            "actual_closing_cents": self.actual_closing_cents,
            "variance_cents": self.variance_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "notes": self.notes,
        }


class Account(db.Model):
    """Cash drawer or bank account with a running balance."""
    __tablename__ = "accounts"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    account_number = db.Column(db.String(64), nullable=True)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "account_number": self.account_number,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
        }

"""
Aging Allocator and receivable/payable aging reports

WHY: Party balances are running totals with no per-invoice settlement
tracking. Aging answers "how old is what they owe" by assuming the oldest
credit was settled first, so the outstanding balance is attributed to the
most recent credit events.

DESIGN PRINCIPLES:
- allocate_aging is pure and independent of the running balance maintenance,
  so the projection can always be audited against it
- Buckets always sum to the balance being aged (no leakage, no double count)
- Balance not explained by history is aged as oldest (90+)
- Only COMMITTED records are credit events; drafts and voids never count
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Vendor, Transaction
from ..models.transactions import (
    TX_SALE,
    TX_PURCHASE,
    STATUS_COMMITTED,
    METHOD_CREDIT,
)
from .ledger_service import sale_credit_charge
from ledgerpos.time_utils import days_between, local_today, parse_business_date


BUCKET_LABELS = ["0-30", "31-60", "61-90", "90+"]


@dataclass(frozen=True)
class CreditEvent:
    """A dated amount that increased a party's balance."""
    occurred_on: date
    amount_cents: int
    reference: str | None = None


@dataclass
class AgingBuckets:
    current: int = 0  # 0-30 days
    days_31_60: int = 0
    days_61_90: int = 0
    over_90: int = 0

    @property
    def total(self) -> int:
        return self.current + self.days_31_60 + self.days_61_90 + self.over_90

    def add(self, age_days: int, amount: int) -> None:
        # Future-dated events (negative age) are current
        if age_days <= 30:
            self.current += amount
        elif age_days <= 60:
            self.days_31_60 += amount
        elif age_days <= 90:
            self.days_61_90 += amount
        else:
            self.over_90 += amount

    def as_list(self) -> list[int]:
        return [self.current, self.days_31_60, self.days_61_90, self.over_90]

    def to_dict(self) -> dict:
        return dict(zip(BUCKET_LABELS, self.as_list()))


def allocate_aging(total_balance: int, credit_events: Iterable[CreditEvent], as_of: date) -> AgingBuckets:
    """
    Distribute total_balance over credit events, newest first.

    Each event absorbs min(remaining, event amount) into the bucket for its
    age at as_of. Anything left once history is exhausted goes to 90+.
    A negative balance (money held on account) is current: it lands whole
    in 0-30, so the buckets still sum to total_balance.
    """
    buckets = AgingBuckets()
    remaining = int(total_balance or 0)
    if remaining < 0:
        buckets.current = remaining
        return buckets
    if remaining == 0:
        return buckets

    ordered = sorted(credit_events, key=lambda e: e.occurred_on, reverse=True)
    for event in ordered:
        if remaining <= 0:
            break
        applied = min(remaining, max(0, int(event.amount_cents)))
        if applied == 0:
            continue
        buckets.add(days_between(event.occurred_on, as_of), applied)
        remaining -= applied

    if remaining > 0:
        buckets.over_90 += remaining

    return buckets


# =============================================================================
# REPORTS
# =============================================================================

def _committed_credit_query(tx_type: str):
    return db.session.query(Transaction).filter(
        Transaction.type == tx_type,
        Transaction.status == STATUS_COMMITTED,
    )


def vendor_credit_events(vendor_id: str) -> list[CreditEvent]:
    """CREDIT purchases from a vendor."""
    rows = _committed_credit_query(TX_PURCHASE).filter(
        Transaction.vendor_id == vendor_id,
        Transaction.payment_method == METHOD_CREDIT,
    ).all()
    return [CreditEvent(tx.business_date, tx.amount_cents, tx.id) for tx in rows]


def customer_credit_events(customer_id: str) -> list[CreditEvent]:
    """
    CREDIT and advance sales to a customer.

    The charged amount is the full amount for CREDIT and the balance due
    for an advance sale.
    """
    rows = _committed_credit_query(TX_SALE).filter(
        Transaction.customer_id == customer_id,
        or_(Transaction.payment_method == METHOD_CREDIT, Transaction.is_advance.is_(True)),
    ).all()
    events = []
    for tx in rows:
        events.append(CreditEvent(tx.business_date, sale_credit_charge(tx), tx.id))
    return events


def _summary(rows: list[dict]) -> list[dict]:
    totals = [0, 0, 0, 0]
    for row in rows:
        for i, label in enumerate(BUCKET_LABELS):
            totals[i] += row["buckets"][label]
    return [{"bucket": label, "amount_cents": totals[i]} for i, label in enumerate(BUCKET_LABELS)]


def vendor_aging_report(as_of: date | str | None = None) -> dict:
    """Per-vendor aging of outstanding payables, plus a bucket summary."""
    as_of = parse_business_date(as_of) or local_today()
    rows = []
    vendors = db.session.query(Vendor).filter(Vendor.total_balance_cents > 0).order_by(Vendor.name).all()
    for vendor in vendors:
        buckets = allocate_aging(vendor.total_balance_cents, vendor_credit_events(vendor.id), as_of)
        rows.append({
            "vendor_id": vendor.id,
            "name": vendor.name,
            "balance_cents": vendor.total_balance_cents,
            "buckets": buckets.to_dict(),
        })
    return {"as_of": as_of.isoformat(), "parties": rows, "summary": _summary(rows)}


def customer_aging_report(as_of: date | str | None = None) -> dict:
    """Per-customer aging of outstanding receivables, plus a bucket summary."""
    as_of = parse_business_date(as_of) or local_today()
    rows = []
    customers = db.session.query(Customer).filter(Customer.total_credit_cents > 0).order_by(Customer.name).all()
    for customer in customers:
        buckets = allocate_aging(customer.total_credit_cents, customer_credit_events(customer.id), as_of)
        rows.append({
            "customer_id": customer.id,
            "name": customer.name,
            "balance_cents": customer.total_credit_cents,
            "buckets": buckets.to_dict(),
        })
    return {"as_of": as_of.isoformat(), "parties": rows, "summary": _summary(rows)}

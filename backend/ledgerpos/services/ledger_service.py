# Overview: Service-layer operations for the ledger projection; running balances and audits.

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Account, Customer, Vendor, Transaction
from ..models.transactions import (
    TX_SALE,
    TX_PURCHASE,
    TX_CREDIT_PAYMENT,
    TX_EXPENSE,
    TX_LOAN_GIVEN,
    TX_TRANSFER,
    STATUS_COMMITTED,
    METHOD_CREDIT,
)
from .concurrency import lock_for_update
"""
Ledger projection invariants (authoritative)

- Customer.total_credit_cents, Vendor.total_balance_cents and
  Account.balance_cents are running balances, written in the same DB
  transaction as the Transaction that moves them.
- Reads never recompute them from history.
- rebuild_* recomputes a party balance from COMMITTED history; audit_balances
  reports drift without correcting it.
- Adjusters lock the row and never commit; the caller owns the unit of work.
"""


logger = logging.getLogger(__name__)


# =============================================================================
# EFFECT RULES
# =============================================================================

def sale_credit_charge(tx: Transaction) -> int:
    """
    Credit a sale granted its customer when it was committed.

    Full amount on CREDIT; for an advance sale, the part not paid at the
    till (later settlements are excluded).
    """
    if tx.payment_method == METHOD_CREDIT and not tx.is_advance:
        return tx.amount_cents
    if tx.is_advance:
        return tx.amount_cents - ((tx.paid_amount_cents or 0) - (tx.settled_cents or 0))
    return 0


def customer_charge(tx: Transaction) -> int:
    """
    Change a committed record makes to its customer's credit balance.

    SALE: full amount on CREDIT, else the unpaid balance of an advance sale.
    CREDIT_PAYMENT from a customer: reduces the balance by the amount.
    """
    if not tx.customer_id:
        return 0
    if tx.type == TX_SALE:
        return sale_credit_charge(tx)
    if tx.type == TX_CREDIT_PAYMENT:
        return -tx.amount_cents
    return 0


def vendor_charge(tx: Transaction) -> int:
    """Change a committed record makes to its vendor's payable balance."""
    if not tx.vendor_id:
        return 0
    if tx.type == TX_PURCHASE and tx.payment_method == METHOD_CREDIT:
        return tx.amount_cents
    if tx.type == TX_CREDIT_PAYMENT:
        return -tx.amount_cents
    return 0


def realized_inflow(tx: Transaction) -> int:
    """Money received at the till for a sale: paid amount, or the full amount unless CREDIT."""
    paid = (tx.paid_amount_cents or 0) - (tx.settled_cents or 0)
    if paid:
        return paid
    return tx.amount_cents if tx.payment_method != METHOD_CREDIT else 0


def account_effects(tx: Transaction) -> list[tuple[str, int]]:
    """
    (account_id, delta) pairs a committed record applies to account balances.

    Sales and customer payments are inflows; expenses, loans, paid purchases
    and vendor payments are outflows; transfers move money between accounts.
    """
    if tx.type == TX_TRANSFER:
        return [(tx.account_id, -tx.amount_cents), (tx.destination_account_id, tx.amount_cents)]
    if not tx.account_id:
        return []
    if tx.type == TX_SALE:
        return [(tx.account_id, realized_inflow(tx))]
    if tx.type == TX_CREDIT_PAYMENT:
        return [(tx.account_id, -tx.amount_cents if tx.vendor_id else tx.amount_cents)]
    if tx.type == TX_PURCHASE and tx.payment_method == METHOD_CREDIT:
        return []
    if tx.type in (TX_EXPENSE, TX_LOAN_GIVEN, TX_PURCHASE):
        return [(tx.account_id, -tx.amount_cents)]
    return []


def apply_effects(tx: Transaction, sign: int = 1) -> None:
    """Apply (sign=1) or reverse (sign=-1) a record's party and account effects."""
    adjust_customer_credit(tx.customer_id, sign * customer_charge(tx))
    adjust_vendor_balance(tx.vendor_id, sign * vendor_charge(tx))
    for account_id, delta in account_effects(tx):
        adjust_account(account_id, sign * delta)


# =============================================================================
# ADJUSTERS (no commit)
# =============================================================================

def adjust_account(account_id: str | None, delta_cents: int) -> Account | None:
    """
    Move an account balance by delta_cents under a row lock.

    The cash drawer account is created on first use; any other unknown
    account is logged and skipped.
    """
    if not account_id or delta_cents == 0:
        return None
    account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
    if account is None:
        if account_id != current_app.config.get("CASH_ACCOUNT_ID", "cash"):
            logger.warning("Account %s not found; balance change of %d skipped", account_id, delta_cents)
            return None
        account = Account(id=account_id, name="Cash Drawer", balance_cents=0)
        db.session.add(account)
    account.balance_cents = (account.balance_cents or 0) + delta_cents
    return account


def adjust_customer_credit(customer_id: str | None, delta_cents: int) -> Customer | None:
    if not customer_id or delta_cents == 0:
        return None
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is None:
        logger.warning("Customer %s not found; credit change of %d skipped", customer_id, delta_cents)
        return None
    customer.total_credit_cents = (customer.total_credit_cents or 0) + delta_cents
    return customer


def adjust_vendor_balance(vendor_id: str | None, delta_cents: int) -> Vendor | None:
    if not vendor_id or delta_cents == 0:
        return None
    vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).first()
    if vendor is None:
        logger.warning("Vendor %s not found; balance change of %d skipped", vendor_id, delta_cents)
        return None
    vendor.total_balance_cents = (vendor.total_balance_cents or 0) + delta_cents
    return vendor


# =============================================================================
# REBUILD / AUDIT
# =============================================================================

def _committed(**filters):
    return db.session.query(Transaction).filter_by(status=STATUS_COMMITTED, **filters)


def customer_balance_from_history(customer_id: str) -> int:
    return sum(customer_charge(tx) for tx in _committed(customer_id=customer_id).all())


def vendor_balance_from_history(vendor_id: str) -> int:
    return sum(vendor_charge(tx) for tx in _committed(vendor_id=vendor_id).all())


def rebuild_customer_balance(customer_id: str) -> Customer:
    """Overwrite a customer's running credit with the value derived from history."""
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if not customer:
        raise ValueError("Customer not found")
    rebuilt = customer_balance_from_history(customer_id)
    if rebuilt != customer.total_credit_cents:
        logger.info("Customer %s credit rebuilt: %d -> %d", customer_id, customer.total_credit_cents, rebuilt)
    customer.total_credit_cents = rebuilt
    db.session.commit()
    return customer


def rebuild_vendor_balance(vendor_id: str) -> Vendor:
    """Overwrite a vendor's running balance with the value derived from history."""
    vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).first()
    if not vendor:
        raise ValueError("Vendor not found")
    rebuilt = vendor_balance_from_history(vendor_id)
    if rebuilt != vendor.total_balance_cents:
        logger.info("Vendor %s balance rebuilt: %d -> %d", vendor_id, vendor.total_balance_cents, rebuilt)
    vendor.total_balance_cents = rebuilt
    db.session.commit()
    return vendor


def audit_balances() -> dict:
    """
    Compare every running party balance with its history.

    Returns {"customers": [...], "vendors": [...], "drift_count": n}. Each
    entry carries the running value, the history value and the drift.
    Nothing is corrected.
    """
    result = {"customers": [], "vendors": []}

    for customer in db.session.query(Customer).order_by(Customer.id).all():
        derived = customer_balance_from_history(customer.id)
        drift = (customer.total_credit_cents or 0) - derived
        result["customers"].append({
            "customer_id": customer.id,
            "running_cents": customer.total_credit_cents,
            "history_cents": derived,
            "drift_cents": drift,
        })
        if drift:
            logger.warning("Customer %s credit drift %d", customer.id, drift)

    for vendor in db.session.query(Vendor).order_by(Vendor.id).all():
        derived = vendor_balance_from_history(vendor.id)
        drift = (vendor.total_balance_cents or 0) - derived
        result["vendors"].append({
            "vendor_id": vendor.id,
            "running_cents": vendor.total_balance_cents,
            "history_cents": derived,
            "drift_cents": drift,
        })
        if drift:
            logger.warning("Vendor %s balance drift %d", vendor.id, drift)

    result["drift_count"] = sum(
        1 for row in result["customers"] + result["vendors"] if row["drift_cents"]
    )
    return result


def account_totals() -> dict:
    """Sum of all account balances, split into cash drawer and others."""
    cash_id = current_app.config.get("CASH_ACCOUNT_ID", "cash")
    cash = db.session.query(func.coalesce(func.sum(Account.balance_cents), 0)).filter(Account.id == cash_id).scalar()
    other = db.session.query(func.coalesce(func.sum(Account.balance_cents), 0)).filter(Account.id != cash_id).scalar()
    return {"cash_cents": int(cash), "bank_cents": int(other)}

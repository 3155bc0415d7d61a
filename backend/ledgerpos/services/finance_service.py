"""
Back-office postings

WHY: Money moves outside the till too: expenses and loans paid from the
drawer or bank, transfers between accounts, customers settling credit and
payments to vendors. Each posting is one COMMITTED Transaction written in
the same DB transaction as the balances it moves.

DESIGN PRINCIPLES:
- One record per posting, keyed by a prefixed id (EX-, TR-, CP-, PV-)
- Running balances move with the record (ledger_service.apply_effects)
- Voiding reverses exactly what the record applied and keeps it as VOID
- Amounts must be positive; zero or negative postings are rejected
"""

from __future__ import annotations

import logging
from datetime import datetime, time

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Account, Customer, Product, Transaction, Vendor
from ..models.transactions import (
    TX_SALE,
    TX_PURCHASE,
    TX_EXPENSE,
    TX_CREDIT_PAYMENT,
    TX_TRANSFER,
    TX_LOAN_GIVEN,
    STATUS_DRAFT,
    STATUS_COMMITTED,
    STATUS_VOID,
    METHOD_BANK,
    METHOD_CASH,
    METHOD_CREDIT,
    METHOD_CHEQUE,
    VALID_PAYMENT_METHODS,
)
from . import document_store, ledger_service
from .concurrency import lock_for_update
from .document_store import PersistenceFailure
from .identifier_service import (
    new_record_id,
    PREFIX_EXPENSE,
    PREFIX_TRANSFER,
    PREFIX_CUSTOMER_PAYMENT,
    PREFIX_VENDOR_PAYMENT,
)
from .settlement_service import fixed_margin_cost
from ledgerpos.time_utils import local_now, parse_business_date, utcnow


logger = logging.getLogger(__name__)


class FinanceError(Exception):
    """Raised for back-office posting errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# HELPERS
# =============================================================================

def _cash_account_id() -> str:
    return current_app.config.get("CASH_ACCOUNT_ID", "cash")


def _branch(branch_id: str | None) -> str:
    return branch_id or current_app.config.get("DEFAULT_BRANCH_ID", "MAIN")


def _require_amount(amount_cents) -> int:
    if amount_cents is None or int(amount_cents) <= 0:
        raise FinanceError("Amount must be positive")
    return int(amount_cents)


def _require_method(payment_method: str) -> str:
    if payment_method not in VALID_PAYMENT_METHODS:
        raise FinanceError(f"Invalid payment method: {payment_method}")
    return payment_method


def _known_account(account_id: str) -> str:
    if account_id != _cash_account_id() and db.session.get(Account, account_id) is None:
        raise FinanceError("Account not found", details={"account_id": account_id})
    return account_id


def _resolve_account(payment_method: str, account_id: str | None) -> str:
    """
    The account a posting moves.

    CASH always moves the drawer, so the cash ledger and the drawer account
    agree; every other method needs an explicit non-drawer account.
    """
    cash_id = _cash_account_id()
    if payment_method == METHOD_CASH:
        if account_id and account_id != cash_id:
            raise FinanceError("Cash postings must use the drawer account", details={"account_id": account_id})
        return cash_id
    if not account_id:
        raise FinanceError("account_id is required for non-cash payments")
    if account_id == cash_id:
        raise FinanceError("Non-cash postings cannot use the drawer account", details={"account_id": account_id})
    return _known_account(account_id)


def _business_time(business_date=None):
    """Now, or noon on an explicitly given business date."""
    day = parse_business_date(business_date)
    now = local_now()
    if day is None or day == now.date():
        return now
    return datetime.combine(day, time(12, 0))


def _post(tx_id: str, values: dict) -> Transaction:
    """Write a COMMITTED record and apply its effects in one unit of work."""
    when = values.pop("when")
    values.update({
        "status": STATUS_COMMITTED,
        "date": when,
        "business_date": when.date(),
    })
    tx = document_store.upsert(Transaction, tx_id, values, commit_now=False)
    ledger_service.apply_effects(tx)
    document_store.commit()
    logger.info("Posted %s %s amount=%d", tx.type, tx.id, tx.amount_cents)
    return tx


# =============================================================================
# POSTINGS
# =============================================================================

def record_expense(
    amount_cents: int,
    payment_method: str = METHOD_CASH,
    account_id: str | None = None,
    description: str | None = None,
    branch_id: str | None = None,
    business_date=None,
    loan: bool = False,
    cheque_number: str | None = None,
    cheque_date=None,
) -> Transaction:
    """
    Record an expense (or a loan given) paid from an account.

    Debits the paying account. loan=True records LOAN_GIVEN instead of
    EXPENSE; both count as cash out when paid in CASH.
    """
    amount = _require_amount(amount_cents)
    method = _require_method(payment_method)
    if method == METHOD_CHEQUE and not (cheque_number and cheque_date):
        raise FinanceError("Cheque number and date are required")

    return _post(new_record_id(PREFIX_EXPENSE), {
        "type": TX_LOAN_GIVEN if loan else TX_EXPENSE,
        "amount_cents": amount,
        "paid_amount_cents": amount,
        "payment_method": method,
        "account_id": _resolve_account(method, account_id),
        "description": description,
        "branch_id": _branch(branch_id),
        "cheque_number": cheque_number,
        "cheque_date": parse_business_date(cheque_date),
        "when": _business_time(business_date),
    })


def record_transfer(
    amount_cents: int,
    source_account_id: str,
    destination_account_id: str,
    description: str | None = None,
    branch_id: str | None = None,
    business_date=None,
) -> Transaction:
    """Move money between two accounts (e.g. drawer to bank deposit)."""
    amount = _require_amount(amount_cents)
    if not source_account_id or not destination_account_id:
        raise FinanceError("Source and destination accounts are required")
    if source_account_id == destination_account_id:
        raise FinanceError("Source and destination must differ")

    source = _known_account(source_account_id)
    destination = _known_account(destination_account_id)
    method = METHOD_CASH if _cash_account_id() in (source, destination) else METHOD_BANK

    return _post(new_record_id(PREFIX_TRANSFER), {
        "type": TX_TRANSFER,
        "amount_cents": amount,
        "paid_amount_cents": amount,
        "payment_method": method,
        "account_id": source,
        "destination_account_id": destination,
        "description": description or f"Transfer {source} -> {destination}",
        "branch_id": _branch(branch_id),
        "when": _business_time(business_date),
    })


def record_customer_payment(
    customer_id: str,
    amount_cents: int,
    payment_method: str = METHOD_CASH,
    account_id: str | None = None,
    parent_transaction_id: str | None = None,
    description: str | None = None,
    branch_id: str | None = None,
    cheque_number: str | None = None,
    cheque_date=None,
) -> Transaction:
    """
    Customer pays down credit.

    Reduces the customer's running credit, credits the receiving account and,
    when parent_transaction_id names one of their sales, settles that
    invoice: paid += amount, balance_due -= amount. The payment may not
    exceed what is still due on that invoice.
    """
    amount = _require_amount(amount_cents)
    method = _require_method(payment_method)
    if method == METHOD_CREDIT:
        raise FinanceError("A credit payment cannot itself be on credit")
    if method == METHOD_CHEQUE and not (cheque_number and cheque_date):
        raise FinanceError("Cheque number and date are required")

    customer = db.session.get(Customer, customer_id) if customer_id else None
    if not customer:
        raise FinanceError("Customer not found", details={"customer_id": customer_id})

    parent = None
    if parent_transaction_id:
        parent = lock_for_update(db.session.query(Transaction).filter_by(id=parent_transaction_id)).first()
        if not parent or parent.type != TX_SALE or parent.status != STATUS_COMMITTED:
            raise FinanceError("Invoice not found", details={"transaction_id": parent_transaction_id})
        if parent.customer_id != customer_id:
            raise FinanceError("Invoice belongs to another customer")
        due = parent.balance_due_cents or 0
        if due <= 0:
            raise FinanceError("Invoice has nothing left to pay", details={"transaction_id": parent.id})
        if amount > due:
            raise FinanceError(
                "Payment exceeds the invoice balance",
                details={"transaction_id": parent.id, "balance_due_cents": due, "amount_cents": amount},
            )

    account = _resolve_account(method, account_id)
    if parent is not None:
        parent.paid_amount_cents = (parent.paid_amount_cents or 0) + amount
        parent.balance_due_cents = due - amount
        parent.settled_cents = (parent.settled_cents or 0) + amount

    return _post(new_record_id(PREFIX_CUSTOMER_PAYMENT), {
        "type": TX_CREDIT_PAYMENT,
        "amount_cents": amount,
        "paid_amount_cents": amount,
        "payment_method": method,
        "account_id": account,
        "customer_id": customer_id,
        "parent_transaction_id": parent_transaction_id,
        "description": description or f"Credit payment: {customer.name}",
        "branch_id": _branch(branch_id),
        "cheque_number": cheque_number,
        "cheque_date": parse_business_date(cheque_date),
        "when": local_now(),
    })


def record_vendor_payment(
    vendor_id: str,
    amount_cents: int,
    payment_method: str = METHOD_CASH,
    account_id: str | None = None,
    description: str | None = None,
    branch_id: str | None = None,
    cheque_number: str | None = None,
    cheque_date=None,
) -> Transaction:
    """Pay a vendor: reduces what we owe them and debits the paying account."""
    amount = _require_amount(amount_cents)
    method = _require_method(payment_method)
    if method == METHOD_CREDIT:
        raise FinanceError("A vendor payment cannot be on credit")
    if method == METHOD_CHEQUE and not (cheque_number and cheque_date):
        raise FinanceError("Cheque number and date are required")

    vendor = db.session.get(Vendor, vendor_id) if vendor_id else None
    if not vendor:
        raise FinanceError("Vendor not found", details={"vendor_id": vendor_id})

    return _post(new_record_id(PREFIX_VENDOR_PAYMENT), {
        "type": TX_CREDIT_PAYMENT,
        "amount_cents": amount,
        "paid_amount_cents": amount,
        "payment_method": method,
        "account_id": _resolve_account(method, account_id),
        "vendor_id": vendor_id,
        "description": description or f"Vendor payment: {vendor.name}",
        "branch_id": _branch(branch_id),
        "cheque_number": cheque_number,
        "cheque_date": parse_business_date(cheque_date),
        "when": local_now(),
    })


# =============================================================================
# VOID
# =============================================================================

def _restore_stock(tx: Transaction) -> None:
    for item in sorted(tx.items, key=lambda i: i.product_id):
        product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
        if product is None:
            logger.warning("Product %s missing while voiding %s; stock not restored", item.product_id, tx.id)
            continue
        if tx.type == TX_SALE:
            if product.category and product.category.is_fixed_margin:
                product.stock = (product.stock or 0) + fixed_margin_cost(product, item.price_cents * item.quantity)
            else:
                product.stock = (product.stock or 0) + item.quantity
        elif tx.type == TX_PURCHASE:
            product.stock = max(0, (product.stock or 0) - item.quantity)


def void_transaction(tx_id: str, reason: str) -> Transaction:
    """
    Void a record, reversing its effects.

    COMMITTED: restores stock (sales; received quantities for purchases),
    reverses party and account balances and, for an invoice-settling
    payment, the settlement on the invoice. DRAFT: marked VOID with no other
    change. The record itself is kept for audit.

    Raises:
        FinanceError: unknown id, already void, or no reason
    """
    if not reason or not reason.strip():
        raise FinanceError("A void reason is required")

    tx = lock_for_update(db.session.query(Transaction).filter_by(id=tx_id)).first()
    if not tx:
        raise FinanceError("Transaction not found", details={"transaction_id": tx_id})
    if tx.status == STATUS_VOID:
        raise FinanceError("Transaction already voided")

    if tx.status == STATUS_COMMITTED and tx.type == TX_SALE and tx.settled_cents:
        raise FinanceError(
            "Void the payments settling this invoice first",
            details={"settled_cents": tx.settled_cents},
        )
    if tx.status not in (STATUS_COMMITTED, STATUS_DRAFT):
        raise FinanceError(f"Cannot void transaction with status {tx.status}")

    try:
        if tx.status == STATUS_COMMITTED:
            _restore_stock(tx)
            ledger_service.apply_effects(tx, sign=-1)

            if tx.type == TX_CREDIT_PAYMENT and tx.parent_transaction_id:
                parent = lock_for_update(
                    db.session.query(Transaction).filter_by(id=tx.parent_transaction_id)
                ).first()
                if parent is not None:
                    parent.paid_amount_cents = (parent.paid_amount_cents or 0) - tx.amount_cents
                    parent.settled_cents = max(0, (parent.settled_cents or 0) - tx.amount_cents)
                    parent.balance_due_cents = max(0, parent.amount_cents - parent.paid_amount_cents)

        tx.status = STATUS_VOID
        tx.void_reason = reason.strip()
        tx.voided_at = utcnow()
        document_store.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure(f"Failed to void {tx_id}", details={"error": str(exc)}) from exc

    logger.info("Voided %s %s: %s", tx.type, tx.id, tx.void_reason)
    return tx


def list_transactions(
    branch_id: str | None = None,
    tx_type: str | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    limit: int = 200,
) -> list[Transaction]:
    """Records filtered by branch, type, status and business date range (inclusive)."""
    query = db.session.query(Transaction)
    if branch_id:
        query = query.filter(Transaction.branch_id == branch_id)
    if tx_type:
        query = query.filter(Transaction.type == tx_type)
    if status:
        query = query.filter(Transaction.status == status)
    start = parse_business_date(start_date)
    end = parse_business_date(end_date)
    if start:
        query = query.filter(Transaction.business_date >= start)
    if end:
        query = query.filter(Transaction.business_date <= end)
    return query.order_by(Transaction.date.desc()).limit(limit).all()


def describe_transaction(tx: Transaction, include_items: bool = True) -> dict:
    """Journal view of a record: party and product names alongside the ids."""
    data = tx.to_dict(include_items=include_items)
    data["party"] = document_store.label_for_party(tx.customer_id, tx.vendor_id)
    if include_items:
        for line in data["items"]:
            line["name"] = document_store.label_for_product(line["product_id"])
    return data


def get_transaction(tx_id: str) -> Transaction:
    tx = document_store.get(Transaction, tx_id)
    if tx is None:
        raise FinanceError("Transaction not found", {"transaction_id": tx_id})
    return tx

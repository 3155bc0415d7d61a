"""
Transaction Settlement

WHY: Turns a POS session into one committed, internally consistent sale.
A cart keeps one transaction id from its first line to checkout; draft
snapshots and the final commit are writes to that same record, so checkout
promotes the draft instead of creating a second record.

DESIGN PRINCIPLES:
- Local validation failures are returned as ValidationFailure, never raised,
  and leave the session untouched
- Commit is one DB transaction: stock, party balance, account balance and
  the transaction record succeed or fail together
- DRAFT -> COMMITTED is a guarded transition; a record that is no longer
  DRAFT is never overwritten (ALREADY_COMMITTED)
- Drafts have no side effects
- A failed commit write raises PersistenceFailure and is never retried here

STOCK POLICY:
Each product row is locked while its stock is decremented. Quantities are not
re-validated against stock at commit: oversell is allowed and reported on
the result as stock_warnings for reconciliation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Customer, Product, Transaction, TransactionItem
from ..models.transactions import (
    TX_SALE,
    STATUS_DRAFT,
    STATUS_COMMITTED,
    METHOD_BANK,
    METHOD_CARD,
    METHOD_CASH,
    METHOD_CHEQUE,
    METHOD_CREDIT,
)
from . import cash_session_service, document_store, ledger_service
from .concurrency import lock_for_update
from .document_store import PersistenceFailure
from .pos_session import (
    CartLine,
    PosSession,
    ValidationFailure,
    STATE_COMMITTED,
    UNRESOLVED_PARTY,
    DAY_NOT_OPEN,
    ALREADY_COMMITTED,
)
from .pricing_service import line_totals, percent_of
from ledgerpos.time_utils import local_now


logger = logging.getLogger(__name__)

ACCOUNT_METHODS = (METHOD_BANK, METHOD_CARD, METHOD_CHEQUE)


class SettlementError(Exception):
    """Raised for draft lookup/resume errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class CommitResult:
    ok: bool
    transaction: Transaction | None = None
    failure: ValidationFailure | None = None
    change_due_cents: int = 0
    stock_warnings: list[dict] = field(default_factory=list)
    negative_lines: list[str] = field(default_factory=list)

    @property
    def state(self) -> str | None:
        return STATE_COMMITTED if self.ok else None

    def to_dict(self) -> dict:
        if not self.ok:
            return self.failure.to_dict()
        return {
            "state": self.state,
            "transaction": self.transaction.to_dict(),
            "change_due_cents": self.change_due_cents,
            "stock_warnings": list(self.stock_warnings),
            "negative_lines": list(self.negative_lines),
        }


# =============================================================================
# HELPERS
# =============================================================================

def _fail(reason: str, message: str) -> CommitResult:
    return CommitResult(ok=False, failure=ValidationFailure(reason, message))


def receiving_account(payment_method: str | None, account_id: str | None) -> str | None:
    """Account that receives money paid now: the chosen account for BANK/CARD/CHEQUE, else the drawer."""
    if payment_method in ACCOUNT_METHODS and account_id:
        return account_id
    return current_app.config.get("CASH_ACCOUNT_ID", "cash")


def split_payment(amount: int, payment_method: str | None, is_advance: bool, advance_cents: int) -> tuple[int, int]:
    """
    (paid_amount, balance_due) for a sale.

    advance: paid = advance, rest is credit; CREDIT: nothing paid now;
    anything else: fully paid.
    """
    if is_advance:
        return advance_cents, amount - advance_cents
    if payment_method == METHOD_CREDIT:
        return 0, amount
    return amount, 0


def fixed_margin_cost(product: Product, gross_cents: int) -> int:
    """Cost value of a fixed-margin line: gross less the category margin."""
    margin = product.category.fixed_margin_percent if product.category else Decimal(4)
    return percent_of(gross_cents, Decimal(100) - Decimal(margin))


def line_cost_basis(product: Product | None, line: CartLine) -> int:
    if product is None:
        return 0
    if product.category and product.category.is_fixed_margin and not product.cost_cents:
        return fixed_margin_cost(product, line.price_cents * line.quantity)
    return (product.cost_cents or 0) * line.quantity


def _build_items(lines: list[CartLine]) -> list[TransactionItem]:
    items = []
    for position, line in enumerate(lines):
        _, discount = line_totals(line.price_cents, line.quantity, line.discount_kind, line.discount_value)
        items.append(TransactionItem(
            position=position,
            product_id=line.product_id,
            quantity=line.quantity,
            price_cents=line.price_cents,
            discount_kind=line.discount_kind,
            discount_value=line.discount_value,
            discount_cents=discount,
        ))
    return items


def _decrement_stock(line: CartLine) -> tuple[int, dict | None]:
    """
    Lock the product row and take the line out of stock.

    STANDARD lines floor stock at zero. FIXED_MARGIN lines deduct their cost
    value and may go negative. Returns (cost_basis, warning or None).
    """
    product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
    if product is None:
        logger.warning("Product %s missing at commit; stock not updated", line.product_id)
        return 0, {"product_id": line.product_id, "reason": "PRODUCT_NOT_FOUND"}

    cost_basis = line_cost_basis(product, line)
    warning = None
    if product.category and product.category.is_fixed_margin:
        deduct = fixed_margin_cost(product, line.price_cents * line.quantity)
        product.stock = (product.stock or 0) - deduct
        if product.stock < 0:
            warning = {"product_id": product.id, "reason": "NEGATIVE_BALANCE", "stock": product.stock}
    else:
        available = product.stock or 0
        if available < line.quantity:
            warning = {
                "product_id": product.id,
                "reason": "OVERSOLD",
                "requested": line.quantity,
                "available": available,
            }
        product.stock = max(0, available - line.quantity)

    if warning:
        logger.warning("Stock warning on commit: %s", warning)
    return cost_basis, warning


def _record_values(snapshot: dict, status: str, customer_id: str | None, date_value) -> dict:
    totals = snapshot["totals"]
    amount = totals.final_total
    paid, balance = split_payment(
        amount,
        snapshot["payment_method"],
        snapshot["is_advance"],
        snapshot["advance_amount_cents"],
    )
    return {
        "type": TX_SALE,
        "status": status,
        "amount_cents": amount,
        "paid_amount_cents": paid,
        "balance_due_cents": balance,
        "discount_cents": totals.total_discount,
        "global_discount_cents": totals.global_discount,
        "global_discount_kind": snapshot["global_discount_kind"],
        "global_discount_value": snapshot["global_discount_value"],
        "payment_method": snapshot["payment_method"],
        "is_advance": snapshot["is_advance"],
        "customer_id": customer_id,
        "cheque_number": snapshot["cheque_number"] if snapshot["payment_method"] == METHOD_CHEQUE else None,
        "cheque_date": snapshot["cheque_date"] if snapshot["payment_method"] == METHOD_CHEQUE else None,
        "description": f"Sale: {len(snapshot['lines'])} SKUs",
        "date": date_value,
        "business_date": date_value.date(),
        "branch_id": snapshot["branch_id"],
        "items": _build_items(snapshot["lines"]),
    }


# =============================================================================
# COMMIT
# =============================================================================

def commit(session: PosSession, customer_id: str | None = None) -> CommitResult:
    """
    Validate and commit a POS session as a COMMITTED sale.

    Args:
        session: terminal session; reset with a fresh id on success
        customer_id: overrides the session's selected customer

    Returns:
        CommitResult. ok=False carries a ValidationFailure and leaves the
        session unchanged.

    Raises:
        PersistenceFailure: the write was rejected; rolled back, session kept
    """
    failure = session.validate(customer_id)
    if failure:
        return CommitResult(ok=False, failure=failure)

    snapshot = session.snapshot()
    tx_id = snapshot["transaction_id"]
    customer_id = customer_id or snapshot["customer_id"]
    method = snapshot["payment_method"]
    totals = snapshot["totals"]

    if method == METHOD_CASH and not cash_session_service.is_day_open(snapshot["branch_id"]):
        return _fail(DAY_NOT_OPEN, "Open the day's cash float before taking cash sales")

    if customer_id and db.session.get(Customer, customer_id) is None:
        return _fail(UNRESOLVED_PARTY, "Customer not found")

    try:
        existing = lock_for_update(db.session.query(Transaction).filter_by(id=tx_id)).first()
        if existing is not None and existing.status != STATUS_DRAFT:
            db.session.rollback()
            return _fail(ALREADY_COMMITTED, "This sale has already been recorded")

        stock_warnings = []
        cost_basis = 0
        # Product rows are always locked in id order
        for line in sorted(snapshot["lines"], key=lambda l: l.product_id):
            line_cost, warning = _decrement_stock(line)
            cost_basis += line_cost
            if warning:
                stock_warnings.append(warning)

        values = _record_values(snapshot, STATUS_COMMITTED, customer_id, local_now())
        values["cost_basis_cents"] = cost_basis
        values["change_due_cents"] = session.change_due(totals)
        account_id = receiving_account(method, snapshot["account_id"])
        values["account_id"] = account_id if values["paid_amount_cents"] else None

        tx = document_store.upsert(Transaction, tx_id, values, merge=False, commit_now=False)

        ledger_service.apply_effects(tx)

        document_store.commit()
    except PersistenceFailure as exc:
        if isinstance(exc.__cause__, StaleDataError):
            return _fail(ALREADY_COMMITTED, "This sale has already been recorded")
        logger.error("Commit of %s failed: %s", tx_id, exc)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Commit of %s failed: %s", tx_id, exc)
        raise PersistenceFailure(f"Failed to commit sale {tx_id}", details={"error": str(exc)}) from exc

    logger.info("Committed sale %s amount=%d method=%s", tx_id, tx.amount_cents, method)
    session.reset()

    return CommitResult(
        ok=True,
        transaction=tx,
        change_due_cents=tx.change_due_cents,
        stock_warnings=stock_warnings,
        negative_lines=list(totals.negative_lines),
    )


# =============================================================================
# DRAFTS
# =============================================================================

def save_draft(snapshot: dict) -> Transaction | None:
    """
    Upsert a DRAFT snapshot under the cart's transaction id.

    No stock, balance or account effects. Returns None without writing when
    the cart is empty or the record under this id is no longer a DRAFT.

    Raises:
        PersistenceFailure: the write was rejected
    """
    tx_id = snapshot["transaction_id"]
    if not snapshot["lines"] or not tx_id:
        return None

    existing = db.session.get(Transaction, tx_id)
    if existing is not None and existing.status != STATUS_DRAFT:
        logger.info("Skipping draft write for %s: record is %s", tx_id, existing.status)
        return None

    date_value = existing.date if existing is not None else local_now()
    values = _record_values(snapshot, STATUS_DRAFT, snapshot["customer_id"], date_value)
    values["account_id"] = snapshot["account_id"]
    values["cost_basis_cents"] = sum(
        line_cost_basis(db.session.get(Product, line.product_id), line) for line in snapshot["lines"]
    )

    try:
        tx = document_store.upsert(Transaction, tx_id, values, merge=False)
    except PersistenceFailure as exc:
        if isinstance(exc.__cause__, StaleDataError):
            return None
        raise
    return tx


def list_drafts(branch_id: str | None = None) -> list[Transaction]:
    """DRAFT sales, newest first."""
    filters = {"branch_id": branch_id} if branch_id else {}
    return document_store.read(Transaction, order_by=Transaction.date.desc(), type=TX_SALE, status=STATUS_DRAFT, **filters)


def load_cart_lines(entries) -> tuple[list[CartLine], list[str]]:
    """
    Rebuild cart lines from stored (product_id, quantity, price_cents,
    discount_kind, discount_value) entries against current stock.

    Quantities are capped at what is in stock now. Products that no longer
    exist or are sold out are left out and returned as skipped ids.
    """
    lines = []
    skipped = []
    for product_id, quantity, price_cents, discount_kind, discount_value in entries:
        product = db.session.get(Product, product_id)
        stock = int(product.stock or 0) if product else 0
        quantity = min(quantity, stock)
        if product is None or quantity <= 0:
            skipped.append(product_id)
            continue
        lines.append(CartLine(
            product_id=product_id,
            name=product.name,
            price_cents=price_cents,
            quantity=quantity,
            max_quantity=stock,
            discount_kind=discount_kind,
            discount_value=Decimal(discount_value or 0),
        ))
    return lines, skipped


def resume_draft(session: PosSession, tx_id: str) -> list[str]:
    """
    Load a DRAFT sale into a session, reusing its id.

    Lines whose product no longer exists, or has no stock left, are skipped.
    Returns the skipped product ids.

    Raises:
        SettlementError: no such record, or it is not a DRAFT
    """
    tx = document_store.get(Transaction, tx_id)
    if tx is None:
        raise SettlementError("Draft not found", details={"transaction_id": tx_id})
    if tx.status != STATUS_DRAFT:
        raise SettlementError("Only DRAFT sales can be resumed", details={"status": tx.status})

    lines, skipped = load_cart_lines(
        (item.product_id, item.quantity, item.price_cents, item.discount_kind, item.discount_value)
        for item in tx.items
    )
    if skipped:
        logger.info("Draft %s resumed without products %s", tx_id, skipped)

    with session.lock:
        session.reset()
        session.transaction_id = tx.id
        session.branch_id = tx.branch_id
        session.lines = lines
        session.global_discount_kind = tx.global_discount_kind
        session.global_discount_value = Decimal(tx.global_discount_value or 0)
        session.payment_method = tx.payment_method
        session.account_id = tx.account_id
        session.cheque_number = tx.cheque_number
        session.cheque_date = tx.cheque_date
        session.is_advance = bool(tx.is_advance)
        session.advance_amount_cents = tx.paid_amount_cents if tx.is_advance else 0
        session.customer_id = tx.customer_id
    return skipped

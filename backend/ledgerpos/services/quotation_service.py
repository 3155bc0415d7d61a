# Overview: Service-layer operations for quotations; encapsulates business logic.

"""
Quotation Service

WHY: Customers ask for a price before they buy. A quotation records the
offered lines and prices without touching stock or balances, and can later
be loaded into a POS cart to become a sale.

LIFECYCLE:
1. DRAFT: Lines, customer, notes and validity editable
2. FINALIZED: Frozen; handed to printing and still convertible to a cart

Quoted prices and line discounts are snapshots; converting a quotation
keeps them even if catalog prices have moved since.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Customer, Product, Quotation, QuotationItem
from ..models.quotations import QUOTE_DRAFT, QUOTE_FINALIZED, VALID_QUOTE_STATUSES
from ..models.transactions import DISCOUNT_AMOUNT
from . import document_store
from .concurrency import lock_for_update
from .identifier_service import new_record_id, PREFIX_QUOTATION, PREFIX_SALE
from .pos_session import PosSession
from .pricing_service import line_totals
from .settlement_service import load_cart_lines
from ledgerpos.time_utils import local_today, utcnow


logger = logging.getLogger(__name__)

DEFAULT_VALID_DAYS = 14


class QuotationError(Exception):
    """Raised for quotation errors (unknown id, frozen quotation, bad lines)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _build_items(items: list[dict]) -> list[QuotationItem]:
    if not items:
        raise QuotationError("Quotation needs at least one line")

    lines = []
    seen = set()
    for i, item in enumerate(items):
        product_id = item.get("product_id")
        product = db.session.get(Product, product_id) if product_id else None
        if product is None:
            raise QuotationError("Product not found", details={"line": i, "product_id": product_id})
        if product_id in seen:
            raise QuotationError("Each product may appear once", details={"line": i, "product_id": product_id})
        seen.add(product_id)

        quantity = item.get("quantity", 1)
        price_cents = item.get("price_cents", product.price_cents)
        discount_cents = item.get("discount_cents", 0)
        if not _is_int(quantity) or quantity <= 0:
            raise QuotationError("Quantity must be a positive integer", details={"line": i})
        if not _is_int(price_cents) or price_cents < 0:
            raise QuotationError("price_cents must be a non-negative integer", details={"line": i})
        if not _is_int(discount_cents) or discount_cents < 0:
            raise QuotationError("discount_cents must be a non-negative integer", details={"line": i})

        lines.append(QuotationItem(
            position=i,
            product_id=product_id,
            quantity=quantity,
            price_cents=price_cents,
            discount_cents=discount_cents,
        ))
    return lines


def _totals(items: list[QuotationItem]) -> tuple[int, int]:
    """(total, discount) over quoted lines; the total is floored at zero."""
    gross = 0
    discount = 0
    for item in items:
        line_gross, line_discount = line_totals(item.price_cents, item.quantity, DISCOUNT_AMOUNT, item.discount_cents)
        gross += line_gross
        discount += line_discount
    return max(0, gross - discount), discount


# =============================================================================
# WRITES
# =============================================================================

def save_quotation(
    items: list[dict],
    customer_id: str | None = None,
    customer_name: str | None = None,
    notes: str | None = None,
    valid_days: int = DEFAULT_VALID_DAYS,
    quotation_id: str | None = None,
    finalize: bool = False,
    branch_id: str | None = None,
) -> Quotation:
    """
    Create a quotation, or rewrite a DRAFT one in place.

    Args:
        items: [{"product_id", "quantity", "price_cents", "discount_cents"}, ...];
            price defaults to the catalog price, discount to zero
        customer_id: known customer; its name is copied onto the quotation
        customer_name: walk-in name when there is no customer_id
        valid_days: validity counted from today
        quotation_id: existing DRAFT to overwrite
        finalize: save directly as FINALIZED

    Raises:
        QuotationError: unknown customer/product, bad lines, or the
            quotation is already FINALIZED
    """
    if not _is_int(valid_days) or valid_days < 0:
        raise QuotationError("valid_days must be a non-negative integer")

    if customer_id:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise QuotationError("Customer not found", details={"customer_id": customer_id})
        customer_name = customer.name

    existing = None
    if quotation_id:
        existing = lock_for_update(db.session.query(Quotation).filter_by(id=quotation_id)).first()
        if existing is None:
            raise QuotationError("Quotation not found", details={"quotation_id": quotation_id})
        if existing.is_finalized:
            raise QuotationError("Finalized quotations cannot be edited", details={"status": existing.status})

    lines = _build_items(items)
    total, discount = _totals(lines)
    today = local_today()

    values = {
        "status": QUOTE_FINALIZED if finalize else QUOTE_DRAFT,
        "customer_id": customer_id or None,
        "customer_name": (customer_name or "").strip() or None,
        "quote_date": today,
        "valid_until": today + timedelta(days=valid_days),
        "total_amount_cents": total,
        "discount_cents": discount,
        "notes": notes,
        "branch_id": branch_id or (existing.branch_id if existing else None)
        or current_app.config.get("DEFAULT_BRANCH_ID", "MAIN"),
        "finalized_at": utcnow() if finalize else None,
        "items": lines,
    }
    quotation = document_store.upsert(Quotation, existing.id if existing else new_record_id(PREFIX_QUOTATION), values)
    logger.info("Saved quotation %s (%s) total=%d", quotation.id, quotation.status, quotation.total_amount_cents)
    return quotation


def finalize_quotation(quotation_id: str) -> Quotation:
    """DRAFT -> FINALIZED. Finalizing twice is rejected."""
    quotation = lock_for_update(db.session.query(Quotation).filter_by(id=quotation_id)).first()
    if quotation is None:
        raise QuotationError("Quotation not found", details={"quotation_id": quotation_id})
    if quotation.is_finalized:
        raise QuotationError("Quotation already finalized", details={"status": quotation.status})

    quotation.status = QUOTE_FINALIZED
    quotation.finalized_at = utcnow()
    document_store.commit()
    return quotation


def delete_quotation(quotation_id: str) -> None:
    quotation = db.session.get(Quotation, quotation_id)
    if quotation is None:
        raise QuotationError("Quotation not found", details={"quotation_id": quotation_id})
    db.session.delete(quotation)
    document_store.commit()
    logger.info("Deleted quotation %s", quotation_id)


# =============================================================================
# READS
# =============================================================================

def get_quotation(quotation_id: str) -> Quotation:
    quotation = document_store.get(Quotation, quotation_id)
    if quotation is None:
        raise QuotationError("Quotation not found", details={"quotation_id": quotation_id})
    return quotation


def list_quotations(status: str | None = None, customer_id: str | None = None) -> list[Quotation]:
    """Quotations newest first, optionally by status and customer."""
    if status and status not in VALID_QUOTE_STATUSES:
        raise QuotationError(f"Invalid status: {status}")
    filters = {}
    if status:
        filters["status"] = status
    if customer_id:
        filters["customer_id"] = customer_id
    return document_store.read(Quotation, order_by=Quotation.created_at.desc(), **filters)


# =============================================================================
# CONVERSION
# =============================================================================

def convert_to_session(session: PosSession, quotation_id: str) -> list[str]:
    """
    Replace a session's cart with a quotation's lines.

    The cart gets a fresh sale id and the quotation's customer. Quoted
    prices and discounts are kept; quantities are capped at current stock
    and sold-out or deleted products are skipped. Returns the skipped ids.
    The quotation itself is left unchanged.

    Raises:
        QuotationError: unknown quotation
    """
    quotation = get_quotation(quotation_id)
    lines, skipped = load_cart_lines(
        (item.product_id, item.quantity, item.price_cents, DISCOUNT_AMOUNT, item.discount_cents)
        for item in quotation.items
    )
    if skipped:
        logger.info("Quotation %s converted without products %s", quotation_id, skipped)

    with session.lock:
        session.reset()
        session.lines = lines
        session.customer_id = quotation.customer_id
        session.transaction_id = new_record_id(PREFIX_SALE) if lines else None
    return skipped

# Overview: Service-layer operations for purchase orders; encapsulates business logic.

"""
Purchase Order Service

WHY: Stock comes in through purchase orders. Receiving an order is the single
point where stock, product cost, vendor payable and the paying account move.

LIFECYCLE:
1. DRAFT: Created, lines editable
2. PENDING: Submitted to the vendor, awaiting delivery
3. RECEIVED: Goods in; PURCHASE transaction recorded
4. CANCELLED: Cancelled before receipt

IMMUTABLE: Once RECEIVED, the order cannot be modified or cancelled.
"""

from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import Account, Product, PurchaseOrder, PurchaseOrderItem, Transaction, TransactionItem, Vendor
from ..models.purchasing import PO_DRAFT, PO_PENDING, PO_RECEIVED, PO_CANCELLED
from ..models.transactions import (
    TX_PURCHASE,
    STATUS_COMMITTED,
    METHOD_CASH,
    METHOD_CHEQUE,
    METHOD_CREDIT,
    VALID_PAYMENT_METHODS,
)
from . import document_store, ledger_service
from .concurrency import lock_for_update
from .identifier_service import new_record_id, PREFIX_PURCHASE, PREFIX_PURCHASE_ORDER
from ledgerpos.time_utils import local_now, parse_business_date, utcnow


logger = logging.getLogger(__name__)


class PurchaseError(Exception):
    """Raised for purchase order errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _validate_items(items: list[dict]) -> list[PurchaseOrderItem]:
    if not items:
        raise PurchaseError("Purchase order needs at least one line")

    lines = []
    for i, item in enumerate(items):
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        cost_cents = item.get("cost_cents")
        if not product_id or db.session.get(Product, product_id) is None:
            raise PurchaseError("Product not found", details={"line": i, "product_id": product_id})
        if not isinstance(quantity, int) or quantity <= 0:
            raise PurchaseError("Quantity must be a positive integer", details={"line": i})
        if not isinstance(cost_cents, int) or cost_cents < 0:
            raise PurchaseError("cost_cents must be a non-negative integer", details={"line": i})
        lines.append(PurchaseOrderItem(product_id=product_id, quantity=quantity, cost_cents=cost_cents))
    return lines


def create_purchase_order(
    vendor_id: str,
    items: list[dict],
    payment_method: str = METHOD_CREDIT,
    account_id: str | None = None,
    cheque_number: str | None = None,
    cheque_date=None,
    branch_id: str | None = None,
    submit: bool = False,
) -> PurchaseOrder:
    """
    Create a purchase order.

    Args:
        vendor_id: supplier
        items: [{"product_id", "quantity", "cost_cents"}, ...]
        payment_method: CREDIT adds to the vendor payable on receipt; any
            other method debits account_id (the drawer for CASH) on receipt
        submit: create directly as PENDING
    """
    if not vendor_id or db.session.get(Vendor, vendor_id) is None:
        raise PurchaseError("Vendor not found", details={"vendor_id": vendor_id})
    if payment_method not in VALID_PAYMENT_METHODS:
        raise PurchaseError(f"Invalid payment method: {payment_method}")
    if payment_method == METHOD_CHEQUE and not (cheque_number and cheque_date):
        raise PurchaseError("Cheque number and date are required")
    cash_id = current_app.config.get("CASH_ACCOUNT_ID", "cash")
    if payment_method == METHOD_CASH and account_id not in (None, "", cash_id):
        raise PurchaseError("Cash purchases are paid from the drawer account", details={"account_id": account_id})
    if payment_method not in (METHOD_CASH, METHOD_CREDIT):
        if not account_id or db.session.get(Account, account_id) is None:
            raise PurchaseError("A valid account_id is required for this payment method")

    lines = _validate_items(items)
    po = PurchaseOrder(
        id=new_record_id(PREFIX_PURCHASE_ORDER),
        vendor_id=vendor_id,
        status=PO_PENDING if submit else PO_DRAFT,
        payment_method=payment_method,
        account_id=account_id,
        cheque_number=cheque_number,
        cheque_date=parse_business_date(cheque_date),
        branch_id=branch_id or current_app.config.get("DEFAULT_BRANCH_ID", "MAIN"),
        total_amount_cents=sum(line.quantity * line.cost_cents for line in lines),
        items=lines,
    )
    db.session.add(po)
    db.session.commit()
    return po


def _locked_order(po_id: str) -> PurchaseOrder:
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
    if not po:
        raise PurchaseError("Purchase order not found", details={"purchase_order_id": po_id})
    return po


def submit_purchase_order(po_id: str) -> PurchaseOrder:
    """DRAFT -> PENDING."""
    po = _locked_order(po_id)
    if po.status != PO_DRAFT:
        raise PurchaseError(f"Cannot submit purchase order with status {po.status}")
    po.status = PO_PENDING
    db.session.commit()
    return po


def cancel_purchase_order(po_id: str) -> PurchaseOrder:
    """DRAFT or PENDING -> CANCELLED."""
    po = _locked_order(po_id)
    if po.status not in (PO_DRAFT, PO_PENDING):
        raise PurchaseError(f"Cannot cancel purchase order with status {po.status}")
    po.status = PO_CANCELLED
    db.session.commit()
    return po


def receive_purchase_order(po_id: str) -> tuple[PurchaseOrder, Transaction]:
    """
    PENDING -> RECEIVED.

    In one DB transaction: stock up by each line's quantity, product cost
    set to the line cost, a COMMITTED PURCHASE transaction, and either the
    vendor payable (CREDIT) or the paying account moved by the order total.
    """
    po = _locked_order(po_id)
    if po.status != PO_PENDING:
        raise PurchaseError(f"Only PENDING purchase orders can be received (status {po.status})")

    for line in sorted(po.items, key=lambda l: l.product_id):
        product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
        if product is None:
            logger.warning("Product %s missing while receiving %s", line.product_id, po.id)
            continue
        product.stock = (product.stock or 0) + line.quantity
        product.cost_cents = line.cost_cents

    account_id = None
    if po.payment_method != METHOD_CREDIT:
        account_id = po.account_id or current_app.config.get("CASH_ACCOUNT_ID", "cash")

    now = local_now()
    tx = document_store.upsert(Transaction, new_record_id(PREFIX_PURCHASE), {
        "type": TX_PURCHASE,
        "status": STATUS_COMMITTED,
        "amount_cents": po.total_amount_cents,
        "paid_amount_cents": 0 if po.payment_method == METHOD_CREDIT else po.total_amount_cents,
        "balance_due_cents": po.total_amount_cents if po.payment_method == METHOD_CREDIT else 0,
        "cost_basis_cents": po.total_amount_cents,
        "payment_method": po.payment_method,
        "account_id": account_id,
        "vendor_id": po.vendor_id,
        "cheque_number": po.cheque_number,
        "cheque_date": po.cheque_date,
        "description": f"Stock received against PO: {po.id}",
        "date": now,
        "business_date": now.date(),
        "branch_id": po.branch_id,
        "items": [
            TransactionItem(position=i, product_id=line.product_id, quantity=line.quantity, price_cents=line.cost_cents)
            for i, line in enumerate(po.items)
        ],
    }, commit_now=False)
    ledger_service.apply_effects(tx)

    po.status = PO_RECEIVED
    po.received_at = utcnow()
    po.purchase_transaction_id = tx.id
    document_store.commit()

    logger.info("Received purchase order %s as %s", po.id, tx.id)
    return po, tx


def get_purchase_order(po_id: str) -> PurchaseOrder | None:
    return db.session.get(PurchaseOrder, po_id)


def list_purchase_orders(vendor_id: str | None = None, status: str | None = None) -> list[PurchaseOrder]:
    query = db.session.query(PurchaseOrder)
    if vendor_id:
        query = query.filter_by(vendor_id=vendor_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(PurchaseOrder.created_at.desc()).all()

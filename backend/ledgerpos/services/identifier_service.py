# Overview: Service-layer operations for identifiers; record ids and scan lookup.

"""
Identifier Service

WHY: Records are keyed by string ids chosen by the writer, so a POS cart can
own its transaction id before anything is persisted and reuse it for every
draft snapshot and the final commit.

FORMAT: <PREFIX>-<epoch milliseconds>-<5 uppercase base36 chars>
"""

import secrets
import time

from ..extensions import db
from ..models import Product


PREFIX_SALE = "TX"
PREFIX_CUSTOMER_PAYMENT = "CP"
PREFIX_VENDOR_PAYMENT = "PV"
PREFIX_PURCHASE = "PU"
PREFIX_EXPENSE = "EX"
PREFIX_TRANSFER = "TR"
PREFIX_PURCHASE_ORDER = "PO"
PREFIX_QUOTATION = "QT"
PREFIX_CUSTOMER = "CUS"
PREFIX_VENDOR = "VEN"
PREFIX_PRODUCT = "PRD"

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def new_record_id(prefix: str = PREFIX_SALE) -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{prefix}-{millis}-{suffix}"


def normalize_identifier(value: str) -> str:
    """Normalize to uppercase, no spaces."""
    return value.upper().strip().replace(" ", "")


def lookup_product(value: str) -> Product | None:
    """
    Resolve a scanned code to a product.

    Exact product id wins over SKU. Returns None when nothing matches.
    """
    if not value or not value.strip():
        return None
    product = db.session.get(Product, value.strip())
    if product:
        return product
    normalized = normalize_identifier(value)
    return db.session.query(Product).filter(db.func.upper(Product.sku) == normalized).first()

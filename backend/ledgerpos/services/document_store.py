"""
Document store adapter

WHY: The POS core writes whole records by key (draft snapshots, committed
transactions, balance projections) and needs a per-write success/failure
answer. This module gives it upsert-by-key and filtered reads over the
SQLAlchemy models, and turns database errors into PersistenceFailure.

DESIGN PRINCIPLES:
- upsert is idempotent by id: repeated writes never create duplicates
- merge=True updates only the given fields; merge=False resets the rest
- batch_upsert writes in chunks of STORE_BATCH_LIMIT, each all-or-nothing
- Missing references resolve to fallback labels instead of failing
"""

from __future__ import annotations

import logging
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Customer, Vendor


logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 400


class PersistenceFailure(Exception):
    """Raised when the store rejects a write."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _reset_values(model) -> dict:
    values = {}
    version_col = model.__mapper__.version_id_col
    for column in model.__table__.columns:
        if column.primary_key or column is version_col:
            continue
        default = column.default
        if default is not None and default.is_scalar:
            values[column.key] = default.arg
        elif column.server_default is None:
            values[column.key] = None
    return values


def _apply(model, record_id, values: dict, merge: bool):
    instance = db.session.get(model, record_id)
    if instance is None:
        instance = model(id=record_id)
        db.session.add(instance)
    elif not merge:
        for key, value in _reset_values(model).items():
            setattr(instance, key, value)
    for key, value in values.items():
        setattr(instance, key, value)
    return instance


def commit() -> None:
    """Commit the current unit of work or raise PersistenceFailure."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure("Store write failed", details={"error": str(exc)}) from exc


def upsert(model, record_id, values: dict, merge: bool = True, *, commit_now: bool = True):
    """
    Write a record by key.

    Args:
        model: SQLAlchemy model class
        record_id: primary key
        values: attribute values (relationships allowed)
        merge: keep unspecified fields (True) or reset them to defaults (False)
        commit_now: commit immediately; False leaves the write in the
            caller's unit of work
    """
    try:
        instance = _apply(model, record_id, values, merge)
        if commit_now:
            db.session.commit()
        else:
            db.session.flush()
        return instance
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure(
            f"Failed to write {model.__tablename__}/{record_id}",
            details={"error": str(exc)},
        ) from exc


def get(model, record_id):
    return db.session.get(model, record_id)


def read(model, order_by=None, **filters) -> list:
    """Records of `model` whose columns equal the given filter values."""
    query = db.session.query(model).filter_by(**filters)
    if order_by is not None:
        query = query.order_by(order_by)
    return query.all()


def batch_upsert(model, records: Iterable[dict], merge: bool = True, batch_limit: int | None = None) -> int:
    """
    Upsert many records, committing every `batch_limit` records.

    Each record is a dict carrying its own "id". A failing chunk is rolled
    back entirely; earlier chunks stay written. Returns the count written.

    Raises:
        PersistenceFailure: details["written"] holds the count already committed
    """
    limit = batch_limit or current_app.config.get("STORE_BATCH_LIMIT", DEFAULT_BATCH_LIMIT)
    written = 0
    chunk: list[dict] = []

    def _flush_chunk():
        nonlocal written
        try:
            for record in chunk:
                values = dict(record)
                record_id = values.pop("id")
                _apply(model, record_id, values, merge)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning("Batch write to %s failed after %d records", model.__tablename__, written)
            raise PersistenceFailure(
                f"Batch write to {model.__tablename__} failed",
                details={"written": written, "error": str(exc)},
            ) from exc
        written += len(chunk)
        chunk.clear()

    for record in records:
        chunk.append(record)
        if len(chunk) >= limit:
            _flush_chunk()
    if chunk:
        _flush_chunk()

    return written


# =============================================================================
# REFERENTIAL GAPS
# =============================================================================

def label_for_product(product_id: str | None) -> str:
    product = db.session.get(Product, product_id) if product_id else None
    if product is None:
        return f"Unknown product ({product_id})" if product_id else "Unknown product"
    return product.name


def label_for_party(customer_id: str | None = None, vendor_id: str | None = None) -> str:
    if customer_id:
        customer = db.session.get(Customer, customer_id)
        return customer.name if customer else f"Unknown customer ({customer_id})"
    if vendor_id:
        vendor = db.session.get(Vendor, vendor_id)
        return vendor.name if vendor else f"Unknown vendor ({vendor_id})"
    return "Walk-in"

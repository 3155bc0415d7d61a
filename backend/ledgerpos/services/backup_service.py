# Overview: JSON backup export and import of the directory collections.

"""
Backup Service

WHY: A shop moving machines (or recovering one) needs its catalog, parties
and accounts back without replaying history. A backup is one JSON object
keyed by collection, each holding a list of records with their ids.

DESIGN PRINCIPLES:
- Import merges by id: existing rows are updated, missing rows created
- Writes go through document_store.batch_upsert, chunked and all-or-nothing
  per chunk
- Each record is validated against its model's columns; unknown keys are
  dropped, timestamps are left to the database
- Transactions, drafts and day sessions are history, not directory data,
  and are never imported
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from ..models import Account, Category, Customer, Product, Vendor
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from . import document_store


logger = logging.getLogger(__name__)

# Import order respects foreign keys (products reference categories)
COLLECTIONS = {
    "categories": Category,
    "products": Product,
    "customers": Customer,
    "vendors": Vendor,
    "accounts": Account,
}

_SKIPPED_COLUMNS = {"id", "created_at", "updated_at"}


def _columns(model) -> list[str]:
    return [c.key for c in model.__table__.columns if c.key not in _SKIPPED_COLUMNS]


def _json_value(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def export_backup() -> dict:
    """Every directory record, as plain JSON-safe dicts."""
    data = {}
    for key, model in COLLECTIONS.items():
        rows = document_store.read(model, order_by=model.id)
        data[key] = [
            {"id": row.id, **{col: _json_value(getattr(row, col)) for col in _columns(model)}}
            for row in rows
        ]
    return data


def _clean_records(model, records: list) -> list[dict]:
    columns = set(_columns(model))
    policy = ModelValidationPolicy(writable_fields=columns)
    cleaned = []
    for i, record in enumerate(records):
        if not isinstance(record, dict) or not record.get("id"):
            raise ValidationError(f"{model.__tablename__}[{i}]: every record needs an id")
        payload = {k: v for k, v in record.items() if k in columns}
        try:
            values = validate_payload(model=model, payload=payload, policy=policy, partial=True)
        except ValidationError as exc:
            raise ValidationError(f"{model.__tablename__}[{i}]: {exc}") from exc
        cleaned.append({"id": str(record["id"]), **values})
    return cleaned


def import_backup(data: dict) -> dict[str, int]:
    """
    Merge a backup into the store.

    All collections are validated before anything is written. Returns the
    number of records written per collection.

    Raises:
        ValidationError: malformed backup or record
        PersistenceFailure: a chunk was rejected (earlier chunks stay written)
    """
    if not isinstance(data, dict):
        raise ValidationError("Backup must be a JSON object")

    prepared = {}
    for key, model in COLLECTIONS.items():
        records = data.get(key) or []
        if not isinstance(records, list):
            raise ValidationError(f"{key} must be a list")
        prepared[key] = _clean_records(model, records)

    written = {}
    for key, model in COLLECTIONS.items():
        written[key] = document_store.batch_upsert(model, prepared[key]) if prepared[key] else 0
        if written[key]:
            logger.info("Imported %d %s", written[key], key)
    return written

# backend/ledgerpos/services/catalog_service.py
"""
Catalog Service

Categories and products. The POS core reads these; only purchase receipt,
commit and void write stock and cost afterwards.
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product
from ..validation import (
    ConflictError,
    ValidationError,
    enforce_rules_category,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .identifier_service import new_record_id, normalize_identifier, PREFIX_PRODUCT


def _require_unique_sku(sku: str | None, product_id: str | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product).filter(func.upper(Product.sku) == normalize_identifier(sku))
    if product_id:
        query = query.filter(Product.id != product_id)
    if query.first():
        raise ConflictError(f"SKU already in use: {sku}")


def _require_category(category_id: str | None) -> None:
    if category_id and db.session.get(Category, category_id) is None:
        raise ValidationError("Category not found")


def create_category(payload: dict, category_id: str | None = None) -> Category:
    patch = validate_payload(model=Category, payload=payload, partial=False)
    enforce_rules_category(patch)

    def _op():
        cat_id = category_id or normalize_identifier(patch["name"]).lower()
        if db.session.get(Category, cat_id):
            raise ConflictError(f"Category already exists: {cat_id}")
        category = Category(id=cat_id, **patch)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(category_id: str, payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, partial=True)
    enforce_rules_category(patch)

    def _op():
        category = lock_for_update(db.session.query(Category).filter_by(id=category_id)).first()
        if not category:
            raise ValidationError("Category not found")
        for key, value in patch.items():
            setattr(category, key, value)
        db.session.commit()
        return category

    return run_with_retry(_op)


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_product(payload: dict, product_id: str | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, partial=False)
    enforce_rules_product(patch)

    def _op():
        _require_unique_sku(patch.get("sku"))
        _require_category(patch.get("category_id"))
        product = Product(id=product_id or new_record_id(PREFIX_PRODUCT), **patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: str, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, partial=True)
    enforce_rules_product(patch)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise ValidationError("Product not found")
        if "sku" in patch:
            _require_unique_sku(patch["sku"], product_id)
        if "category_id" in patch:
            _require_category(patch["category_id"])
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


def list_products(category_id: str | None = None, low_stock_only: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if category_id:
        query = query.filter_by(category_id=category_id)
    if low_stock_only:
        query = query.filter(Product.stock <= Product.low_stock_threshold)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()

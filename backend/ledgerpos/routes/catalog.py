# Overview: Flask API routes for categories and products; parses input and returns JSON responses.

# backend/ledgerpos/routes/catalog.py
"""
Catalog routes.

Minimal directory surface: create, update and list categories and products.
Stock moves only through sales, voids and purchase receipts; a PATCH with
"stock" is an operator correction.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, ConflictError


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _write(action, label: str, status: int = 200):
    try:
        record = action()
        return jsonify(record.to_dict()), status
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        status_code = 404 if "not found" in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception:
        current_app.logger.exception("Failed to write %s", label)
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/categories")
def list_categories():
    categories = catalog_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@catalog_bp.post("/categories")
def create_category():
    """
    Request body:
    {
        "id": "reload",                      (optional)
        "name": "Reload",
        "pricing_policy": "FIXED_MARGIN_PERCENT",
        "fixed_margin_percent": "4"
    }
    """
    data = dict(request.get_json(silent=True) or {})
    category_id = data.pop("id", None)
    return _write(lambda: catalog_service.create_category(data, category_id=category_id), "category", 201)


@catalog_bp.patch("/categories/<category_id>")
def update_category(category_id):
    data = request.get_json(silent=True) or {}
    return _write(lambda: catalog_service.update_category(category_id, data), "category")


@catalog_bp.get("/products")
def list_products():
    """
    Query params:
    - category_id: filter by category
    - low_stock: "true" for products at or below their threshold
    """
    products = catalog_service.list_products(
        category_id=request.args.get("category_id"),
        low_stock_only=request.args.get("low_stock", "false").lower() == "true",
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@catalog_bp.get("/products/<product_id>")
def get_product(product_id):
    product = catalog_service.get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@catalog_bp.post("/products")
def create_product():
    data = dict(request.get_json(silent=True) or {})
    product_id = data.pop("id", None)
    return _write(lambda: catalog_service.create_product(data, product_id=product_id), "product", 201)


@catalog_bp.patch("/products/<product_id>")
def update_product(product_id):
    data = request.get_json(silent=True) or {}
    return _write(lambda: catalog_service.update_product(product_id, data), "product")

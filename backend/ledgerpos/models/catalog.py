from __future__ import annotations

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


PRICING_STANDARD = "STANDARD"
PRICING_FIXED_MARGIN = "FIXED_MARGIN_PERCENT"

VALID_PRICING_POLICIES = [PRICING_STANDARD, PRICING_FIXED_MARGIN]


class Category(db.Model):
    """
    Product category.

    WHY: Categories carry the pricing policy for their products. Fixed-margin
    lines (airtime reloads and similar wallet products) are tagged here once
    instead of being detected by category name at calculation time.

    PRICING POLICIES:
    - STANDARD: cost basis is the product's cost, stock counts units
    - FIXED_MARGIN_PERCENT: cost basis defaults to price less the fixed margin,
      stock holds the wallet value in cents and may go negative
    """
    __tablename__ = "categories"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False)

    pricing_policy = db.Column(db.String(32), nullable=False, default=PRICING_STANDARD)
    fixed_margin_percent = db.Column(db.Numeric(7, 4), nullable=False, default=4)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_fixed_margin(self) -> bool:
        return self.pricing_policy == PRICING_FIXED_MARGIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "pricing_policy": self.pricing_policy,
            "fixed_margin_percent": str(self.fixed_margin_percent),
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Catalog product.

    The POS core treats catalog metadata as read-only; only `stock` (commit,
    void, purchase receipt) and `cost_cents` (purchase receipt) are written here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_sku", "sku"),
    )

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.String(64), db.ForeignKey("categories.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "category_id": self.category_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

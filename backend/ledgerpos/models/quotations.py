from __future__ import annotations

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


QUOTE_DRAFT = "DRAFT"
QUOTE_FINALIZED = "FINALIZED"
VALID_QUOTE_STATUSES = {QUOTE_DRAFT, QUOTE_FINALIZED}


class Quotation(db.Model):
    """
    Price quotation for a customer.

    LIFECYCLE: DRAFT (editable) -> FINALIZED (frozen, printable). Either can
    be converted into a POS cart; a quotation never moves stock or balances.
    Line prices and discounts are snapshots, like sale items.
    """
    __tablename__ = "quotations"

    id = db.Column(db.String(64), primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=QUOTE_DRAFT, index=True)

    # Walk-in quotations carry only a name
    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    quote_date = db.Column(db.Date, nullable=False)
    valid_until = db.Column(db.Date, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    branch_id = db.Column(db.String(64), nullable=False)
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("quotations", lazy=True))
    items = db.relationship(
        "QuotationItem",
        backref="quotation",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QuotationItem.position",
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == QUOTE_FINALIZED

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "status": self.status,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "quote_date": self.quote_date.isoformat() if self.quote_date else None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "total_amount_cents": self.total_amount_cents,
            "discount_cents": self.discount_cents,
            "notes": self.notes,
            "branch_id": self.branch_id,
            "finalized_at": to_utc_z(self.finalized_at) if self.finalized_at else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuotationItem(db.Model):
    __tablename__ = "quotation_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.String(64), db.ForeignKey("quotations.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.String(64), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    @property
    def net_cents(self) -> int:
        return self.quantity * self.price_cents - self.discount_cents

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "net_cents": self.net_cents,
        }

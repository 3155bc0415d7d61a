from __future__ import annotations

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


PO_DRAFT = "DRAFT"
PO_PENDING = "PENDING"
PO_RECEIVED = "RECEIVED"
PO_CANCELLED = "CANCELLED"


class PurchaseOrder(db.Model):
    """
    Purchase order from a vendor.

    LIFECYCLE: DRAFT -> PENDING -> RECEIVED, or DRAFT/PENDING -> CANCELLED.
    Receiving is the only step with side effects (stock, cost, PURCHASE
    transaction, vendor or account balance).
    """
    __tablename__ = "purchase_orders"

    id = db.Column(db.String(64), primary_key=True)
    vendor_id = db.Column(db.String(64), db.ForeignKey("vendors.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=PO_DRAFT, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False)
    account_id = db.Column(db.String(64), nullable=True)
    cheque_number = db.Column(db.String(64), nullable=True)
    cheque_date = db.Column(db.Date, nullable=True)

    branch_id = db.Column(db.String(64), nullable=False)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    purchase_transaction_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship("PurchaseOrderItem", backref="purchase_order", lazy=True, cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "account_id": self.account_id,
            "cheque_number": self.cheque_number,
            "cheque_date": self.cheque_date.isoformat() if self.cheque_date else None,
            "branch_id": self.branch_id,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "purchase_transaction_id": self.purchase_transaction_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.String(64), db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "cost_cents": self.cost_cents,
        }

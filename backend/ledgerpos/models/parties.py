from __future__ import annotations

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer with a running credit balance.

    WHY: `total_credit_cents` is the authoritative receivable. It is updated in
    the same DB transaction as every CREDIT sale, advance sale and credit
    payment, and is never recomputed on read. ledger_service can rebuild it
    from history for audits.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    total_credit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "total_credit_cents": self.total_credit_cents,
            "credit_limit_cents": self.credit_limit_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Vendor(db.Model):
    """Supplier with a running payable balance (what we owe them)."""
    __tablename__ = "vendors"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    total_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "total_balance_cents": self.total_balance_cents,
            "created_at": to_utc_z(self.created_at),
        }

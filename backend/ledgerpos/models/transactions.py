from __future__ import annotations

from ..extensions import db
from ledgerpos.time_utils import to_utc_z, to_local_iso


# Transaction types
TX_SALE = "SALE"
TX_PURCHASE = "PURCHASE"
TX_EXPENSE = "EXPENSE"
TX_CREDIT_PAYMENT = "CREDIT_PAYMENT"
TX_TRANSFER = "TRANSFER"
TX_LOAN_GIVEN = "LOAN_GIVEN"

VALID_TX_TYPES = [TX_SALE, TX_PURCHASE, TX_EXPENSE, TX_CREDIT_PAYMENT, TX_TRANSFER, TX_LOAN_GIVEN]

# Lifecycle
STATUS_DRAFT = "DRAFT"
STATUS_COMMITTED = "COMMITTED"
STATUS_VOID = "VOID"

# Payment methods
METHOD_CASH = "CASH"
METHOD_BANK = "BANK"
METHOD_CARD = "CARD"
METHOD_CREDIT = "CREDIT"
METHOD_CHEQUE = "CHEQUE"

VALID_PAYMENT_METHODS = [METHOD_CASH, METHOD_BANK, METHOD_CARD, METHOD_CREDIT, METHOD_CHEQUE]

# Discount kinds
DISCOUNT_AMOUNT = "AMOUNT"
DISCOUNT_PERCENT = "PERCENT"


class Transaction(db.Model):
    """
    Financial transaction record (sales, purchases, expenses, payments, transfers).

    WHY: One record per id, with an explicit lifecycle tag instead of separate
    draft and sale tables. A POS cart allocates its id on the first mutation;
    autosave writes DRAFT snapshots under that id and checkout promotes the
    same row to COMMITTED.

    LIFECYCLE:
    - DRAFT: recoverable cart snapshot, no side effects, excluded from reports
    - COMMITTED: immutable financial fact (only VOID may follow)
    - VOID: reversed; kept for audit

    INVARIANT (at commit): amount = paid_amount + balance_due
    - CREDIT: paid_amount = 0
    - advance (split): 0 < paid_amount < amount

    version_id guards the DRAFT -> COMMITTED transition (compare-and-swap).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_branch_date", "branch_id", "business_date"),
        db.Index("ix_transactions_type_status", "type", "status"),
    )

    id = db.Column(db.String(64), primary_key=True)
    type = db.Column(db.String(16), nullable=False, default=TX_SALE, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_COMMITTED, index=True)

    # Amounts (all in cents)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)  # net payable
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)  # line + global
    global_discount_cents = db.Column(db.Integer, nullable=False, default=0)
    change_due_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_basis_cents = db.Column(db.Integer, nullable=False, default=0)  # COGS snapshot

    # Global discount as entered (kept so a draft can be resumed)
    global_discount_kind = db.Column(db.String(16), nullable=False, default=DISCOUNT_AMOUNT)
    global_discount_value = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=True, index=True)
    is_advance = db.Column(db.Boolean, nullable=False, default=False)

    account_id = db.Column(db.String(64), nullable=True, index=True)
    destination_account_id = db.Column(db.String(64), nullable=True)

    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=True, index=True)
    vendor_id = db.Column(db.String(64), db.ForeignKey("vendors.id"), nullable=True, index=True)

    # Credit payment settling a specific invoice
    parent_transaction_id = db.Column(db.String(64), nullable=True)
    # Later payments applied to this invoice (included in paid_amount)
    settled_cents = db.Column(db.Integer, nullable=False, default=0)

    cheque_number = db.Column(db.String(64), nullable=True)
    cheque_date = db.Column(db.Date, nullable=True)

    description = db.Column(db.String(255), nullable=True)

    # Business time (terminal wall clock) and its calendar date
    date = db.Column(db.DateTime, nullable=False)
    business_date = db.Column(db.Date, nullable=False)
    branch_id = db.Column(db.String(64), nullable=False)

    void_reason = db.Column(db.String(255), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    vendor = db.relationship("Vendor", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TransactionItem.position",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_draft(self) -> bool:
        return self.status == STATUS_DRAFT

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "amount_cents": self.amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "balance_due_cents": self.balance_due_cents,
            "discount_cents": self.discount_cents,
            "global_discount_cents": self.global_discount_cents,
            "global_discount_kind": self.global_discount_kind,
            "global_discount_value": str(self.global_discount_value),
            "change_due_cents": self.change_due_cents,
            "cost_basis_cents": self.cost_basis_cents,
            "payment_method": self.payment_method,
            "is_advance": self.is_advance,
            "account_id": self.account_id,
            "destination_account_id": self.destination_account_id,
            "customer_id": self.customer_id,
            "vendor_id": self.vendor_id,
            "parent_transaction_id": self.parent_transaction_id,
            "settled_cents": self.settled_cents,
            "cheque_number": self.cheque_number,
            "cheque_date": self.cheque_date.isoformat() if self.cheque_date else None,
            "description": self.description,
            "date": to_local_iso(self.date),
            "business_date": self.business_date.isoformat(),
            "branch_id": self.branch_id,
            "void_reason": self.void_reason,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    Line snapshot on a transaction.

    Prices and discounts are copied at write time, never read through to the
    catalog, so historical totals can be re-derived exactly.
    """
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.String(64), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    # Discount as entered, and the resulting amount
    discount_kind = db.Column(db.String(16), nullable=False, default=DISCOUNT_AMOUNT)
    discount_value = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_kind": self.discount_kind,
            "discount_value": str(self.discount_value),
            "discount_cents": self.discount_cents,
        }

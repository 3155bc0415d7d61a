"""
In-memory POS session (one per terminal)

WHY: The cart is owned by the terminal until checkout. Nothing here touches
the database; settlement_service turns a session into a persisted
transaction and autosave_service snapshots it as a draft.

STATES (derived from session data, never stored):
- EMPTY: no lines
- BUILDING: lines present, payment not yet settleable
- CASH_PENDING: CASH selected, tendered < amount due
- CREDIT_PENDING: CREDIT or advance selected, no customer
- READY: commit will pass local validation
- COMMITTED: reported on a commit result; the session itself resets to EMPTY
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from functools import wraps

from ..models.transactions import (
    DISCOUNT_AMOUNT,
    METHOD_CASH,
    METHOD_CHEQUE,
    METHOD_CREDIT,
    VALID_PAYMENT_METHODS,
)
from .identifier_service import new_record_id, PREFIX_SALE
from .pricing_service import VALID_DISCOUNT_KINDS, PricingTotals, calculate_totals, to_decimal, line_totals
from ledgerpos.time_utils import parse_business_date


STATE_EMPTY = "EMPTY"
STATE_BUILDING = "BUILDING"
STATE_CASH_PENDING = "CASH_PENDING"
STATE_CREDIT_PENDING = "CREDIT_PENDING"
STATE_READY = "READY"
STATE_COMMITTED = "COMMITTED"

# Validation failure reasons
EMPTY_CART = "EMPTY_CART"
PAYMENT_METHOD_REQUIRED = "PAYMENT_METHOD_REQUIRED"
INSUFFICIENT_TENDER = "INSUFFICIENT_TENDER"
UNRESOLVED_PARTY = "UNRESOLVED_PARTY"
MISSING_CHEQUE_METADATA = "MISSING_CHEQUE_METADATA"
INVALID_ADVANCE = "INVALID_ADVANCE"
DAY_NOT_OPEN = "DAY_NOT_OPEN"
ALREADY_COMMITTED = "ALREADY_COMMITTED"


class PosSessionError(Exception):
    """Raised for invalid cart commands (unknown line, bad kind, out of stock)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class ValidationFailure:
    reason: str
    message: str

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


@dataclass
class CartLine:
    product_id: str
    name: str
    price_cents: int  # unit price, may override catalog price
    quantity: int
    max_quantity: int  # stock seen when the line was added
    discount_kind: str = DISCOUNT_AMOUNT
    discount_value: Decimal = Decimal(0)

    def to_dict(self) -> dict:
        gross, discount = line_totals(self.price_cents, self.quantity, self.discount_kind, self.discount_value)
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "max_quantity": self.max_quantity,
            "discount_kind": self.discount_kind,
            "discount_value": str(self.discount_value),
            "gross_cents": gross,
            "discount_cents": discount,
            "net_cents": gross - discount,
        }


def _mutation(method):
    """Run a cart command under the session lock, then notify listeners."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            result = method(self, *args, **kwargs)
            if self.lines and self.transaction_id is None:
                self.transaction_id = new_record_id(PREFIX_SALE)
        self._notify()
        return result
    return wrapper


@dataclass
class PosSession:
    terminal_id: str = "default"
    branch_id: str = "MAIN"
    transaction_id: str | None = None
    lines: list[CartLine] = field(default_factory=list)
    global_discount_kind: str = DISCOUNT_AMOUNT
    global_discount_value: Decimal = Decimal(0)
    payment_method: str | None = None
    account_id: str | None = None
    cheque_number: str | None = None
    cheque_date: date | None = None
    is_advance: bool = False
    advance_amount_cents: int = 0
    tendered_cents: int = 0
    customer_id: str | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    listeners: list = field(default_factory=list, repr=False, compare=False)

    # =========================================================================
    # CART COMMANDS
    # =========================================================================

    def _line(self, product_id: str) -> CartLine:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        raise PosSessionError("Line not in cart", details={"product_id": product_id})

    @_mutation
    def add_line(self, product) -> CartLine:
        """
        Add one unit of a product, or bump an existing line by one.

        New lines go to the front of the cart. Quantity never exceeds the
        stock seen now; a product with no stock cannot be added.
        """
        stock = int(product.stock or 0)
        if stock <= 0:
            raise PosSessionError("Product out of stock", details={"product_id": product.id})
        for line in self.lines:
            if line.product_id == product.id:
                line.max_quantity = stock
                line.quantity = min(line.quantity + 1, stock)
                return line
        line = CartLine(
            product_id=product.id,
            name=product.name,
            price_cents=int(product.price_cents or 0),
            quantity=1,
            max_quantity=stock,
        )
        self.lines.insert(0, line)
        return line

    @_mutation
    def set_quantity(self, product_id: str, quantity: int) -> CartLine | None:
        """Set a line's quantity; zero or less removes the line."""
        line = self._line(product_id)
        if quantity <= 0:
            self.lines.remove(line)
            return None
        line.quantity = min(int(quantity), line.max_quantity)
        return line

    @_mutation
    def set_line_price(self, product_id: str, price_cents: int) -> CartLine:
        if price_cents < 0:
            raise PosSessionError("Price cannot be negative")
        line = self._line(product_id)
        line.price_cents = int(price_cents)
        return line

    @_mutation
    def set_line_discount(self, product_id: str, value, kind: str = DISCOUNT_AMOUNT) -> CartLine:
        if kind not in VALID_DISCOUNT_KINDS:
            raise PosSessionError(f"Invalid discount kind: {kind}")
        value = to_decimal(value)
        if value < 0:
            raise PosSessionError("Discount cannot be negative")
        line = self._line(product_id)
        line.discount_kind = kind
        line.discount_value = value
        return line

    @_mutation
    def set_global_discount(self, value, kind: str = DISCOUNT_AMOUNT) -> None:
        """Set the cart discount; an AMOUNT discount replaces a PERCENT one and vice versa."""
        if kind not in VALID_DISCOUNT_KINDS:
            raise PosSessionError(f"Invalid discount kind: {kind}")
        value = to_decimal(value)
        if value < 0:
            raise PosSessionError("Discount cannot be negative")
        self.global_discount_kind = kind
        self.global_discount_value = value

    # =========================================================================
    # PAYMENT COMMANDS
    # =========================================================================

    @_mutation
    def select_payment_method(self, method: str, account_id: str | None = None) -> None:
        if method not in VALID_PAYMENT_METHODS:
            raise PosSessionError(f"Invalid payment method: {method}")
        self.payment_method = method
        self.account_id = account_id

    @_mutation
    def set_cheque(self, number: str | None, cheque_date) -> None:
        self.cheque_number = (number or "").strip() or None
        self.cheque_date = parse_business_date(cheque_date)

    @_mutation
    def toggle_advance(self, enabled: bool) -> None:
        self.is_advance = bool(enabled)
        if not self.is_advance:
            self.advance_amount_cents = 0

    @_mutation
    def set_advance_amount(self, amount_cents: int) -> None:
        self.advance_amount_cents = int(amount_cents)

    @_mutation
    def set_tendered(self, amount_cents: int) -> None:
        self.tendered_cents = int(amount_cents)

    @_mutation
    def select_customer(self, customer_id: str | None) -> None:
        self.customer_id = customer_id or None

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================

    def totals(self) -> PricingTotals:
        with self.lock:
            advance = self.advance_amount_cents if self.is_advance else 0
            return calculate_totals(self.lines, self.global_discount_kind, self.global_discount_value, advance)

    def amount_due(self, totals: PricingTotals | None = None) -> int:
        """What must be paid now: the advance for a split sale, else the final total."""
        totals = totals or self.totals()
        return self.advance_amount_cents if self.is_advance else totals.final_total

    def change_due(self, totals: PricingTotals | None = None) -> int:
        if self.payment_method != METHOD_CASH:
            return 0
        return max(0, self.tendered_cents - self.amount_due(totals))

    @property
    def state(self) -> str:
        with self.lock:
            if not self.lines:
                return STATE_EMPTY
            if self.payment_method is None:
                return STATE_BUILDING
            if (self.payment_method == METHOD_CREDIT or self.is_advance) and not self.customer_id:
                return STATE_CREDIT_PENDING
            if self.payment_method == METHOD_CASH and self.tendered_cents < self.amount_due():
                return STATE_CASH_PENDING
            if self.payment_method == METHOD_CHEQUE and not (self.cheque_number and self.cheque_date):
                return STATE_BUILDING
            return STATE_READY

    def validate(self, customer_id: str | None = None) -> ValidationFailure | None:
        """
        Local checks run before any write.

        Returns the first failure, or None when the session can be committed.
        """
        with self.lock:
            if not self.lines:
                return ValidationFailure(EMPTY_CART, "Cart is empty")
            if self.payment_method is None:
                return ValidationFailure(PAYMENT_METHOD_REQUIRED, "Select a payment method")

            totals = self.totals()
            if self.payment_method == METHOD_CHEQUE and not (self.cheque_number and self.cheque_date):
                return ValidationFailure(MISSING_CHEQUE_METADATA, "Cheque number and date are required")
            if self.is_advance and not (0 < self.advance_amount_cents < totals.final_total):
                return ValidationFailure(INVALID_ADVANCE, "Advance must be more than zero and less than the total")
            if (self.payment_method == METHOD_CREDIT or self.is_advance) and not (customer_id or self.customer_id):
                return ValidationFailure(UNRESOLVED_PARTY, "Select a customer for credit or advance sales")
            if self.payment_method == METHOD_CASH and self.tendered_cents < self.amount_due(totals):
                return ValidationFailure(INSUFFICIENT_TENDER, "Tendered cash is less than the amount due")
            return None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def add_listener(self, callback) -> None:
        self.listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self.listeners):
            callback(self)

    def reset(self) -> None:
        """Empty the session; the next cart mutation allocates a new id."""
        with self.lock:
            self.transaction_id = None
            self.lines = []
            self.global_discount_kind = DISCOUNT_AMOUNT
            self.global_discount_value = Decimal(0)
            self.payment_method = None
            self.account_id = None
            self.cheque_number = None
            self.cheque_date = None
            self.is_advance = False
            self.advance_amount_cents = 0
            self.tendered_cents = 0
            self.customer_id = None

    def snapshot(self) -> dict:
        """Consistent copy of the fields a draft record needs."""
        with self.lock:
            totals = self.totals()
            return {
                "transaction_id": self.transaction_id,
                "branch_id": self.branch_id,
                "lines": [
                    CartLine(
                        product_id=l.product_id,
                        name=l.name,
                        price_cents=l.price_cents,
                        quantity=l.quantity,
                        max_quantity=l.max_quantity,
                        discount_kind=l.discount_kind,
                        discount_value=l.discount_value,
                    )
                    for l in self.lines
                ],
                "totals": totals,
                "global_discount_kind": self.global_discount_kind,
                "global_discount_value": self.global_discount_value,
                "payment_method": self.payment_method,
                "account_id": self.account_id,
                "cheque_number": self.cheque_number,
                "cheque_date": self.cheque_date,
                "is_advance": self.is_advance,
                "advance_amount_cents": self.advance_amount_cents,
                "tendered_cents": self.tendered_cents,
                "customer_id": self.customer_id,
            }

    def to_dict(self) -> dict:
        with self.lock:
            totals = self.totals()
            return {
                "terminal_id": self.terminal_id,
                "branch_id": self.branch_id,
                "transaction_id": self.transaction_id,
                "state": self.state,
                "lines": [line.to_dict() for line in self.lines],
                "totals": totals.to_dict(),
                "global_discount_kind": self.global_discount_kind,
                "global_discount_value": str(self.global_discount_value),
                "payment_method": self.payment_method,
                "account_id": self.account_id,
                "cheque_number": self.cheque_number,
                "cheque_date": self.cheque_date.isoformat() if self.cheque_date else None,
                "is_advance": self.is_advance,
                "advance_amount_cents": self.advance_amount_cents,
                "tendered_cents": self.tendered_cents,
                "amount_due_cents": self.amount_due(totals),
                "change_due_cents": self.change_due(totals),
                "customer_id": self.customer_id,
            }

"""
Pricing Calculator

WHY: Every cart mutation, every draft autosave and every checkout derives its
totals from the same function, so a persisted transaction can be recomputed
exactly from its item snapshot.

DESIGN PRINCIPLES:
- Pure: no database, no clock, no session state
- Integer cents in, integer cents out
- Percent amounts are rounded half-up to a whole cent where they are computed
- Global discount applies to subtotal (after line discounts), never to gross
- Final total is floored at zero; negative line nets are reported, not clamped
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from ..models.transactions import DISCOUNT_AMOUNT, DISCOUNT_PERCENT


VALID_DISCOUNT_KINDS = [DISCOUNT_AMOUNT, DISCOUNT_PERCENT]

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class PricingTotals:
    gross: int
    line_savings: int
    subtotal: int
    global_discount: int
    final_total: int
    remaining_due: int
    negative_lines: list[str] = field(default_factory=list)

    @property
    def total_discount(self) -> int:
        return self.line_savings + self.global_discount

    def to_dict(self) -> dict:
        return {
            "gross_cents": self.gross,
            "line_savings_cents": self.line_savings,
            "subtotal_cents": self.subtotal,
            "global_discount_cents": self.global_discount,
            "final_total_cents": self.final_total,
            "remaining_due_cents": self.remaining_due,
            "negative_lines": list(self.negative_lines),
        }


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def percent_of(base_cents: int, percent) -> int:
    """`percent`% of `base_cents`, rounded half-up to a whole cent."""
    amount = Decimal(base_cents) * to_decimal(percent) / _HUNDRED
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def discount_amount(base_cents: int, kind: str, value) -> int:
    """Discount in cents for a discount entered as `kind`/`value`."""
    if kind == DISCOUNT_PERCENT:
        return percent_of(base_cents, value)
    return int(to_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def line_totals(price_cents: int, quantity: int, kind: str = DISCOUNT_AMOUNT, value=0) -> tuple[int, int]:
    """
    Gross and discount for one line.

    Returns (gross, discount). The discount is not clamped to gross.
    """
    gross = int(price_cents) * int(quantity)
    return gross, discount_amount(gross, kind, value)


def calculate_totals(
    lines: Iterable,
    global_kind: str = DISCOUNT_AMOUNT,
    global_value=0,
    advance_amount: int = 0,
) -> PricingTotals:
    """
    Compute cart totals.

    Args:
        lines: objects with product_id, price_cents, quantity, discount_kind
            and discount_value attributes (CartLine and similar)
        global_kind: AMOUNT (value in cents) or PERCENT (value in percent)
        global_value: global discount as entered
        advance_amount: amount paid now for a split/advance sale

    Returns:
        PricingTotals. remaining_due = max(0, final_total - advance_amount)
    """
    gross = 0
    line_savings = 0
    negative_lines: list[str] = []

    for line in lines:
        line_gross, line_discount = line_totals(
            line.price_cents, line.quantity, line.discount_kind, line.discount_value
        )
        gross += line_gross
        line_savings += line_discount
        if line_gross - line_discount < 0:
            negative_lines.append(line.product_id)

    subtotal = gross - line_savings
    global_discount = discount_amount(max(0, subtotal), global_kind, global_value)
    final_total = max(0, subtotal - global_discount)
    remaining_due = max(0, final_total - int(advance_amount or 0))

    return PricingTotals(
        gross=gross,
        line_savings=line_savings,
        subtotal=subtotal,
        global_discount=global_discount,
        final_total=final_total,
        remaining_due=remaining_due,
        negative_lines=negative_lines,
    )


def totals_from_transaction(tx) -> PricingTotals:
    """
    Re-derive totals from a persisted transaction's item snapshot.

    Uses the persisted discount cents (line and global) rather than the
    entered percents, so the result reproduces tx.amount_cents exactly.
    """
    gross = 0
    line_savings = 0
    negative_lines: list[str] = []
    for item in tx.items:
        line_gross = item.price_cents * item.quantity
        gross += line_gross
        line_savings += item.discount_cents
        if line_gross - item.discount_cents < 0:
            negative_lines.append(item.product_id)

    subtotal = gross - line_savings
    global_discount = tx.global_discount_cents or 0
    final_total = max(0, subtotal - global_discount)
    advance = (tx.paid_amount_cents - (tx.settled_cents or 0)) if tx.is_advance else 0

    return PricingTotals(
        gross=gross,
        line_savings=line_savings,
        subtotal=subtotal,
        global_discount=global_discount,
        final_total=final_total,
        remaining_due=max(0, final_total - advance),
        negative_lines=negative_lines,
    )

# Overview: Pytest coverage for cart pricing.

"""
Pricing Calculator Tests

Pure tests: no app, no database.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from ledgerpos.services.pricing_service import (
    calculate_totals,
    discount_amount,
    line_totals,
    percent_of,
    totals_from_transaction,
)


def line(product_id, price, qty, kind="AMOUNT", value=0):
    return SimpleNamespace(
        product_id=product_id,
        price_cents=price,
        quantity=qty,
        discount_kind=kind,
        discount_value=Decimal(str(value)),
    )


class TestLineMath:
    def test_percent_rounds_half_up(self):
        assert percent_of(250, 10) == 25
        assert percent_of(5, 10) == 1  # 0.5 -> 1
        assert percent_of(4, 10) == 0  # 0.4 -> 0

    def test_amount_discount_is_cents(self):
        assert discount_amount(1000, "AMOUNT", 150) == 150

    def test_percent_discount_on_gross(self):
        gross, discount = line_totals(100, 3, "PERCENT", "10")
        assert gross == 300
        assert discount == 30

    def test_line_discount_not_clamped(self):
        gross, discount = line_totals(100, 1, "AMOUNT", 500)
        assert gross == 100
        assert discount == 500


class TestCalculateTotals:
    def test_global_percent_scenario(self):
        totals = calculate_totals([line("A", 100, 2)], "PERCENT", 10)
        assert totals.subtotal == 200
        assert totals.global_discount == 20
        assert totals.final_total == 180

    def test_global_discount_applies_to_subtotal_not_gross(self):
        totals = calculate_totals([line("A", 1000, 1, "AMOUNT", 200)], "PERCENT", 50)
        assert totals.gross == 1000
        assert totals.line_savings == 200
        assert totals.subtotal == 800
        assert totals.global_discount == 400
        assert totals.final_total == 400

    def test_final_total_floored_at_zero(self):
        totals = calculate_totals([line("A", 100, 1)], "AMOUNT", 1000)
        assert totals.final_total == 0

    def test_negative_line_is_flagged(self):
        totals = calculate_totals([line("A", 100, 1, "AMOUNT", 300), line("B", 500, 1)])
        assert totals.negative_lines == ["A"]
        assert totals.subtotal == 300
        assert totals.final_total == 300

    def test_negative_subtotal_gets_no_global_discount(self):
        totals = calculate_totals([line("A", 100, 1, "AMOUNT", 300)], "PERCENT", 10)
        assert totals.subtotal == -200
        assert totals.global_discount == 0
        assert totals.final_total == 0

    def test_advance_remaining_due(self):
        totals = calculate_totals([line("A", 500, 1)], advance_amount=200)
        assert totals.final_total == 500
        assert totals.remaining_due == 300

    def test_empty_cart(self):
        totals = calculate_totals([])
        assert totals.final_total == 0
        assert totals.remaining_due == 0

    @pytest.mark.parametrize("lines,kind,value", [
        ([line("A", 100, 2)], "AMOUNT", 0),
        ([line("A", 333, 3, "PERCENT", "12.5"), line("B", 99, 7)], "PERCENT", "7.5"),
        ([line("A", 1, 1)], "AMOUNT", 5),
        ([line("A", 250, 4, "AMOUNT", 100), line("B", 1999, 1, "PERCENT", 33)], "AMOUNT", 450),
    ])
    def test_final_total_is_floored_subtotal_less_global(self, lines, kind, value):
        totals = calculate_totals(lines, kind, value)
        assert totals.final_total == max(0, totals.subtotal - totals.global_discount)
        assert totals.final_total >= 0


class TestTotalsFromTransaction:
    def test_reproduces_persisted_amount(self):
        cart = [line("A", 333, 3, "PERCENT", "12.5"), line("B", 99, 7)]
        totals = calculate_totals(cart, "PERCENT", "7.5")

        items = []
        for l in cart:
            _, discount = line_totals(l.price_cents, l.quantity, l.discount_kind, l.discount_value)
            items.append(SimpleNamespace(
                product_id=l.product_id,
                price_cents=l.price_cents,
                quantity=l.quantity,
                discount_cents=discount,
            ))
        tx = SimpleNamespace(
            items=items,
            global_discount_cents=totals.global_discount,
            is_advance=False,
            paid_amount_cents=totals.final_total,
            settled_cents=0,
        )

        assert totals_from_transaction(tx).final_total == totals.final_total

    def test_advance_excludes_later_settlements(self):
        tx = SimpleNamespace(
            items=[SimpleNamespace(product_id="A", price_cents=500, quantity=1, discount_cents=0)],
            global_discount_cents=0,
            is_advance=True,
            paid_amount_cents=350,  # 200 advance + 150 settled later
            settled_cents=150,
        )
        assert totals_from_transaction(tx).remaining_due == 300

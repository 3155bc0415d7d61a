# Overview: Pytest coverage for the aging allocator and aging reports.

from datetime import date, datetime, time, timedelta

import pytest

from ledgerpos.models import Transaction
from ledgerpos.services import aging_service
from ledgerpos.services.aging_service import CreditEvent, allocate_aging


AS_OF = date(2026, 6, 30)


def event(days_ago, amount):
    return CreditEvent(AS_OF - timedelta(days=days_ago), amount)


class TestAllocateAging:
    def test_newest_events_absorb_balance_first(self):
        buckets = allocate_aging(1500, [event(100, 1000), event(45, 700), event(5, 600)], AS_OF)
        assert buckets.to_dict() == {"0-30": 600, "31-60": 700, "61-90": 0, "90+": 200}

    def test_unexplained_balance_is_oldest(self):
        buckets = allocate_aging(1000, [event(10, 300)], AS_OF)
        assert buckets.current == 300
        assert buckets.over_90 == 700

    def test_no_history(self):
        assert allocate_aging(800, [], AS_OF).over_90 == 800

    def test_zero_balance_is_empty(self):
        assert allocate_aging(0, [event(5, 100)], AS_OF).as_list() == [0, 0, 0, 0]

    def test_negative_balance_is_current(self):
        buckets = allocate_aging(-250, [event(100, 400)], AS_OF)
        assert buckets.as_list() == [-250, 0, 0, 0]
        assert buckets.total == -250

    def test_bucket_edges(self):
        buckets = allocate_aging(400, [event(30, 100), event(31, 100), event(60, 50), event(61, 50), event(91, 100)], AS_OF)
        assert buckets.as_list() == [100, 150, 50, 100]

    def test_future_events_are_current(self):
        buckets = allocate_aging(100, [CreditEvent(AS_OF + timedelta(days=3), 100)], AS_OF)
        assert buckets.current == 100

    @pytest.mark.parametrize("balance", [1, 250, 999, 1700, 5000])
    def test_buckets_sum_to_balance(self, balance):
        events = [event(3, 400), event(40, 400), event(70, 400), event(120, 400)]
        assert allocate_aging(balance, events, AS_OF).total == balance


class TestReports:
    def _credit_purchase(self, db_session, vendor, tx_id, amount, days_ago):
        day = date.today() - timedelta(days=days_ago)
        db_session.add(Transaction(
            id=tx_id,
            type="PURCHASE",
            status="COMMITTED",
            amount_cents=amount,
            paid_amount_cents=0,
            balance_due_cents=amount,
            payment_method="CREDIT",
            vendor_id=vendor.id,
            branch_id="MAIN",
            date=datetime.combine(day, time(12, 0)),
            business_date=day,
        ))

    def test_vendor_report(self, db_session, vendor):
        self._credit_purchase(db_session, vendor, "PU-OLD", 5000, 75)
        self._credit_purchase(db_session, vendor, "PU-NEW", 2000, 10)
        vendor.total_balance_cents = 4000
        db_session.commit()

        report = aging_service.vendor_aging_report()

        assert report["as_of"] == date.today().isoformat()
        row = report["parties"][0]
        assert row["vendor_id"] == vendor.id
        assert row["buckets"] == {"0-30": 2000, "31-60": 0, "61-90": 2000, "90+": 0}
        assert sum(s["amount_cents"] for s in report["summary"]) == 4000

    def test_settled_parties_omitted(self, db_session, vendor, customer):
        report = aging_service.customer_aging_report("2026-06-30")
        assert report["parties"] == []
        assert report["as_of"] == "2026-06-30"

    def test_customer_report_uses_advance_balance(self, db_session, customer):
        db_session.add(Transaction(
            id="TX-ADV",
            type="SALE",
            status="COMMITTED",
            amount_cents=500,
            paid_amount_cents=200,
            balance_due_cents=300,
            payment_method="CASH",
            is_advance=True,
            customer_id=customer.id,
            branch_id="MAIN",
            date=datetime.combine(date.today() - timedelta(days=40), time(12, 0)),
            business_date=date.today() - timedelta(days=40),
        ))
        customer.total_credit_cents = 300
        db_session.commit()

        row = aging_service.customer_aging_report()["parties"][0]
        assert row["buckets"]["31-60"] == 300
        assert row["buckets"]["90+"] == 0

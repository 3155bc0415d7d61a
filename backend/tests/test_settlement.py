# Overview: Pytest coverage for checkout, drafts and resume.

"""
Transaction Settlement Tests

Covers the commit flow end to end against the database: validation
failures, payment splits, stock and balance side effects, draft promotion
and the ALREADY_COMMITTED guard.
"""

import pytest
from sqlalchemy.exc import OperationalError

from ledgerpos.extensions import db
from ledgerpos.models import Account, Customer, Product, Transaction
from ledgerpos.services import settlement_service
from ledgerpos.services.pos_session import (
    PosSession,
    INSUFFICIENT_TENDER,
    UNRESOLVED_PARTY,
    DAY_NOT_OPEN,
    ALREADY_COMMITTED,
    STATE_EMPTY,
)
from ledgerpos.services.pricing_service import totals_from_transaction
from ledgerpos.services.document_store import PersistenceFailure
from ledgerpos.services.settlement_service import SettlementError


@pytest.fixture
def sugar(db_session):
    product = Product(id="PRD-SUGAR", name="Sugar 1kg", price_cents=90, cost_cents=60, stock=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def session():
    return PosSession(terminal_id="T1", branch_id="MAIN")


def _cart(session, product, qty=1):
    session.add_line(product)
    if qty != 1:
        session.set_quantity(product.id, qty)


class TestCashCheckout:
    def test_tender_scenario(self, db_session, session, sugar, open_day):
        _cart(session, sugar, 2)
        session.select_payment_method("CASH")
        session.set_tendered(150)

        result = settlement_service.commit(session)
        assert not result.ok
        assert result.failure.reason == INSUFFICIENT_TENDER
        assert session.lines  # preserved for correction

        session.set_tendered(200)
        result = settlement_service.commit(session)
        assert result.ok
        assert result.state == "COMMITTED"
        assert result.change_due_cents == 20
        assert result.transaction.amount_cents == 180
        assert result.transaction.paid_amount_cents == 180
        assert result.transaction.balance_due_cents == 0

    def test_cash_requires_open_day(self, db_session, session, sugar):
        _cart(session, sugar)
        session.select_payment_method("CASH")
        session.set_tendered(100)

        result = settlement_service.commit(session)
        assert result.failure.reason == DAY_NOT_OPEN
        assert db_session.get(Product, "PRD-SUGAR").stock == 10

    def test_commit_side_effects(self, db_session, session, sugar, open_day, cash_account):
        _cart(session, sugar, 3)
        session.select_payment_method("CASH")
        session.set_tendered(270)
        tx_id = session.transaction_id

        result = settlement_service.commit(session)

        assert result.ok
        assert result.transaction.id == tx_id
        assert result.transaction.cost_basis_cents == 180
        assert db_session.get(Product, "PRD-SUGAR").stock == 7
        assert db_session.get(Account, "cash").balance_cents == 270

        # session reset, next mutation gets a fresh id
        assert session.state == STATE_EMPTY
        session.add_line(db_session.get(Product, "PRD-SUGAR"))
        assert session.transaction_id != tx_id

    def test_cash_account_created_on_first_use(self, db_session, session, sugar, open_day):
        _cart(session, sugar)
        session.select_payment_method("CASH")
        session.set_tendered(90)
        settlement_service.commit(session)
        assert db_session.get(Account, "cash").balance_cents == 90


class TestCreditCheckout:
    def test_credit_scenario(self, db_session, session, sugar, customer):
        _cart(session, sugar, 2)
        session.select_payment_method("CREDIT")

        result = settlement_service.commit(session)
        assert result.failure.reason == UNRESOLVED_PARTY

        session.select_customer(customer.id)
        result = settlement_service.commit(session)
        assert result.ok
        tx = result.transaction
        assert tx.paid_amount_cents == 0
        assert tx.balance_due_cents == tx.amount_cents == 180
        assert tx.account_id is None
        assert db_session.get(Customer, customer.id).total_credit_cents == 180

    def test_customer_id_argument_resolves_party(self, db_session, session, sugar, customer):
        _cart(session, sugar)
        session.select_payment_method("CREDIT")
        result = settlement_service.commit(session, customer_id=customer.id)
        assert result.ok
        assert result.transaction.customer_id == customer.id

    def test_unknown_customer_is_unresolved(self, db_session, session, sugar):
        _cart(session, sugar)
        session.select_payment_method("CREDIT")
        session.select_customer("CUS-MISSING")
        result = settlement_service.commit(session)
        assert result.failure.reason == UNRESOLVED_PARTY
        assert session.lines

    def test_advance_scenario(self, db_session, session, customer, open_day, cash_account):
        tv = Product(id="PRD-TV", name="Radio", price_cents=500, cost_cents=300, stock=2)
        db_session.add(tv)
        db_session.commit()

        _cart(session, tv)
        session.select_payment_method("CASH")
        session.toggle_advance(True)
        session.set_advance_amount(200)
        session.set_tendered(200)
        session.select_customer(customer.id)
        assert session.totals().remaining_due == 300

        result = settlement_service.commit(session)
        assert result.ok
        tx = result.transaction
        assert tx.paid_amount_cents == 200
        assert tx.balance_due_cents == 300
        assert db_session.get(Customer, customer.id).total_credit_cents == 300
        assert db_session.get(Account, "cash").balance_cents == 200


class TestInvariants:
    @pytest.mark.parametrize("method,extra", [
        ("CASH", {}),
        ("BANK", {"account_id": "bank-1"}),
        ("CARD", {"account_id": "bank-1"}),
        ("CHEQUE", {"account_id": "bank-1", "cheque": ("000123", "2026-02-01")}),
        ("CREDIT", {"customer": True}),
    ])
    def test_paid_plus_balance_equals_amount(
        self, db_session, session, sugar, customer, bank_account, open_day, method, extra
    ):
        _cart(session, sugar, 3)
        session.set_line_discount(sugar.id, "5", "PERCENT")
        session.set_global_discount(7, "AMOUNT")
        session.select_payment_method(method, extra.get("account_id"))
        if "cheque" in extra:
            session.set_cheque(*extra["cheque"])
        if extra.get("customer"):
            session.select_customer(customer.id)
        session.set_tendered(1000)

        result = settlement_service.commit(session)
        assert result.ok
        tx = result.transaction
        assert tx.paid_amount_cents + tx.balance_due_cents == tx.amount_cents
        assert totals_from_transaction(tx).final_total == tx.amount_cents

    def test_bank_sale_credits_account(self, db_session, session, sugar, bank_account):
        _cart(session, sugar)
        session.select_payment_method("BANK", "bank-1")
        settlement_service.commit(session)
        assert db_session.get(Account, "bank-1").balance_cents == 100090


class TestStock:
    def test_oversell_is_reported_not_blocked(self, db_session, session, soap):
        _cart(session, soap, 3)
        session.select_payment_method("BANK")

        # another terminal sold two in the meantime
        soap.stock = 1
        db_session.commit()

        result = settlement_service.commit(session)
        assert result.ok
        assert result.stock_warnings == [
            {"product_id": "PRD-SOAP", "reason": "OVERSOLD", "requested": 3, "available": 1}
        ]
        assert db_session.get(Product, "PRD-SOAP").stock == 0

    def test_fixed_margin_deducts_cost_value(self, db_session, session, airtime):
        _cart(session, airtime, 10)
        session.select_payment_method("BANK")

        result = settlement_service.commit(session)
        assert result.ok
        # 1000 gross less 4% margin
        assert db_session.get(Product, "PRD-AIRTIME").stock == 50000 - 960
        assert result.transaction.cost_basis_cents == 960

    def test_negative_lines_reported(self, db_session, session, rice, soap):
        _cart(session, soap)
        _cart(session, rice)
        session.set_line_discount(soap.id, 400, "AMOUNT")
        session.select_payment_method("BANK")
        result = settlement_service.commit(session)
        assert result.ok
        assert result.negative_lines == ["PRD-SOAP"]
        assert result.transaction.amount_cents == 850

    def test_rows_locked_in_product_id_order(self, db_session, session, rice, soap, sugar, monkeypatch):
        _cart(session, rice)
        _cart(session, sugar)
        _cart(session, soap)
        session.select_payment_method("BANK")
        locked = []
        decrement = settlement_service._decrement_stock

        def recording(line):
            locked.append(line.product_id)
            return decrement(line)

        monkeypatch.setattr(settlement_service, "_decrement_stock", recording)

        assert settlement_service.commit(session).ok
        assert locked == ["PRD-RICE", "PRD-SOAP", "PRD-SUGAR"]

    def test_lock_failure_becomes_persistence_failure(self, db_session, session, rice, monkeypatch):
        _cart(session, rice, 2)
        session.select_payment_method("BANK")
        tx_id = session.transaction_id

        def deadlocked(line):
            raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("deadlock detected"))

        monkeypatch.setattr(settlement_service, "_decrement_stock", deadlocked)

        with pytest.raises(PersistenceFailure):
            settlement_service.commit(session)
        assert session.transaction_id == tx_id
        assert len(session.lines) == 1
        assert db_session.get(Transaction, tx_id) is None
        assert db_session.get(Product, rice.id).stock == 10


class TestDrafts:
    def test_draft_has_no_side_effects(self, db_session, session, sugar, customer):
        _cart(session, sugar, 4)
        session.select_payment_method("CREDIT")
        session.select_customer(customer.id)

        tx = settlement_service.save_draft(session.snapshot())

        assert tx.status == "DRAFT"
        assert tx.amount_cents == 360
        assert db_session.get(Product, "PRD-SUGAR").stock == 10
        assert db_session.get(Customer, customer.id).total_credit_cents == 0

    def test_repeated_drafts_keep_one_record(self, db_session, session, sugar):
        _cart(session, sugar)
        settlement_service.save_draft(session.snapshot())
        session.set_quantity(sugar.id, 2)
        settlement_service.save_draft(session.snapshot())

        records = db_session.query(Transaction).all()
        assert len(records) == 1
        assert records[0].amount_cents == 180
        assert [i.quantity for i in records[0].items] == [2]

    def test_commit_promotes_draft_in_place(self, db_session, session, sugar):
        _cart(session, sugar)
        session.select_payment_method("BANK")
        draft = settlement_service.save_draft(session.snapshot())

        result = settlement_service.commit(session)

        assert result.transaction.id == draft.id
        assert db_session.query(Transaction).count() == 1
        assert db_session.get(Transaction, draft.id).status == "COMMITTED"

    def test_draft_never_overwrites_committed(self, db_session, session, sugar):
        _cart(session, sugar)
        session.select_payment_method("BANK")
        stale = session.snapshot()
        settlement_service.commit(session)

        assert settlement_service.save_draft(stale) is None
        assert db_session.get(Transaction, stale["transaction_id"]).status == "COMMITTED"

    def test_empty_cart_not_saved(self, db_session, session):
        assert settlement_service.save_draft(session.snapshot()) is None
        assert db_session.query(Transaction).count() == 0

    def test_second_commit_of_same_id_rejected(self, db_session, session, sugar):
        _cart(session, sugar)
        session.select_payment_method("BANK")
        tx_id = session.transaction_id
        settlement_service.commit(session)

        replay = PosSession(terminal_id="T2")
        _cart(replay, db_session.get(Product, "PRD-SUGAR"))
        replay.transaction_id = tx_id
        replay.select_payment_method("BANK")

        result = replay.validate() or settlement_service.commit(replay)
        assert result.failure.reason == ALREADY_COMMITTED
        assert db_session.get(Product, "PRD-SUGAR").stock == 9

    def test_list_and_resume_draft(self, db_session, session, sugar, soap, customer):
        _cart(session, sugar, 2)
        _cart(session, soap, 3)
        session.select_payment_method("CREDIT")
        session.select_customer(customer.id)
        draft = settlement_service.save_draft(session.snapshot())

        assert [d.id for d in settlement_service.list_drafts("MAIN")] == [draft.id]

        # soap sold out since the draft was saved
        soap.stock = 0
        db_session.commit()

        resumed = PosSession(terminal_id="T9")
        skipped = settlement_service.resume_draft(resumed, draft.id)

        assert skipped == ["PRD-SOAP"]
        assert resumed.transaction_id == draft.id
        assert [(l.product_id, l.quantity) for l in resumed.lines] == [("PRD-SUGAR", 2)]
        assert resumed.customer_id == customer.id
        assert resumed.payment_method == "CREDIT"

    def test_resume_rejects_missing_and_committed(self, db_session, session, sugar):
        with pytest.raises(SettlementError):
            settlement_service.resume_draft(PosSession(), "TX-NOPE")

        _cart(session, sugar)
        session.select_payment_method("BANK")
        tx_id = session.transaction_id
        settlement_service.commit(session)

        with pytest.raises(SettlementError):
            settlement_service.resume_draft(PosSession(), tx_id)

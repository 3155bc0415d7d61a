# Overview: Pytest coverage for expenses, transfers, credit payments, voids and ledger audits.

"""
Finance Tests

Every test that moves a party balance finishes with an audit, so the
running totals are checked against what the history derives.
"""

import pytest
from sqlalchemy.exc import OperationalError

from ledgerpos.models import Account, Customer, Product, Transaction, Vendor
from ledgerpos.services import finance_service, ledger_service, purchase_service, settlement_service
from ledgerpos.services.document_store import PersistenceFailure
from ledgerpos.services.finance_service import FinanceError
from ledgerpos.services.pos_session import PosSession


def _credit_sale(product, customer_id, qty=1):
    session = PosSession(branch_id="MAIN")
    session.add_line(product)
    if qty != 1:
        session.set_quantity(product.id, qty)
    session.select_payment_method("CREDIT")
    session.select_customer(customer_id)
    result = settlement_service.commit(session)
    assert result.ok
    return result.transaction


def _assert_no_drift():
    audit = ledger_service.audit_balances()
    assert audit["drift_count"] == 0, audit


class TestExpensesAndTransfers:
    def test_cash_expense_debits_drawer(self, db_session, cash_account):
        tx = finance_service.record_expense(450, description="Electricity")
        assert tx.type == "EXPENSE"
        assert tx.status == "COMMITTED"
        assert tx.id.startswith("EX-")
        assert db_session.get(Account, "cash").balance_cents == -450

    def test_loan_given(self, db_session, cash_account):
        tx = finance_service.record_expense(1000, loan=True)
        assert tx.type == "LOAN_GIVEN"

    def test_expense_from_bank_needs_known_account(self, db_session, bank_account):
        with pytest.raises(FinanceError):
            finance_service.record_expense(100, payment_method="BANK", account_id="bank-9")
        finance_service.record_expense(100, payment_method="BANK", account_id="bank-1")
        assert db_session.get(Account, "bank-1").balance_cents == 99900

    def test_cash_expense_cannot_use_bank_account(self, db_session, cash_account, bank_account):
        with pytest.raises(FinanceError):
            finance_service.record_expense(100, payment_method="CASH", account_id="bank-1")
        with pytest.raises(FinanceError):
            finance_service.record_expense(100, payment_method="BANK", account_id="cash")
        assert db_session.get(Account, "bank-1").balance_cents == 100000

    def test_transfer_between_banks(self, db_session, bank_account):
        db_session.add(Account(id="bank-2", name="Savings", balance_cents=0))
        db_session.commit()
        tx = finance_service.record_transfer(500, "bank-1", "bank-2")
        assert tx.payment_method == "BANK"
        assert db_session.get(Account, "bank-2").balance_cents == 500

    @pytest.mark.parametrize("amount", [0, -5, None])
    def test_amount_must_be_positive(self, db_session, amount):
        with pytest.raises(FinanceError):
            finance_service.record_expense(amount)

    def test_cheque_expense_needs_metadata(self, db_session, bank_account):
        with pytest.raises(FinanceError):
            finance_service.record_expense(100, payment_method="CHEQUE", account_id="bank-1")

    def test_transfer_moves_between_accounts(self, db_session, cash_account, bank_account):
        tx = finance_service.record_transfer(3000, "cash", "bank-1", description="Deposit")
        assert tx.payment_method == "CASH"
        assert db_session.get(Account, "cash").balance_cents == -3000
        assert db_session.get(Account, "bank-1").balance_cents == 103000

    def test_transfer_to_same_account_rejected(self, db_session, bank_account):
        with pytest.raises(FinanceError):
            finance_service.record_transfer(100, "bank-1", "bank-1")


class TestCustomerPayments:
    def test_payment_reduces_credit(self, db_session, rice, customer, cash_account):
        _credit_sale(rice, customer.id, 2)
        finance_service.record_customer_payment(customer.id, 500)

        assert db_session.get(Customer, customer.id).total_credit_cents == 1500
        assert db_session.get(Account, "cash").balance_cents == 500
        _assert_no_drift()

    def test_payment_settles_invoice(self, db_session, rice, customer, cash_account):
        sale = _credit_sale(rice, customer.id)
        finance_service.record_customer_payment(customer.id, 400, parent_transaction_id=sale.id)

        invoice = db_session.get(Transaction, sale.id)
        assert invoice.paid_amount_cents == 400
        assert invoice.balance_due_cents == 600
        assert invoice.paid_amount_cents + invoice.balance_due_cents == invoice.amount_cents
        _assert_no_drift()

    def test_overpaying_invoice_rejected(self, db_session, rice, customer, cash_account):
        sale = _credit_sale(rice, customer.id, 2)
        with pytest.raises(FinanceError):
            finance_service.record_customer_payment(customer.id, 3000, parent_transaction_id=sale.id)

        invoice = db_session.get(Transaction, sale.id)
        assert (invoice.paid_amount_cents, invoice.balance_due_cents) == (0, 2000)
        assert db_session.get(Customer, customer.id).total_credit_cents == 2000

    def test_paying_exact_balance_closes_invoice(self, db_session, rice, customer, cash_account):
        sale = _credit_sale(rice, customer.id, 2)
        finance_service.record_customer_payment(customer.id, 2000, parent_transaction_id=sale.id)

        invoice = db_session.get(Transaction, sale.id)
        assert (invoice.paid_amount_cents, invoice.balance_due_cents) == (2000, 0)
        with pytest.raises(FinanceError):
            finance_service.record_customer_payment(customer.id, 1, parent_transaction_id=sale.id)
        _assert_no_drift()

    def test_paid_cash_sale_cannot_be_settled(self, db_session, rice, customer, open_day, cash_account):
        session = PosSession(branch_id="MAIN")
        session.add_line(rice)
        session.set_quantity(rice.id, 2)
        session.select_payment_method("CASH")
        session.select_customer(customer.id)
        session.set_tendered(2000)
        sale = settlement_service.commit(session).transaction

        with pytest.raises(FinanceError):
            finance_service.record_customer_payment(customer.id, 500, parent_transaction_id=sale.id)
        invoice = db_session.get(Transaction, sale.id)
        assert invoice.paid_amount_cents + invoice.balance_due_cents == invoice.amount_cents

    def test_cash_payment_must_use_drawer(self, db_session, rice, customer, cash_account, bank_account):
        _credit_sale(rice, customer.id)
        with pytest.raises(FinanceError):
            finance_service.record_customer_payment(customer.id, 700, account_id="bank-1")
        assert db_session.get(Account, "bank-1").balance_cents == 100000

        tx = finance_service.record_customer_payment(customer.id, 700, account_id="cash")
        assert tx.account_id == "cash"

    def test_invoice_of_other_customer_rejected(self, db_session, rice, customer):
        sale = _credit_sale(rice, customer.id)
        other = Customer(id="CUS-2", name="Kamal")
        db_session.add(other)
        db_session.commit()
        with pytest.raises(FinanceError):
            finance_service.record_customer_payment("CUS-2", 100, parent_transaction_id=sale.id)

    def test_unknown_customer(self, db_session):
        with pytest.raises(FinanceError):
            finance_service.record_customer_payment("CUS-404", 100)

    def test_credit_method_rejected(self, db_session, customer):
        with pytest.raises(FinanceError):
            finance_service.record_customer_payment(customer.id, 100, payment_method="CREDIT")


class TestVendorPayments:
    def test_vendor_payment_reduces_payable(self, db_session, vendor, rice, cash_account):
        po = purchase_service.create_purchase_order(
            vendor.id, [{"product_id": rice.id, "quantity": 5, "cost_cents": 600}], submit=True
        )
        purchase_service.receive_purchase_order(po.id)
        assert db_session.get(Vendor, vendor.id).total_balance_cents == 3000

        tx = finance_service.record_vendor_payment(vendor.id, 1200)

        assert tx.id.startswith("PV-")
        assert db_session.get(Vendor, vendor.id).total_balance_cents == 1800
        assert db_session.get(Account, "cash").balance_cents == -1200
        _assert_no_drift()

    def test_cash_vendor_payment_must_use_drawer(self, db_session, vendor, bank_account):
        with pytest.raises(FinanceError):
            finance_service.record_vendor_payment(vendor.id, 100, account_id="bank-1")

    def test_unknown_vendor(self, db_session):
        with pytest.raises(FinanceError):
            finance_service.record_vendor_payment("VEN-404", 100)


class TestVoid:
    def test_void_sale_restores_stock_and_credit(self, db_session, rice, customer):
        sale = _credit_sale(rice, customer.id, 3)
        assert db_session.get(Product, rice.id).stock == 7

        voided = finance_service.void_transaction(sale.id, "Customer returned goods")

        assert voided.status == "VOID"
        assert voided.void_reason == "Customer returned goods"
        assert db_session.get(Product, rice.id).stock == 10
        assert db_session.get(Customer, customer.id).total_credit_cents == 0
        _assert_no_drift()

    def test_void_cash_sale_reverses_drawer(self, db_session, rice, open_day, cash_account):
        session = PosSession(branch_id="MAIN")
        session.add_line(rice)
        session.select_payment_method("CASH")
        session.set_tendered(1000)
        sale = settlement_service.commit(session).transaction

        finance_service.void_transaction(sale.id, "Wrong item")
        assert db_session.get(Account, "cash").balance_cents == 0

    def test_void_payment_reopens_invoice(self, db_session, rice, customer, cash_account):
        sale = _credit_sale(rice, customer.id)
        payment = finance_service.record_customer_payment(customer.id, 400, parent_transaction_id=sale.id)

        finance_service.void_transaction(payment.id, "Bounced")

        invoice = db_session.get(Transaction, sale.id)
        assert invoice.paid_amount_cents == 0
        assert invoice.balance_due_cents == 1000
        assert db_session.get(Customer, customer.id).total_credit_cents == 1000
        _assert_no_drift()

    def test_settled_sale_cannot_be_voided(self, db_session, rice, customer, cash_account):
        sale = _credit_sale(rice, customer.id)
        finance_service.record_customer_payment(customer.id, 400, parent_transaction_id=sale.id)
        with pytest.raises(FinanceError):
            finance_service.void_transaction(sale.id, "Oops")

    def test_void_store_error_leaves_record_committed(self, db_session, rice, customer, monkeypatch):
        sale = _credit_sale(rice, customer.id)

        def deadlocked(tx):
            raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("deadlock detected"))

        monkeypatch.setattr(finance_service, "_restore_stock", deadlocked)

        with pytest.raises(PersistenceFailure):
            finance_service.void_transaction(sale.id, "Duplicate")
        assert db_session.get(Transaction, sale.id).status == "COMMITTED"
        assert db_session.get(Customer, customer.id).total_credit_cents == 1000

    def test_void_draft_has_no_effects(self, db_session, rice):
        session = PosSession(branch_id="MAIN")
        session.add_line(rice)
        draft = settlement_service.save_draft(session.snapshot())

        finance_service.void_transaction(draft.id, "Abandoned")

        assert db_session.get(Transaction, draft.id).status == "VOID"
        assert db_session.get(Product, rice.id).stock == 10

    def test_void_requires_reason_and_is_once_only(self, db_session, rice, customer):
        sale = _credit_sale(rice, customer.id)
        with pytest.raises(FinanceError):
            finance_service.void_transaction(sale.id, "  ")
        finance_service.void_transaction(sale.id, "Duplicate")
        with pytest.raises(FinanceError):
            finance_service.void_transaction(sale.id, "Again")


class TestLedgerAudit:
    def test_drift_detected_and_rebuilt(self, db_session, rice, customer):
        _credit_sale(rice, customer.id, 2)

        record = db_session.get(Customer, customer.id)
        record.total_credit_cents = 99
        db_session.commit()

        audit = ledger_service.audit_balances()
        assert audit["drift_count"] == 1
        assert audit["customers"][0]["history_cents"] == 2000

        rebuilt = ledger_service.rebuild_customer_balance(customer.id)
        assert rebuilt.total_credit_cents == 2000
        _assert_no_drift()

    def test_advance_sale_history_matches(self, db_session, customer, bank_account):
        tv = Product(id="PRD-TV", name="Radio", price_cents=500, cost_cents=300, stock=2)
        db_session.add(tv)
        db_session.commit()

        session = PosSession(branch_id="MAIN")
        session.add_line(tv)
        session.select_payment_method("BANK", "bank-1")
        session.toggle_advance(True)
        session.set_advance_amount(200)
        session.select_customer(customer.id)
        sale = settlement_service.commit(session).transaction

        finance_service.record_customer_payment(
            customer.id, 100, payment_method="BANK", account_id="bank-1", parent_transaction_id=sale.id
        )

        assert db_session.get(Customer, customer.id).total_credit_cents == 200
        assert db_session.get(Account, "bank-1").balance_cents == 100000 + 200 + 100
        _assert_no_drift()

    def test_list_transactions_filters(self, db_session, rice, customer, cash_account):
        _credit_sale(rice, customer.id)
        finance_service.record_expense(100)
        assert [t.type for t in finance_service.list_transactions(tx_type="EXPENSE")] == ["EXPENSE"]
        assert len(finance_service.list_transactions(status="COMMITTED")) == 2


class TestJournal:
    def test_describe_names_party_and_products(self, db_session, rice, customer):
        tx = _credit_sale(rice, customer.id, qty=2)
        data = finance_service.describe_transaction(finance_service.get_transaction(tx.id))
        assert data["party"] == "Nimal Perera"
        assert data["items"][0]["name"] == "Rice 5kg"

    def test_describe_falls_back_for_missing_records(self, db_session, rice, customer, cash_account):
        tx = _credit_sale(rice, customer.id)
        db_session.delete(db_session.get(Product, rice.id))
        db_session.commit()
        data = finance_service.describe_transaction(tx)
        assert data["items"][0]["name"] == "Unknown product (PRD-RICE)"

        expense = finance_service.record_expense(100)
        assert finance_service.describe_transaction(expense, include_items=False)["party"] == "Walk-in"

    def test_unknown_transaction(self, db_session):
        with pytest.raises(FinanceError):
            finance_service.get_transaction("TX-NOPE")

# Overview: Pytest coverage for the HTTP API through the Flask test client.

from ledgerpos.models import Product, Transaction


class TestSystem:
    def test_health(self, client, db_session):
        res = client.get("/api/health")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_version(self, client):
        res = client.get("/api/version")
        assert res.status_code == 200
        assert "api_version" in res.get_json()

    def test_timestamps_are_single_utc_suffix(self, client, db_session):
        stamp = client.get("/api/health").get_json()["timestamp"]
        assert stamp.endswith("Z")
        assert "+00:00" not in stamp
        assert client.get("/api/version").get_json()["server_time"].endswith("Z")


class TestPosFlow:
    def test_cash_checkout(self, client, db_session, rice, open_day):
        res = client.post("/api/pos/T1/scan", json={"code": "rice-5"})
        assert res.status_code == 200
        session = res.get_json()["session"]
        assert session["state"] == "BUILDING"
        tx_id = session["transaction_id"]

        client.patch("/api/pos/T1/lines/PRD-RICE", json={"quantity": 2})
        client.put("/api/pos/T1/payment", json={"method": "CASH"})
        res = client.put("/api/pos/T1/tender", json={"amount_cents": 1500})
        assert res.get_json()["session"]["state"] == "CASH_PENDING"

        res = client.post("/api/pos/T1/commit", json={})
        assert res.status_code == 422
        assert res.get_json()["reason"] == "INSUFFICIENT_TENDER"

        client.put("/api/pos/T1/tender", json={"amount_cents": 2500})
        res = client.post("/api/pos/T1/commit", json={})
        assert res.status_code == 201
        body = res.get_json()
        assert body["state"] == "COMMITTED"
        assert body["transaction"]["id"] == tx_id
        assert body["change_due_cents"] == 500
        assert db_session.get(Product, "PRD-RICE").stock == 8

        res = client.get("/api/pos/T1")
        assert res.get_json()["session"]["state"] == "EMPTY"

    def test_unknown_scan(self, client, db_session):
        res = client.post("/api/pos/T1/scan", json={"code": "NOPE"})
        assert res.status_code == 404

    def test_bad_quantity(self, client, db_session, rice):
        client.post("/api/pos/T1/lines", json={"product_id": "PRD-RICE"})
        res = client.patch("/api/pos/T1/lines/PRD-RICE", json={"quantity": "two"})
        assert res.status_code == 400

    def test_credit_needs_customer(self, client, db_session, rice, customer):
        client.post("/api/pos/T1/lines", json={"product_id": "PRD-RICE"})
        client.put("/api/pos/T1/payment", json={"method": "CREDIT"})
        res = client.post("/api/pos/T1/commit", json={})
        assert res.status_code == 422
        assert res.get_json()["reason"] == "UNRESOLVED_PARTY"

        res = client.post("/api/pos/T1/commit", json={"customer_id": customer.id})
        assert res.status_code == 201

    def test_autosave_flush_and_resume(self, client, db_session, rice, timers):
        res = client.post("/api/pos/T1/lines", json={"product_id": "PRD-RICE"})
        tx_id = res.get_json()["session"]["transaction_id"]

        res = client.post("/api/pos/T1/autosave")
        assert res.get_json()["written"] is True
        assert db_session.get(Transaction, tx_id).status == "DRAFT"

        client.post("/api/pos/T1/abandon")
        drafts = client.get("/api/pos/drafts").get_json()["drafts"]
        assert [d["id"] for d in drafts] == [tx_id]

        res = client.post("/api/pos/T2/resume", json={"transaction_id": tx_id})
        assert res.status_code == 200
        body = res.get_json()
        assert body["session"]["transaction_id"] == tx_id
        assert body["skipped_products"] == []

    def test_resume_unknown(self, client, db_session):
        res = client.post("/api/pos/T1/resume", json={"transaction_id": "TX-NOPE"})
        assert res.status_code == 404

    def test_autosave_timer_writes_draft(self, client, db_session, rice, timers):
        res = client.post("/api/pos/T1/lines", json={"product_id": "PRD-RICE"})
        tx_id = res.get_json()["session"]["transaction_id"]

        timers.fire_pending()

        assert db_session.get(Transaction, tx_id).status == "DRAFT"


class TestDaysAndReports:
    def test_open_status_close(self, client, db_session):
        res = client.post("/api/days/open", json={"opening_balance_cents": 5000})
        assert res.status_code == 201

        res = client.post("/api/days/open", json={"opening_balance_cents": 5000})
        assert res.status_code == 409

        status = client.get("/api/days/status").get_json()
        assert status["is_open"] is True
        assert status["cash_flow"]["expected_cash_cents"] == 5000

        res = client.post("/api/days/close", json={"actual_closing_cents": 5100})
        assert res.status_code == 200
        assert res.get_json()["variance"] == 100

    def test_open_rejects_bad_amount(self, client, db_session):
        res = client.post("/api/days/open", json={"opening_balance_cents": "5000"})
        assert res.status_code == 400

    def test_expense_and_cash_report(self, client, db_session, open_day, cash_account):
        res = client.post("/api/finance/expenses", json={"amount_cents": 300, "description": "Tea"})
        assert res.status_code == 201

        report = client.get("/api/reports/cash").get_json()
        assert report["cash_flow"]["expected_cash_cents"] == 10000 - 300
        assert report["accounts"]["cash_cents"] == -300

    def test_void_unknown(self, client, db_session):
        res = client.post("/api/finance/transactions/TX-NOPE/void", json={"reason": "x"})
        assert res.status_code == 404

    def test_purchase_receive_and_aging(self, client, db_session, vendor, rice):
        res = client.post("/api/purchases", json={
            "vendor_id": vendor.id,
            "items": [{"product_id": rice.id, "quantity": 4, "cost_cents": 700}],
            "submit": True,
        })
        assert res.status_code == 201
        po_id = res.get_json()["purchase_order"]["id"]

        res = client.post(f"/api/purchases/{po_id}/receive")
        assert res.status_code == 200

        aging = client.get("/api/reports/aging/vendors").get_json()
        assert aging["parties"][0]["buckets"]["0-30"] == 2800

        audit = client.get("/api/reports/ledger-audit").get_json()
        assert audit["drift_count"] == 0


class TestDirectory:
    def test_create_and_list_products(self, client, db_session, grocery):
        res = client.post("/api/catalog/products", json={"name": "Tea 100g", "price_cents": 350, "category_id": "grocery"})
        assert res.status_code == 201

        res = client.post("/api/catalog/products", json={"name": "Bad", "price_cents": -1})
        assert res.status_code == 400

        items = client.get("/api/catalog/products").get_json()["items"]
        assert [p["name"] for p in items] == ["Tea 100g"]

    def test_customer_crud(self, client, db_session):
        res = client.post("/api/parties/customers", json={"name": "Ruwan"})
        assert res.status_code == 201
        customer_id = res.get_json()["id"]

        res = client.patch(f"/api/parties/customers/{customer_id}", json={"phone": "0771111111"})
        assert res.status_code == 200
        assert res.get_json()["phone"] == "0771111111"


class TestJournal:
    def test_transaction_detail(self, client, db_session, open_day, cash_account):
        tx_id = client.post("/api/finance/expenses", json={"amount_cents": 200}).get_json()["transaction"]["id"]

        res = client.get(f"/api/finance/transactions/{tx_id}")
        assert res.status_code == 200
        assert res.get_json()["transaction"]["party"] == "Walk-in"

        journal = client.get("/api/finance/transactions").get_json()["transactions"]
        assert [t["id"] for t in journal] == [tx_id]

        assert client.get("/api/finance/transactions/TX-NOPE").status_code == 404

# Overview: Pytest coverage for catalog and party directory services.

from decimal import Decimal

import pytest

from ledgerpos.services import catalog_service, party_service
from ledgerpos.services.identifier_service import lookup_product
from ledgerpos.validation import ConflictError, ValidationError


class TestCategories:
    def test_create_derives_id_from_name(self, db_session):
        category = catalog_service.create_category({"name": "Mobile Reload", "pricing_policy": "FIXED_MARGIN_PERCENT", "fixed_margin_percent": "3.5"})
        assert category.id == "mobilereload"
        assert category.fixed_margin_percent == Decimal("3.5")
        assert category.is_fixed_margin

    def test_duplicate_rejected(self, db_session, grocery):
        with pytest.raises(ConflictError):
            catalog_service.create_category({"name": "Grocery"})

    @pytest.mark.parametrize("payload", [
        {"name": "X", "pricing_policy": "BOGUS"},
        {"name": "X", "fixed_margin_percent": 100},
        {"name": "X", "fixed_margin_percent": -1},
        {"pricing_policy": "STANDARD"},
    ])
    def test_invalid_payloads(self, db_session, payload):
        with pytest.raises(ValidationError):
            catalog_service.create_category(payload)

    def test_update(self, db_session, grocery):
        updated = catalog_service.update_category(grocery.id, {"name": "Groceries"})
        assert updated.name == "Groceries"
        assert [c.id for c in catalog_service.list_categories()] == ["grocery"]


class TestProducts:
    def test_create_product(self, db_session, grocery):
        product = catalog_service.create_product({
            "name": "Dhal 1kg",
            "sku": "DHAL-1",
            "price_cents": 450,
            "cost_cents": 380,
            "stock": 12,
            "category_id": grocery.id,
        })
        assert product.id.startswith("PRD-")
        assert catalog_service.get_product(product.id).price_cents == 450

    def test_sku_unique_case_insensitive(self, db_session, rice):
        with pytest.raises(ConflictError):
            catalog_service.create_product({"name": "Other", "sku": "rice-5", "price_cents": 1})

    def test_unknown_category(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "X", "price_cents": 1, "category_id": "nope"})

    @pytest.mark.parametrize("payload", [
        {"name": "X", "price_cents": -1},
        {"name": "X", "price_cents": 12.5},
        {"name": "X", "price_cents": 1, "low_stock_threshold": -2},
        {"name": "X", "price_cents": 1, "total_sold": 5},
        {"price_cents": 1},
    ])
    def test_invalid_payloads(self, db_session, payload):
        with pytest.raises(ValidationError):
            catalog_service.create_product(payload)

    def test_update_price(self, db_session, rice):
        assert catalog_service.update_product(rice.id, {"price_cents": 1100}).price_cents == 1100

    def test_low_stock_listing(self, db_session, rice, soap):
        catalog_service.update_product(rice.id, {"stock": 2})
        assert [p.id for p in catalog_service.list_products(low_stock_only=True)] == ["PRD-RICE"]
        assert len(catalog_service.list_products(category_id="grocery")) == 2

    def test_scan_lookup_by_id_or_sku(self, db_session, rice):
        assert lookup_product("PRD-RICE").id == rice.id
        assert lookup_product(" rice-5 ").id == rice.id
        assert lookup_product("UNKNOWN") is None


class TestParties:
    def test_customer_balance_starts_at_zero(self, db_session):
        customer = party_service.create_customer({"name": "Saman", "phone": "0712222222"})
        assert customer.id.startswith("CUS-")
        assert customer.total_credit_cents == 0

    def test_customer_balance_not_writable(self, db_session):
        with pytest.raises(ValidationError):
            party_service.create_customer({"name": "Saman", "total_credit_cents": 500})

    def test_update_customer(self, db_session, customer):
        assert party_service.update_customer(customer.id, {"phone": "0119999999"}).phone == "0119999999"
        with pytest.raises(ValidationError):
            party_service.update_customer("CUS-404", {"phone": "1"})

    def test_list_with_balance(self, db_session, customer):
        assert party_service.list_customers(with_balance_only=True) == []
        assert [c.id for c in party_service.list_customers()] == [customer.id]

    def test_vendor(self, db_session):
        vendor = party_service.create_vendor({"name": "Ceylon Supplies"}, vendor_id="VEN-9")
        assert vendor.id == "VEN-9"
        with pytest.raises(ConflictError):
            party_service.create_vendor({"name": "Again"}, vendor_id="VEN-9")

    def test_update_vendor(self, db_session, vendor):
        assert party_service.update_vendor(vendor.id, {"contact_person": "Kamal"}).contact_person == "Kamal"
        with pytest.raises(ValidationError):
            party_service.update_vendor(vendor.id, {"total_balance_cents": 0})

    def test_accounts(self, db_session):
        party_service.create_account("bank-2", "Savings", "778-1", 2500)
        assert [(a.id, a.balance_cents) for a in party_service.list_accounts()] == [("bank-2", 2500)]
        with pytest.raises(ConflictError):
            party_service.create_account("bank-2", "Dup")
        with pytest.raises(ValidationError):
            party_service.create_account("bank-3", "Bad", opening_balance_cents="10")

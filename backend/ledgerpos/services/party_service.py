# Overview: Service-layer operations for customers, vendors and accounts.

"""
Party Directory Service

WHY: Credit sales, advance sales and payments need a resolvable customer;
purchases need a vendor; non-cash payments need an account. Running
balances on these rows are written only by ledger_service.

DESIGN:
- Balances are never accepted from the client; they start at zero
- Ids are generated (CUS-/VEN-) unless the caller supplies one
"""

from __future__ import annotations

from ..extensions import db
from ..models import Account, Customer, Vendor
from ..validation import (
    ConflictError,
    ValidationError,
    enforce_rules_customer,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .identifier_service import new_record_id, PREFIX_CUSTOMER, PREFIX_VENDOR


def create_customer(payload: dict, customer_id: str | None = None) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, partial=False)
    enforce_rules_customer(patch)

    def _op():
        cid = customer_id or new_record_id(PREFIX_CUSTOMER)
        if db.session.get(Customer, cid):
            raise ConflictError(f"Customer already exists: {cid}")
        customer = Customer(id=cid, total_credit_cents=0, **patch)
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer(customer_id: str, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, partial=True)
    enforce_rules_customer(patch)

    def _op():
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if not customer:
            raise ValidationError("Customer not found")
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def list_customers(with_balance_only: bool = False) -> list[Customer]:
    query = db.session.query(Customer)
    if with_balance_only:
        query = query.filter(Customer.total_credit_cents > 0)
    return query.order_by(Customer.name.asc()).all()


def create_vendor(payload: dict, vendor_id: str | None = None) -> Vendor:
    patch = validate_payload(model=Vendor, payload=payload, partial=False)

    def _op():
        vid = vendor_id or new_record_id(PREFIX_VENDOR)
        if db.session.get(Vendor, vid):
            raise ConflictError(f"Vendor already exists: {vid}")
        vendor = Vendor(id=vid, total_balance_cents=0, **patch)
        db.session.add(vendor)
        db.session.commit()
        return vendor

    return run_with_retry(_op)


def update_vendor(vendor_id: str, payload: dict) -> Vendor:
    patch = validate_payload(model=Vendor, payload=payload, partial=True)

    def _op():
        vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).first()
        if not vendor:
            raise ValidationError("Vendor not found")
        for key, value in patch.items():
            setattr(vendor, key, value)
        db.session.commit()
        return vendor

    return run_with_retry(_op)


def list_vendors(with_balance_only: bool = False) -> list[Vendor]:
    query = db.session.query(Vendor)
    if with_balance_only:
        query = query.filter(Vendor.total_balance_cents > 0)
    return query.order_by(Vendor.name.asc()).all()


def create_account(account_id: str, name: str, account_number: str | None = None, opening_balance_cents: int = 0) -> Account:
    """Register a cash or bank account. The opening balance is the only direct balance write."""
    if not account_id or not account_id.strip():
        raise ValidationError("Account id is required")
    if not name or not name.strip():
        raise ValidationError("Account name is required")
    if not isinstance(opening_balance_cents, int) or isinstance(opening_balance_cents, bool):
        raise ValidationError("opening_balance_cents must be an integer")

    def _op():
        if db.session.get(Account, account_id.strip()):
            raise ConflictError(f"Account already exists: {account_id}")
        account = Account(
            id=account_id.strip(),
            name=name.strip(),
            account_number=account_number,
            balance_cents=opening_balance_cents,
        )
        db.session.add(account)
        db.session.commit()
        return account

    return run_with_retry(_op)


def list_accounts() -> list[Account]:
    return db.session.query(Account).order_by(Account.id.asc()).all()

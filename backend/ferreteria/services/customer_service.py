# Overview: Customer directory lookups, creation and credit-limit rules.

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import CreditAccountEntry, Customer
from .concurrency import run_with_retry
from .credit_service import append_entry

WALK_IN_NAME = "CONSUMIDOR FINAL"

CUSTOMER_MUTABLE_FIELDS = {
    "first_name", "last_name", "document_type", "document_number", "address",
    "phone", "email", "credit_enabled", "credit_limit_cents", "is_active",
}


def get_customer(customer_id: int | None) -> Customer | None:
    if customer_id is None:
        return None
    return db.session.get(Customer, customer_id)


def display_name(customer: Customer | None) -> str:
    if customer is None:
        return WALK_IN_NAME
    first = (customer.first_name or "").strip()
    last = (customer.last_name or "").strip()
    return f"{first} {last}".strip() or WALK_IN_NAME


def effective_credit_limit(customer: Customer | None) -> int:
    """Credit limit in cents; 0 unless credit is enabled for the customer."""
    if customer is None or not customer.credit_enabled:
        return 0
    return max(0, int(customer.credit_limit_cents or 0))


def create_customer(*, fields: dict, initial_balance_cents: int = 0, operator_id: int | None = None) -> Customer:
    """
    Register a customer. A non-zero initial balance is booked as an
    opening ADJUSTMENT in the same transaction.
    """
    clean = {k: v for k, v in fields.items() if k in CUSTOMER_MUTABLE_FIELDS}
    clean["first_name"] = (clean.get("first_name") or "").strip()
    if not clean["first_name"]:
        raise ValidationError("first_name is required")
    if int(clean.get("credit_limit_cents") or 0) < 0:
        raise ValidationError("credit_limit_cents must be >= 0")

    def _op():
        customer = Customer(**clean)
        db.session.add(customer)
        db.session.flush()
        if initial_balance_cents:
            append_entry(
                customer_id=customer.id,
                entry_type=CreditAccountEntry.ADJUSTMENT,
                amount_cents=initial_balance_cents,
                operator_id=operator_id,
                description="Saldo inicial",
            )
        db.session.commit()
        return customer

    customer = run_with_retry(_op)
    current_app.logger.info("Created customer %s", customer.id)
    return customer

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Registered customer. Store-credit sales are only allowed for customers
    with credit_enabled; the limit is ignored (treated as 0) otherwise.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active", "is_active"),
        db.Index("ix_customers_document", "document_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=True)
    document_type = db.Column(db.String(16), nullable=True)
    document_number = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    credit_enabled = db.Column(db.Boolean, nullable=False, default=False)
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "document_type": self.document_type,
            "document_number": self.document_number,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "credit_enabled": self.credit_enabled,
            "credit_limit_cents": self.credit_limit_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class CreditAccountEntry(db.Model):
    """
    Append-only customer account ledger.

    TYPES:
    - DEBT: store-credit purchase (increases what the customer owes)
    - PAYMENT: money received (decreases it)
    - ADJUSTMENT: signed correction, e.g. opening balance

    Balance = sum(DEBT) + sum(ADJUSTMENT) - sum(PAYMENT); positive means owed.
    """
    __tablename__ = "credit_account_entries"
    __table_args__ = (
        db.Index("ix_credit_entries_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    DEBT = "DEBT"
    PAYMENT = "PAYMENT"
    ADJUSTMENT = "ADJUSTMENT"
    TYPES = (DEBT, PAYMENT, ADJUSTMENT)

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    entry_type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("credit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "type": self.entry_type,
            "amount_cents": self.amount_cents,
            "sale_id": self.sale_id,
            "operator_id": self.operator_id,
            "description": self.description,
            "occurred_at": to_utc_z(self.occurred_at),
            "due_at": to_utc_z(self.due_at),
        }

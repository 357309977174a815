from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Confirmed point-of-sale transaction.

    Created atomically with its lines, one payment, an optional invoice
    and the CREATED audit entry. Immutable afterwards.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_occurred", "occurred_at"),
        db.Index("ix_sales_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    CUSTOMER_WALK_IN = "WALK_IN"
    CUSTOMER_REGISTERED = "REGISTERED"
    CUSTOMER_TYPES = (CUSTOMER_WALK_IN, CUSTOMER_REGISTERED)

    PAYMENT_CASH = "CASH"
    PAYMENT_STORE_CREDIT = "STORE_CREDIT"
    PAYMENT_TYPES = (PAYMENT_CASH, PAYMENT_STORE_CREDIT)

    STATUS_CONFIRMED = "CONFIRMED"

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    customer_type = db.Column(db.String(16), nullable=False, default=CUSTOMER_WALK_IN)
    payment_type = db.Column(db.String(16), nullable=False, default=PAYMENT_CASH)

    total_cents = db.Column(db.Integer, nullable=False)
    total_in_words = db.Column(db.String(512), nullable=False)

    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_CONFIRMED, index=True)
    notes = db.Column(db.Text, nullable=True)

    customer = db.relationship("Customer")
    operator = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "customer_id": self.customer_id,
            "customer_type": self.customer_type,
            "payment_type": self.payment_type,
            "total_cents": self.total_cents,
            "total_in_words": self.total_in_words,
            "operator_id": self.operator_id,
            "status": self.status,
            "notes": self.notes,
        }


class SaleLine(db.Model):
    """Line item with description and price snapshots taken at sale time."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    allow_below_stock = db.Column(db.Boolean, nullable=False, default=False)

    sale = db.relationship(
        "Sale",
        backref=db.backref("lines", lazy=True, order_by="SaleLine.line_number"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "allow_below_stock": self.allow_below_stock,
        }


class Payment(db.Model):
    """
    Payment record for a sale. One per sale: CASH or STORE_CREDIT for the
    full total.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    payment_type = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    detail = db.Column(db.String(255), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_type": self.payment_type,
            "amount_cents": self.amount_cents,
            "detail": self.detail,
        }


class Invoice(db.Model):
    """
    Fiscal document snapshot. Customer data is copied so later edits to the
    customer do not alter issued invoices.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_invoices_sale"),
        db.UniqueConstraint("invoice_type", "point_of_sale", "number", name="uq_invoices_type_pos_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    invoice_type = db.Column(db.String(16), nullable=False, default="FACTURA_B")
    point_of_sale = db.Column(db.Integer, nullable=False, default=1)
    number = db.Column(db.Integer, nullable=False)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    total_cents = db.Column(db.Integer, nullable=False)
    total_in_words = db.Column(db.String(512), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_document = db.Column(db.String(32), nullable=True)
    customer_address = db.Column(db.String(255), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("invoice", uselist=False, lazy=True))

    @property
    def display_number(self) -> str:
        return f"{self.invoice_type} {self.point_of_sale:04d}-{self.number:08d}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "invoice_type": self.invoice_type,
            "point_of_sale": self.point_of_sale,
            "number": self.number,
            "display_number": self.display_number,
            "issued_at": to_utc_z(self.issued_at),
            "total_cents": self.total_cents,
            "total_in_words": self.total_in_words,
            "customer_name": self.customer_name,
            "customer_document": self.customer_document,
            "customer_address": self.customer_address,
        }


class InvoiceSequence(db.Model):
    """
    Atomic per (invoice type, point of sale) numbering.

    WHY: Invoice numbers must be gap-free and unique even when two sales
    commit at the same time.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("invoice_type", "point_of_sale", name="uq_invoice_seq_type_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_type = db.Column(db.String(16), nullable=False)
    point_of_sale = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class SaleAudit(db.Model):
    """Per-sale audit trail, written inside the sale's own transaction."""
    __tablename__ = "sale_audits"
    __table_args__ = {"sqlite_autoincrement": True}

    CREATED = "CREATED"
    CREDIT_LIMIT_OVERRIDE = "CREDIT_LIMIT_OVERRIDE"

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    action = db.Column(db.String(32), nullable=False)
    detail = db.Column(db.String(255), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("audit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "operator_id": self.operator_id,
            "action": self.action,
            "detail": self.detail,
        }

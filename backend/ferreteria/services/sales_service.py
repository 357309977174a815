# Overview: Point-of-sale transaction: validation, atomic commit with credit debt, post-commit stock egress.

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    BusinessError,
    CreditLimitExceeded,
    CreditRequiresCustomer,
    CustomerNotFound,
    CustomerRequired,
    EmptySale,
    InsufficientStock,
    InvalidQuantity,
    NotFound,
    SaleValidationError,
    UnknownProduct,
    ValidationError,
)
from ..extensions import db
from ..models import (
    CreditAccountEntry,
    Customer,
    Invoice,
    InvoiceSequence,
    Payment,
    Product,
    Sale,
    SaleAudit,
    SaleLine,
    User,
)
from ..number_words import amount_in_words
from ..permissions import Capability, PermissionDeniedError
from ..time_utils import days_from_now, utcnow
from . import audit_service, credit_service, stock_service
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .customer_service import display_name, effective_credit_limit
from .pagination import Page, paginate

"""
Sale invariants (authoritative)

- Nothing is written unless every line and sale-level check passes; all
  problems found are reported together in one SaleValidationError.
- Prices and stock are re-read at confirmation time; client-sent prices
  are never trusted.
- The sale header, its lines, the single payment, the optional invoice and
  the CREATED audit entry commit in one transaction.
- Invoice numbers are allocated per (type, point of sale) inside that
  transaction, so they are unique and gap-free.
- A store-credit sale writes its DEBT entry in that same transaction, so
  the balance read by the credit check and the debt it allows are never
  split by a commit; concurrent credit sales for one customer serialize.
- Stock egress runs AFTER the commit, one transaction per line. A failure
  there does not undo the sale: it is logged, written to the audit log
  and returned in SaleResult.post_commit_failures so the caller (or a
  reconciliation job) can act on it.
"""


@dataclass
class SaleLineRequest:
    product_id: int
    quantity: int
    allow_below_stock: bool = False


@dataclass
class SaleRequest:
    lines: list[SaleLineRequest]
    customer_type: str = Sale.CUSTOMER_WALK_IN
    customer_id: int | None = None
    payment_type: str = Sale.PAYMENT_CASH
    override_credit_limit: bool = False
    issue_invoice: bool = True
    notes: str | None = None


@dataclass
class PostCommitFailure:
    step: str
    error: str
    product_id: int | None = None
    line_number: int | None = None

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "error": self.error,
            "product_id": self.product_id,
            "line_number": self.line_number,
        }


@dataclass
class SaleResult:
    sale: Sale
    lines: list[SaleLine]
    invoice: Invoice | None
    post_commit_failures: list[PostCommitFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "invoice": self.invoice.to_dict() if self.invoice else None,
            "post_commit_failures": [f.to_dict() for f in self.post_commit_failures],
        }


@dataclass
class Receipt:
    sale: Sale
    lines: list[SaleLine]
    invoice: Invoice | None
    payments: list[Payment]

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "invoice": self.invoice.to_dict() if self.invoice else None,
            "payments": [p.to_dict() for p in self.payments],
            "customer_name": self.invoice.customer_name if self.invoice else display_name(self.sale.customer),
        }


@dataclass
class _CheckedSale:
    priced: list[tuple[SaleLineRequest, Product]]
    total_cents: int
    customer: Customer | None
    override_detail: str | None


def format_invoice_number(invoice: Invoice) -> str:
    """e.g. "FACTURA_B 0001-00000001"."""
    return invoice.display_number


def next_invoice_number(invoice_type: str, point_of_sale: int) -> int:
    """
    Allocate the next number for (invoice_type, point_of_sale) in the
    current transaction. Does not commit.
    """
    stmt = (
        update(InvoiceSequence)
        .where(
            InvoiceSequence.invoice_type == invoice_type,
            InvoiceSequence.point_of_sale == point_of_sale,
        )
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _read_allocated() -> int:
        current = (
            db.session.query(InvoiceSequence.next_number)
            .filter_by(invoice_type=invoice_type, point_of_sale=point_of_sale)
            .scalar()
        )
        return int(current) - 1

    if db.session.execute(stmt).rowcount:
        return _read_allocated()

    if db.session.get_bind().dialect.name == "sqlite":
        # create_sale holds BEGIN IMMEDIATE, no concurrent creator possible
        db.session.add(InvoiceSequence(invoice_type=invoice_type, point_of_sale=point_of_sale, next_number=2))
        db.session.flush()
        return 1

    try:
        with db.session.begin_nested():
            db.session.add(InvoiceSequence(invoice_type=invoice_type, point_of_sale=point_of_sale, next_number=2))
        return 1
    except IntegrityError:
        # another writer created the sequence first
        if not db.session.execute(stmt).rowcount:
            raise
        return _read_allocated()


def _check_sale(request: SaleRequest, operator: User) -> _CheckedSale:
    """Run every validation step, collecting errors instead of stopping at the first."""
    errors: list[BusinessError] = []

    if request.customer_type not in Sale.CUSTOMER_TYPES:
        errors.append(ValidationError("unknown customer type", details={"customer_type": request.customer_type}))
    if request.payment_type not in Sale.PAYMENT_TYPES:
        errors.append(ValidationError("unknown payment type", details={"payment_type": request.payment_type}))

    if not request.lines:
        errors.append(EmptySale("a sale needs at least one line"))

    product_ids = {line.product_id for line in request.lines}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}

    priced: list[tuple[SaleLineRequest, Product]] = []
    priced_line_numbers: list[int] = []
    for line_number, line in enumerate(request.lines, start=1):
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            errors.append(InvalidQuantity(
                "quantity must be a positive integer",
                details={"line": line_number, "product_id": line.product_id, "quantity": qty},
            ))
            continue
        product = products.get(line.product_id)
        if product is None or not product.is_active:
            errors.append(UnknownProduct(
                "product not found or inactive",
                details={"line": line_number, "product_id": line.product_id},
            ))
            continue
        priced.append((line, product))
        priced_line_numbers.append(line_number)

    # one batch read; unflagged lines of a product are checked against their sum,
    # one error per product
    on_hand = stock_service.get_quantities(p.id for _, p in priced)
    requested: dict[int, int] = {}
    checked_lines: dict[int, list[int]] = {}
    for line_number, (line, product) in zip(priced_line_numbers, priced):
        if line.allow_below_stock:
            continue
        requested[product.id] = requested.get(product.id, 0) + line.quantity
        checked_lines.setdefault(product.id, []).append(line_number)
    for product_id, quantity in requested.items():
        if quantity > on_hand[product_id]:
            errors.append(InsufficientStock(
                "insufficient stock",
                details={
                    "product_id": product_id,
                    "lines": checked_lines[product_id],
                    "requested": quantity,
                    "available": on_hand[product_id],
                },
            ))

    total_cents = sum(product.price_cents * line.quantity for line, product in priced)

    customer = None
    if request.customer_id is not None:
        # FOR UPDATE; SQLite is already serialized by BEGIN IMMEDIATE
        customer = lock_for_update(db.session.query(Customer).filter(Customer.id == request.customer_id)).one_or_none()
        if customer is None:
            errors.append(CustomerNotFound("customer not found", details={"customer_id": request.customer_id}))
    elif request.customer_type == Sale.CUSTOMER_REGISTERED:
        errors.append(CustomerRequired("a registered sale needs a customer"))

    override_detail = None
    if request.payment_type == Sale.PAYMENT_STORE_CREDIT:
        if customer is None:
            if request.customer_id is None:
                errors.append(CreditRequiresCustomer("store credit needs a customer"))
        else:
            balance = credit_service.get_balance(customer.id)
            limit = effective_credit_limit(customer)
            if balance + total_cents > limit:
                if not request.override_credit_limit:
                    errors.append(CreditLimitExceeded(
                        "credit limit exceeded",
                        details={"balance_cents": balance, "total_cents": total_cents, "limit_cents": limit},
                    ))
                elif not operator.can(Capability.OVERRIDE_CREDIT_LIMIT):
                    raise PermissionDeniedError("operator cannot override the credit limit")
                else:
                    override_detail = f"balance={balance} total={total_cents} limit={limit}"

    if errors:
        raise SaleValidationError(errors)
    return _CheckedSale(priced=priced, total_cents=total_cents, customer=customer, override_detail=override_detail)


def _persist_sale(request: SaleRequest, checked: _CheckedSale, operator: User) -> tuple[Sale, list[SaleLine], Invoice | None]:
    customer = checked.customer
    total = checked.total_cents
    in_words = amount_in_words(total)
    now = utcnow()

    sale = Sale(
        occurred_at=now,
        customer_id=customer.id if customer else None,
        customer_type=request.customer_type,
        payment_type=request.payment_type,
        total_cents=total,
        total_in_words=in_words,
        operator_id=operator.id,
        status=Sale.STATUS_CONFIRMED,
        notes=(request.notes or "").strip() or None,
    )
    db.session.add(sale)
    db.session.flush()

    lines = []
    for line_number, (line, product) in enumerate(checked.priced, start=1):
        sale_line = SaleLine(
            sale_id=sale.id,
            line_number=line_number,
            product_id=product.id,
            description=product.name,
            quantity=line.quantity,
            unit_price_cents=product.price_cents,
            subtotal_cents=product.price_cents * line.quantity,
            allow_below_stock=bool(line.allow_below_stock),
        )
        db.session.add(sale_line)
        lines.append(sale_line)

    db.session.add(Payment(sale_id=sale.id, payment_type=request.payment_type, amount_cents=total))

    if request.payment_type == Sale.PAYMENT_STORE_CREDIT:
        credit_service.append_entry(
            customer_id=customer.id,
            entry_type=CreditAccountEntry.DEBT,
            amount_cents=total,
            sale_id=sale.id,
            operator_id=operator.id,
            description=f"Venta #{sale.id}",
            due_at=days_from_now(current_app.config.get("CREDIT_DUE_DAYS", 30)),
        )

    invoice = None
    if request.issue_invoice:
        invoice_type = current_app.config.get("INVOICE_TYPE", "FACTURA_B")
        point_of_sale = current_app.config.get("INVOICE_POINT_OF_SALE", 1)
        invoice = Invoice(
            sale_id=sale.id,
            invoice_type=invoice_type,
            point_of_sale=point_of_sale,
            number=next_invoice_number(invoice_type, point_of_sale),
            issued_at=now,
            total_cents=total,
            total_in_words=in_words,
            customer_name=display_name(customer),
            customer_document=customer.document_number if customer else None,
            customer_address=customer.address if customer else None,
        )
        db.session.add(invoice)

    db.session.add(SaleAudit(
        sale_id=sale.id, occurred_at=now, operator_id=operator.id, action=SaleAudit.CREATED,
        detail=f"total={total}",
    ))
    if checked.override_detail:
        db.session.add(SaleAudit(
            sale_id=sale.id, occurred_at=now, operator_id=operator.id,
            action=SaleAudit.CREDIT_LIMIT_OVERRIDE, detail=checked.override_detail,
        ))

    db.session.flush()
    return sale, lines, invoice


def _apply_post_commit(sale: Sale, lines: list[SaleLine], operator: User) -> list[PostCommitFailure]:
    failures: list[PostCommitFailure] = []

    # unflagged lines deplete before flagged ones; only they were checked against stock
    for line in sorted(lines, key=lambda ln: ln.allow_below_stock):
        reason = f"Venta #{sale.id}"
        try:
            if line.allow_below_stock:
                stock_service.egress_allowing_negative(line.product_id, line.quantity, reason)
            else:
                stock_service.egress(line.product_id, line.quantity, reason)
        except (BusinessError, SQLAlchemyError) as exc:
            db.session.rollback()
            current_app.logger.error(
                "Stock not depleted for sale %s product %s: %s", sale.id, line.product_id, exc,
                extra={"event": "stock_depletion_failed", "sale_id": sale.id, "product_id": line.product_id},
            )
            audit_service.record(
                operator.id, operator.name, audit_service.STOCK_DEPLETION_FAILED,
                f"sale={sale.id} product={line.product_id} quantity={line.quantity} error={exc}",
            )
            failures.append(PostCommitFailure(
                step="stock_egress", error=str(exc), product_id=line.product_id, line_number=line.line_number,
            ))

    return failures


def create_sale(request: SaleRequest, operator: User) -> SaleResult:
    """
    Validate and confirm a sale.

    Raises SaleValidationError (nothing persisted) when any check fails,
    PermissionDeniedError when the credit limit override is needed but the
    operator may not use it.
    """
    def _op():
        begin_immediate()
        checked = _check_sale(request, operator)
        sale, lines, invoice = _persist_sale(request, checked, operator)
        db.session.commit()
        return sale, lines, invoice

    try:
        sale, lines, invoice = run_with_retry(_op)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to commit sale for operator %s", operator.id)
        raise

    current_app.logger.info(
        "Sale %s confirmed: %s lines, total %s cents, %s",
        sale.id, len(lines), sale.total_cents, sale.payment_type,
    )
    audit_service.record(operator.id, operator.name, audit_service.SALE_CREATED, f"Venta #{sale.id}")

    failures = _apply_post_commit(sale, lines, operator)
    return SaleResult(sale=sale, lines=lines, invoice=invoice, post_commit_failures=failures)


def get_receipt(sale_id: int) -> Receipt:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound("sale not found", details={"sale_id": sale_id})
    return Receipt(sale=sale, lines=list(sale.lines), invoice=sale.invoice, payments=list(sale.payments))


def list_sales(page: int = 1, page_size: int | None = None, customer_id: int | None = None) -> Page:
    q = db.session.query(Sale)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    return paginate(q.order_by(Sale.occurred_at.desc(), Sale.id.desc()), page, page_size)

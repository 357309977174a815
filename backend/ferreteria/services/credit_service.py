# Overview: Customer credit account ledger; balances are always derived from entries.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import CustomerNotFound, PaymentExceedsPending, ValidationError
from ..extensions import db
from ..models import CreditAccountEntry, Customer, Invoice
from ..time_utils import days_from_now, to_utc_z, utcnow
from .concurrency import begin_immediate, run_with_retry

"""
Credit ledger invariants (authoritative)

- Entries are append-only; corrections are new ADJUSTMENT entries.
- DEBT and PAYMENT amounts are positive; ADJUSTMENT is signed and non-zero.
- balance = sum(DEBT) + sum(ADJUSTMENT) - sum(PAYMENT). Positive means the
  customer owes the store.
- The balance is never cached; every read goes back to the entries.
- A PAYMENT may carry the sale_id of a debt; it then settles that debt and
  can never exceed what is still pending on it.
"""


@dataclass
class StatementLine:
    entry: CreditAccountEntry
    balance_cents: int

    def to_dict(self) -> dict:
        data = self.entry.to_dict()
        data["balance_cents"] = self.balance_cents
        return data


@dataclass
class PendingDebt:
    """What is still owed on one store-credit sale."""
    debt: CreditAccountEntry
    pending_cents: int
    invoice_number: str | None
    overdue: bool

    def to_dict(self) -> dict:
        return {
            "debt_entry_id": self.debt.id,
            "sale_id": self.debt.sale_id,
            "original_cents": self.debt.amount_cents,
            "pending_cents": self.pending_cents,
            "occurred_at": to_utc_z(self.debt.occurred_at),
            "due_at": to_utc_z(self.debt.due_at),
            "invoice_number": self.invoice_number,
            "overdue": self.overdue,
        }


def _signed_amount():
    return case(
        (CreditAccountEntry.entry_type == CreditAccountEntry.PAYMENT, -CreditAccountEntry.amount_cents),
        else_=CreditAccountEntry.amount_cents,
    )


def get_balance(customer_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(_signed_amount()), 0))
        .filter(CreditAccountEntry.customer_id == customer_id)
        .scalar()
    )
    return int(total or 0)


def _ensure_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFound("customer not found", details={"customer_id": customer_id})
    return customer


def append_entry(
    *,
    customer_id: int,
    entry_type: str,
    amount_cents: int,
    sale_id: int | None = None,
    operator_id: int | None = None,
    description: str | None = None,
    due_at: datetime | None = None,
) -> CreditAccountEntry:
    """Add an entry to the current session without committing."""
    if entry_type not in CreditAccountEntry.TYPES:
        raise ValidationError("unknown credit entry type", details={"type": entry_type})
    amount_cents = int(amount_cents)
    if entry_type == CreditAccountEntry.ADJUSTMENT:
        if amount_cents == 0:
            raise ValidationError("adjustment amount cannot be zero")
    elif amount_cents <= 0:
        raise ValidationError("amount_cents must be positive", details={"amount_cents": amount_cents})

    entry = CreditAccountEntry(
        customer_id=customer_id,
        entry_type=entry_type,
        amount_cents=amount_cents,
        sale_id=sale_id,
        operator_id=operator_id,
        description=description,
        occurred_at=utcnow(),
        due_at=due_at,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def _register(customer_id: int, guard=None, **kwargs) -> CreditAccountEntry:
    """
    Append one entry in its own transaction. `guard`, when given, runs
    after the customer check and before the write, under the SQLite write
    lock, so reads it makes cannot go stale before the entry lands.
    """
    def _op():
        if guard is not None:
            begin_immediate()
        _ensure_customer(customer_id)
        if guard is not None:
            guard()
        entry = append_entry(customer_id=customer_id, **kwargs)
        db.session.commit()
        return entry

    try:
        return run_with_retry(_op)
    except SQLAlchemyError:
        current_app.logger.exception(
            "Failed to register %s for customer %s", kwargs.get("entry_type"), customer_id
        )
        raise


def register_debt(
    customer_id: int,
    sale_id: int | None,
    amount_cents: int,
    operator_id: int | None = None,
    description: str | None = None,
    due_at: datetime | None = None,
) -> CreditAccountEntry:
    """
    Record a store-credit purchase. Falls due CREDIT_DUE_DAYS after now
    unless due_at is given.
    """
    if due_at is None:
        due_at = days_from_now(current_app.config.get("CREDIT_DUE_DAYS", 30))
    return _register(
        customer_id,
        entry_type=CreditAccountEntry.DEBT,
        amount_cents=amount_cents,
        sale_id=sale_id,
        operator_id=operator_id,
        description=description or (f"Venta #{sale_id}" if sale_id else None),
        due_at=due_at,
    )


def register_payment(
    customer_id: int,
    amount_cents: int,
    operator_id: int | None = None,
    description: str | None = None,
    sale_id: int | None = None,
) -> CreditAccountEntry:
    """
    Record money received. With sale_id the payment settles that sale's
    debt and raises PaymentExceedsPending when amount_cents is more than
    what is still pending on it (0 when the sale has no open debt).
    """
    guard = None
    if sale_id is not None:
        def guard():
            pending = pending_for_sale(customer_id, sale_id)
            if int(amount_cents) > pending:
                raise PaymentExceedsPending(
                    "payment exceeds the pending amount of the sale",
                    details={"sale_id": sale_id, "amount_cents": amount_cents, "pending_cents": pending},
                )

    return _register(
        customer_id,
        guard=guard,
        entry_type=CreditAccountEntry.PAYMENT,
        amount_cents=amount_cents,
        sale_id=sale_id,
        operator_id=operator_id,
        description=description or (f"Pago Venta #{sale_id}" if sale_id else None),
    )


def register_adjustment(
    customer_id: int,
    amount_cents: int,
    operator_id: int | None = None,
    description: str | None = None,
) -> CreditAccountEntry:
    """Signed correction: positive raises what the customer owes, negative lowers it."""
    return _register(
        customer_id,
        entry_type=CreditAccountEntry.ADJUSTMENT,
        amount_cents=amount_cents,
        operator_id=operator_id,
        description=description,
    )


def list_entries(customer_id: int) -> list[StatementLine]:
    """Account statement, oldest first, with the running balance after each entry."""
    entries = (
        db.session.query(CreditAccountEntry)
        .filter(CreditAccountEntry.customer_id == customer_id)
        .order_by(CreditAccountEntry.occurred_at.asc(), CreditAccountEntry.id.asc())
        .all()
    )
    running = 0
    lines = []
    for entry in entries:
        if entry.entry_type == CreditAccountEntry.PAYMENT:
            running -= entry.amount_cents
        else:
            running += entry.amount_cents
        lines.append(StatementLine(entry=entry, balance_cents=running))
    return lines


def pending_for_sale(customer_id: int, sale_id: int) -> int:
    """Amount still owed on one sale: its debt less the payments applied to it, never below 0."""
    total = (
        db.session.query(func.coalesce(func.sum(_signed_amount()), 0))
        .filter(CreditAccountEntry.customer_id == customer_id, CreditAccountEntry.sale_id == sale_id)
        .scalar()
    )
    return max(0, int(total or 0))


def pending_debts(customer_id: int) -> list[PendingDebt]:
    """
    Store-credit sales with money still owed, earliest due first.

    Only payments carrying the sale's id count against a debt; unlinked
    payments lower the balance but settle no particular sale. A debt is
    overdue once its due date has passed.
    """
    pending = func.sum(_signed_amount())
    rows = (
        db.session.query(
            CreditAccountEntry.sale_id,
            pending.label("pending"),
            func.max(case((CreditAccountEntry.entry_type == CreditAccountEntry.DEBT, CreditAccountEntry.id))),
        )
        .filter(CreditAccountEntry.customer_id == customer_id, CreditAccountEntry.sale_id.isnot(None))
        .group_by(CreditAccountEntry.sale_id)
        .having(pending > 0)
        .all()
    )
    debt_ids = [debt_id for _, _, debt_id in rows if debt_id is not None]
    if not debt_ids:
        return []

    debts = {
        e.id: e for e in db.session.query(CreditAccountEntry).filter(CreditAccountEntry.id.in_(debt_ids)).all()
    }
    invoices = {
        inv.sale_id: inv.display_number
        for inv in db.session.query(Invoice).filter(Invoice.sale_id.in_([d.sale_id for d in debts.values()])).all()
    }
    now = utcnow()

    result = [
        PendingDebt(
            debt=debts[debt_id],
            pending_cents=int(amount),
            invoice_number=invoices.get(sale_id),
            overdue=debts[debt_id].due_at is not None and debts[debt_id].due_at < now,
        )
        for sale_id, amount, debt_id in rows
        if debt_id is not None
    ]
    # undated debts sort last
    result.sort(key=lambda p: (p.debt.due_at is None, p.debt.due_at or now, p.debt.id))
    return result


def available_credit(customer: Customer) -> int:
    from .customer_service import effective_credit_limit

    return max(0, effective_credit_limit(customer) - get_balance(customer.id))

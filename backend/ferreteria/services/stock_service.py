# Overview: Stock ledger; on-hand quantities and the append-only movement log.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InsufficientStock, InvalidQuantity, UnknownProduct, ValidationError
from ..extensions import db
from ..models import Product, StockLevel, StockMovement
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .pagination import Page, paginate

"""
Stock invariants (authoritative)

- StockLevel.quantity is the running on-hand figure for a product; a
  missing row means 0.
- Every change to StockLevel is paired with exactly one StockMovement in
  the same DB transaction. Movements are never updated or deleted.
- Movement quantity is always positive; INGRESO adds, EGRESO subtracts.
- egress() never lets quantity drop below zero: the sufficiency check and
  the decrement are one conditional UPDATE, so two concurrent egresses
  cannot both pass a stale read.
- egress_allowing_negative() is the explicit escape hatch for sales lines
  flagged to sell below stock; it may drive quantity negative.
"""


@dataclass
class CriticalStockItem:
    product_id: int
    sku: str
    name: str
    quantity: int
    min_stock: int
    unit_of_measure: str = field(default="unidad")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "unit_of_measure": self.unit_of_measure,
        }


def _validate_quantity(quantity) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity("quantity must be a positive integer", details={"quantity": quantity})
    return quantity


def _ensure_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise UnknownProduct("product not found", details={"product_id": product_id})
    return product


def _apply_delta(product_id: int, delta: int) -> None:
    """Signed upsert: add delta to the product's StockLevel, creating it if missing."""
    dialect = db.session.get_bind().dialect.name
    if dialect in ("sqlite", "postgresql"):
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(StockLevel.__table__).values(product_id=product_id, quantity=delta)
        stmt = stmt.on_conflict_do_update(
            index_elements=[StockLevel.__table__.c.product_id],
            set_={"quantity": StockLevel.__table__.c.quantity + stmt.excluded.quantity},
        )
        db.session.execute(stmt)
        return

    result = db.session.execute(
        update(StockLevel)
        .where(StockLevel.product_id == product_id)
        .values(quantity=StockLevel.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        db.session.add(StockLevel(product_id=product_id, quantity=delta))
        db.session.flush()


def _append_movement(product_id: int, movement_type: str, quantity: int, reason: str | None,
                     unit_cost_cents: int | None = None) -> StockMovement:
    movement = StockMovement(
        occurred_at=utcnow(),
        product_id=product_id,
        movement_type=movement_type,
        quantity=quantity,
        reason=(reason or "").strip() or None,
        unit_cost_cents=unit_cost_cents,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _run_logged(op, action: str, product_id: int):
    try:
        return run_with_retry(op)
    except SQLAlchemyError:
        current_app.logger.exception("Stock %s failed for product %s", action, product_id)
        raise


def get_quantity(product_id: int) -> int:
    qty = db.session.query(StockLevel.quantity).filter(StockLevel.product_id == product_id).scalar()
    return int(qty or 0)


def get_quantities(product_ids: Iterable[int]) -> dict[int, int]:
    """Batch read; ids without a StockLevel row map to 0."""
    ids = {int(pid) for pid in product_ids}
    if not ids:
        return {}
    rows = (
        db.session.query(StockLevel.product_id, StockLevel.quantity)
        .filter(StockLevel.product_id.in_(ids))
        .all()
    )
    result = {pid: 0 for pid in ids}
    for pid, qty in rows:
        result[pid] = int(qty)
    return result


def ingress(product_id: int, quantity: int, reason: str | None = None,
            unit_cost_cents: int | None = None) -> StockMovement:
    """
    Add stock and record an INGRESO movement, atomically.

    unit_cost_cents is the optional purchase cost per unit, kept on the
    movement for later costing.
    """
    quantity = _validate_quantity(quantity)
    if unit_cost_cents is not None and int(unit_cost_cents) < 0:
        raise InvalidQuantity("unit_cost_cents cannot be negative", details={"unit_cost_cents": unit_cost_cents})

    def _op():
        _ensure_product(product_id)
        _apply_delta(product_id, quantity)
        movement = _append_movement(product_id, StockMovement.INGRESS, quantity, reason, unit_cost_cents)
        db.session.commit()
        return movement

    return _run_logged(_op, "ingress", product_id)


def egress(product_id: int, quantity: int, reason: str | None = None) -> StockMovement:
    """
    Remove stock only if enough is on hand; records an EGRESO movement.

    Raises InsufficientStock (details carry the quantity on hand) when the
    conditional decrement matches no row.
    """
    quantity = _validate_quantity(quantity)

    def _op():
        _ensure_product(product_id)
        result = db.session.execute(
            update(StockLevel)
            .where(StockLevel.product_id == product_id, StockLevel.quantity >= quantity)
            .values(quantity=StockLevel.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = get_quantity(product_id)
            raise InsufficientStock(
                "insufficient stock",
                details={"product_id": product_id, "requested": quantity, "available": available},
            )
        movement = _append_movement(product_id, StockMovement.EGRESS, quantity, reason)
        db.session.commit()
        return movement

    return _run_logged(_op, "egress", product_id)


def egress_allowing_negative(product_id: int, quantity: int, reason: str | None = None) -> StockMovement:
    """Remove stock with no sufficiency check; quantity may go negative."""
    quantity = _validate_quantity(quantity)

    def _op():
        _ensure_product(product_id)
        _apply_delta(product_id, -quantity)
        movement = _append_movement(product_id, StockMovement.EGRESS, quantity, reason)
        db.session.commit()
        return movement

    return _run_logged(_op, "egress (negative allowed)", product_id)


def _movements_query(product_id: int | None = None, movement_type: str | None = None):
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        q = q.filter(StockMovement.movement_type == movement_type)
    return q


def count_movements(product_id: int | None = None, movement_type: str | None = None) -> int:
    return int(_movements_query(product_id, movement_type).order_by(None).count())


def list_movements(
    product_id: int | None = None,
    movement_type: str | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> Page:
    """
    Newest-first page of movements.

    page is clamped into [1, total_pages]; an empty log still reports one
    (empty) page.
    """
    if movement_type and movement_type not in StockMovement.TYPES:
        raise ValidationError("unknown movement type", details={"type": movement_type})

    query = _movements_query(product_id, movement_type).order_by(
        StockMovement.occurred_at.desc(), StockMovement.id.desc()
    )
    return paginate(query, page, page_size)


def recent_movements(movement_type: str | None = None, limit: int = 10) -> list[StockMovement]:
    return (
        _movements_query(movement_type=movement_type)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(max(1, int(limit)))
        .all()
    )


def critical_stock(product_ids: Iterable[int] | None = None) -> list[CriticalStockItem]:
    """
    Active products at or below their minimum.

    A product is critical when min_stock > 0 and on-hand <= min_stock.
    Products without a StockLevel row count as 0 on hand.
    """
    on_hand = func.coalesce(StockLevel.quantity, 0)
    q = (
        db.session.query(Product, on_hand.label("on_hand"))
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .filter(Product.is_active.is_(True), Product.min_stock > 0, on_hand <= Product.min_stock)
    )
    if product_ids is not None:
        q = q.filter(Product.id.in_([int(p) for p in product_ids]))

    return [
        CriticalStockItem(
            product_id=product.id,
            sku=product.sku,
            name=product.name,
            quantity=int(qty),
            min_stock=product.min_stock,
            unit_of_measure=product.unit_of_measure,
        )
        for product, qty in q.order_by(Product.name.asc()).all()
    ]

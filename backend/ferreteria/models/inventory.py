from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class StockLevel(db.Model):
    """
    Running on-hand quantity, one row per product.

    Only ever changed through a signed delta applied in the same
    transaction as the StockMovement that explains it.
    """
    __tablename__ = "stock_levels"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    quantity = db.Column(db.BigInteger, nullable=False, default=0)

    product = db.relationship("Product", backref=db.backref("stock_level", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "quantity": self.quantity}


class StockMovement(db.Model):
    """
    Append-only stock movement log.

    IMMUTABLE: Records are never updated or deleted.
    quantity is always positive; direction comes from movement_type.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_mov_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stock_mov_type_occurred", "movement_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    INGRESS = "INGRESO"
    EGRESS = "EGRESO"
    TYPES = (INGRESS, EGRESS)

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    movement_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.BigInteger, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    # Purchase cost per unit, ingress only
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "product_id": self.product_id,
            "type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "unit_cost_cents": self.unit_cost_cents,
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditRecord(db.Model):
    """Operator activity log written by the audit sink (fire-and-forget)."""
    __tablename__ = "audit_records"
    __table_args__ = (
        db.Index("ix_audit_records_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    operator_id = db.Column(db.Integer, nullable=True, index=True)
    operator_name = db.Column(db.String(128), nullable=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    detail = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "operator_id": self.operator_id,
            "operator_name": self.operator_name,
            "action": self.action,
            "detail": self.detail,
        }

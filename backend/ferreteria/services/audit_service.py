# Overview: Fire-and-forget operator activity log.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditRecord
from ..time_utils import utcnow
from .pagination import Page, paginate

SALE_CREATED = "CREACION"
STOCK_DEPLETION_FAILED = "STOCK_DEPLETION_FAILED"


def record(operator_id: int | None, operator_name: str | None, action: str, detail: str | None = None) -> bool:
    """
    Persist an AuditRecord in its own transaction.

    Never raises: a failure to audit must not fail the operation being
    audited. Returns False (and logs) when the write did not happen.
    Commits the current session, so call it only after the caller's own
    transaction is done.
    """
    try:
        db.session.add(AuditRecord(
            occurred_at=utcnow(),
            operator_id=operator_id,
            operator_name=operator_name,
            action=action,
            detail=detail,
        ))
        db.session.commit()
        return True
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to write audit record", extra={"event": "audit_write_failed", "action": action}
        )
        return False


def list_records(page: int = 1, page_size: int | None = None, action: str | None = None) -> Page:
    q = db.session.query(AuditRecord)
    if action:
        q = q.filter(AuditRecord.action == action)
    return paginate(q.order_by(AuditRecord.occurred_at.desc(), AuditRecord.id.desc()), page, page_size)

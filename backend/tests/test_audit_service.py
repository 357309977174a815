"""
Operator activity log tests.
"""

from sqlalchemy.exc import OperationalError

from ferreteria.extensions import db
from ferreteria.models import AuditRecord
from ferreteria.services import audit_service


def test_record_and_list(db_session, admin):
    assert audit_service.record(admin.id, admin.name, audit_service.SALE_CREATED, "Venta #1")
    assert audit_service.record(admin.id, admin.name, audit_service.STOCK_DEPLETION_FAILED, "Venta #1")
    assert audit_service.record(None, None, audit_service.SALE_CREATED, "Venta #2")

    page = audit_service.list_records()
    assert page.total == 3
    assert page.items[0].detail == "Venta #2"

    created = audit_service.list_records(action=audit_service.SALE_CREATED)
    assert created.total == 2
    assert {r.action for r in created.items} == {"CREACION"}


def test_record_failure_is_swallowed(db_session, admin, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", broken_commit)
    assert audit_service.record(admin.id, admin.name, audit_service.SALE_CREATED) is False
    monkeypatch.undo()

    assert db_session.query(AuditRecord).count() == 0

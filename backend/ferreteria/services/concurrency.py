# Overview: Service-layer concurrency helpers: row locking, retry on lock
# conflicts, and the optimistic fingerprint used by the product edit flow.

from __future__ import annotations

import hashlib
import time
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentModification
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    On SQLite, take the write lock at the start of the transaction so that
    read-then-write sequences cannot interleave with another writer.
    No-op on other backends (they rely on row locks).
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls back the
    session and propagates unchanged.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


# Fields covered by the product fingerprint, in hashing order. Changing
# this list invalidates every token handed out to open edit forms.
FINGERPRINT_FIELDS = (
    "sku",
    "name",
    "description",
    "category_id",
    "price_cents",
    "min_stock",
    "unit_of_measure",
    "is_active",
    "preferred_location_id",
    "location_code",
    "category_ids",
)


def _clean(value) -> str:
    return (value or "").strip()


def _opt_int(value) -> str:
    return "" if value is None else str(int(value))


def product_fingerprint(product, category_ids: Iterable[int] | None) -> str:
    """
    Deterministic SHA-256 token over a product's mutable fields.

    Normalization contract (see FINGERPRINT_FIELDS for order):
    - sku, name, unit_of_measure: trimmed, lower-cased
    - description: trimmed (case preserved)
    - location_code: trimmed, upper-cased
    - numeric ids: decimal text, empty when unset
    - is_active: "1" / "0"
    - category_ids: de-duplicated, sorted ascending, comma-joined

    Same logical state gives the same token regardless of category order.
    """
    cats = sorted({int(c) for c in (category_ids or ())})
    parts = [
        _clean(product.sku).lower(),
        _clean(product.name).lower(),
        _clean(product.description),
        _opt_int(product.category_id),
        str(int(product.price_cents or 0)),
        str(int(product.min_stock or 0)),
        _clean(product.unit_of_measure).lower(),
        "1" if product.is_active else "0",
        _opt_int(product.preferred_location_id),
        _clean(product.location_code).upper(),
        ",".join(str(c) for c in cats),
    ]
    base = "|".join(parts)
    return hashlib.sha256(base.encode("utf-8")).hexdigest().upper()


def ensure_fingerprint_matches(expected: str | None, product, category_ids: Iterable[int] | None) -> str:
    """
    Compare a token captured at form-load time with the current state.

    Byte-exact comparison; raises ConcurrentModification on mismatch.
    Returns the current token. Detection only: no lock is held between
    load and submit, so the last writer still wins once tokens agree.
    """
    current = product_fingerprint(product, category_ids)
    if not expected or expected != current:
        raise ConcurrentModification(
            "Product was modified by another process. Reload and try again.",
            details={"product_id": product.id},
        )
    return current

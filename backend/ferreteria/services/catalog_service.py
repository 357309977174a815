# Overview: Product catalog reads and the create/edit workflow guarded by the product fingerprint.

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateBarcode, DuplicateSku, NotFound, ValidationError
from ..extensions import db
from ..models import Category, Product, ProductBarcode, ProductCategory
from .concurrency import ensure_fingerprint_matches, product_fingerprint, run_with_retry

"""
Catalog rules

- SKU and name are required (trimmed). SKU is unique case-insensitively.
- unit_of_measure must be one of ALLOWED_UNITS.
- A product belongs to 1..MAX_CATEGORIES active categories. Extra ids are
  dropped in submission order after de-duplication; the first one is the
  primary category_id.
- Barcodes are globally unique (case-insensitive) across all products.
- Edits carry the fingerprint captured when the form was loaded; if the
  stored product no longer hashes to it, the edit is rejected unwritten.
"""

ALLOWED_UNITS = (
    "unidad", "gramos", "kilos", "metros cuadrados", "juego", "bolsa", "placa",
    "rollo", "litro", "mililitro", "bidon", "kit", "par",
)
MAX_CATEGORIES = 3

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "price_cents", "min_stock", "unit_of_measure",
    "is_active", "preferred_location_id", "location_code",
}


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def require_product(product_id: int) -> Product:
    product = get_product(product_id)
    if product is None:
        raise NotFound("product not found", details={"product_id": product_id})
    return product


def get_category_ids(product_id: int) -> list[int]:
    rows = (
        db.session.query(ProductCategory.category_id)
        .filter(ProductCategory.product_id == product_id)
        .all()
    )
    return sorted(r[0] for r in rows)


def get_barcodes(product_id: int) -> list[ProductBarcode]:
    return (
        db.session.query(ProductBarcode)
        .filter(ProductBarcode.product_id == product_id)
        .order_by(ProductBarcode.id.asc())
        .all()
    )


def find_by_barcode(code: str) -> Product | None:
    code = (code or "").strip()
    if not code:
        return None
    row = (
        db.session.query(ProductBarcode)
        .filter(func.lower(ProductBarcode.code) == code.lower())
        .first()
    )
    return row.product if row else None


def parse_barcodes(entries: Iterable[str] | None) -> list[tuple[str, str | None]]:
    """
    Parse "code[,type]" entries.

    Blank entries are skipped and codes are de-duplicated
    case-insensitively, keeping the first occurrence.

    >>> parse_barcodes(["779123, EAN13", "779123", "int-1"])
    [('779123', 'EAN13'), ('int-1', None)]
    """
    parsed: list[tuple[str, str | None]] = []
    seen: set[str] = set()
    for raw in entries or ():
        if raw is None:
            continue
        code, _, code_type = str(raw).partition(",")
        code = code.strip()
        code_type = code_type.strip() or None
        if not code or code.lower() in seen:
            continue
        seen.add(code.lower())
        parsed.append((code, code_type))
    return parsed


def _normalize_category_ids(category_ids: Iterable[int] | None) -> list[int]:
    ordered: list[int] = []
    for cid in category_ids or ():
        cid = int(cid)
        if cid not in ordered:
            ordered.append(cid)
    if not ordered:
        raise ValidationError("at least one category is required")
    ordered = ordered[:MAX_CATEGORIES]

    found = {
        c.id: c
        for c in db.session.query(Category).filter(Category.id.in_(ordered)).all()
    }
    missing = [cid for cid in ordered if cid not in found or not found[cid].is_active]
    if missing:
        raise ValidationError("unknown or inactive category", details={"category_ids": missing})
    return ordered


def _normalize_fields(fields: dict) -> dict:
    clean = {k: v for k, v in fields.items() if k in PRODUCT_MUTABLE_FIELDS}

    for key in ("sku", "name"):
        if key in clean:
            clean[key] = (clean[key] or "").strip()
            if not clean[key]:
                raise ValidationError(f"{key} is required")

    if "description" in clean:
        clean["description"] = (clean["description"] or "").strip() or None

    if "unit_of_measure" in clean:
        unit = (clean["unit_of_measure"] or "").strip().lower()
        if unit not in ALLOWED_UNITS:
            raise ValidationError("invalid unit of measure", details={"allowed": list(ALLOWED_UNITS)})
        clean["unit_of_measure"] = unit

    if "location_code" in clean:
        clean["location_code"] = (clean["location_code"] or "").strip().upper() or None

    for key in ("price_cents", "min_stock"):
        if key in clean and clean[key] is not None and int(clean[key]) < 0:
            raise ValidationError(f"{key} must be >= 0")

    return clean


def _ensure_sku_available(sku: str, exclude_product_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(func.lower(Product.sku) == sku.lower())
    if exclude_product_id is not None:
        q = q.filter(Product.id != exclude_product_id)
    if q.first() is not None:
        raise DuplicateSku("SKU already exists", details={"sku": sku})


def _ensure_barcodes_available(barcodes: list[tuple[str, str | None]], exclude_product_id: int | None = None) -> None:
    if not barcodes:
        return
    codes = [code.lower() for code, _ in barcodes]
    q = db.session.query(ProductBarcode.code).filter(func.lower(ProductBarcode.code).in_(codes))
    if exclude_product_id is not None:
        q = q.filter(ProductBarcode.product_id != exclude_product_id)
    taken = [r[0] for r in q.all()]
    if taken:
        raise DuplicateBarcode("barcode already assigned to another product", details={"codes": taken})


def _replace_categories(product: Product, category_ids: list[int]) -> None:
    existing = {
        pc.category_id: pc
        for pc in db.session.query(ProductCategory).filter(ProductCategory.product_id == product.id).all()
    }
    for cid, link in existing.items():
        if cid not in category_ids:
            db.session.delete(link)
    for cid in category_ids:
        if cid not in existing:
            db.session.add(ProductCategory(product_id=product.id, category_id=cid))
    product.category_id = category_ids[0]


def _replace_barcodes(product: Product, barcodes: list[tuple[str, str | None]]) -> None:
    # kept codes are updated in place, never deleted and re-inserted
    wanted = {code.lower(): (code, code_type) for code, code_type in barcodes}
    for row in get_barcodes(product.id):
        match = wanted.pop(row.code.lower(), None)
        if match is None:
            db.session.delete(row)
        else:
            row.code, row.code_type = match
    for code, code_type in wanted.values():
        db.session.add(ProductBarcode(product_id=product.id, code=code, code_type=code_type))


def create_product(*, fields: dict, category_ids: Iterable[int], barcodes: Iterable[str] | None = None) -> Product:
    """
    Create a product with its categories and barcodes.

    Raises ValidationError, DuplicateSku or DuplicateBarcode; nothing is
    written unless every check passes.
    """
    clean = _normalize_fields(fields)
    if not clean.get("sku") or not clean.get("name"):
        raise ValidationError("sku and name are required")
    clean.setdefault("unit_of_measure", "unidad")
    parsed_barcodes = parse_barcodes(barcodes)

    def _op():
        cats = _normalize_category_ids(category_ids)
        _ensure_sku_available(clean["sku"])
        _ensure_barcodes_available(parsed_barcodes)

        product = Product(**clean)
        db.session.add(product)
        db.session.flush()
        _replace_categories(product, cats)
        _replace_barcodes(product, parsed_barcodes)
        db.session.commit()
        return product

    try:
        product = run_with_retry(_op)
    except IntegrityError:
        # unique index lost a race with another writer
        current_app.logger.warning("Product create conflicted on a unique index (sku=%s)", clean["sku"])
        raise DuplicateSku("SKU or barcode already exists", details={"sku": clean["sku"]})

    current_app.logger.info("Created product %s (%s)", product.id, product.sku)
    return product


def update_product(
    *,
    product_id: int,
    original_fingerprint: str | None,
    fields: dict,
    category_ids: Iterable[int] | None = None,
    barcodes: Iterable[str] | None = None,
) -> Product:
    """
    Apply an edit submitted from a form loaded with original_fingerprint.

    Fields not present in `fields` keep their stored value; category_ids or
    barcodes of None leave those associations untouched.
    Raises ConcurrentModification when the product changed since load.
    """
    clean = _normalize_fields(fields)
    parsed_barcodes = parse_barcodes(barcodes) if barcodes is not None else None

    def _op():
        product = require_product(product_id)
        ensure_fingerprint_matches(original_fingerprint, product, get_category_ids(product.id))

        cats = _normalize_category_ids(category_ids) if category_ids is not None else None
        if "sku" in clean:
            _ensure_sku_available(clean["sku"], exclude_product_id=product.id)
        if parsed_barcodes is not None:
            _ensure_barcodes_available(parsed_barcodes, exclude_product_id=product.id)

        for key, value in clean.items():
            setattr(product, key, value)
        if cats is not None:
            _replace_categories(product, cats)
        if parsed_barcodes is not None:
            _replace_barcodes(product, parsed_barcodes)
        db.session.commit()
        return product

    try:
        product = run_with_retry(_op)
    except IntegrityError:
        current_app.logger.warning("Product %s update conflicted on a unique index", product_id)
        raise DuplicateSku("SKU or barcode already exists", details={"product_id": product_id})

    current_app.logger.info("Updated product %s", product.id)
    return product


def product_detail(product: Product) -> dict:
    data = product.to_dict()
    category_ids = get_category_ids(product.id)
    data["category_ids"] = category_ids
    data["barcodes"] = [b.to_dict() for b in get_barcodes(product.id)]
    data["fingerprint"] = product_fingerprint(product, category_ids)
    return data

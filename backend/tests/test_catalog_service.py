import pytest

from ferreteria.errors import ConcurrentModification, DuplicateBarcode, DuplicateSku, ValidationError
from ferreteria.models import Category, Product
from ferreteria.services import catalog_service


def _fields(**overrides) -> dict:
    fields = dict(sku="LLA-010", name="Llave francesa", price_cents=4500, min_stock=1,
                  unit_of_measure="unidad", location_code="b-3")
    fields.update(overrides)
    return fields


def test_create_product_with_categories_and_barcodes(db_session, category, other_category):
    product = catalog_service.create_product(
        fields=_fields(),
        category_ids=[other_category.id, category.id, other_category.id],
        barcodes=["7790001, EAN13", "INT-9", "int-9", " "],
    )

    assert product.id is not None
    assert product.category_id == other_category.id
    assert product.location_code == "B-3"
    assert catalog_service.get_category_ids(product.id) == sorted([category.id, other_category.id])
    codes = [(b.code, b.code_type) for b in catalog_service.get_barcodes(product.id)]
    assert codes == [("7790001", "EAN13"), ("INT-9", None)]
    assert catalog_service.find_by_barcode("int-9").id == product.id


def test_more_than_three_categories_are_capped(db_session):
    cats = [Category(name=f"C{i}") for i in range(5)]
    db_session.add_all(cats)
    db_session.commit()

    product = catalog_service.create_product(fields=_fields(), category_ids=[c.id for c in cats])

    assert catalog_service.get_category_ids(product.id) == sorted(c.id for c in cats[:3])


@pytest.mark.parametrize("fields,category_ids", [
    (_fields(sku="  "), None),
    (_fields(name=""), None),
    (_fields(unit_of_measure="toneladas"), None),
    (_fields(price_cents=-1), None),
    (_fields(min_stock=-1), None),
    (_fields(), []),
    (_fields(), [9999]),
])
def test_create_product_validation(db_session, category, fields, category_ids):
    with pytest.raises(ValidationError):
        catalog_service.create_product(
            fields=fields,
            category_ids=[category.id] if category_ids is None else category_ids,
        )
    assert db_session.query(Product).count() == 0


def test_inactive_category_rejected(db_session):
    cat = Category(name="Vieja", is_active=False)
    db_session.add(cat)
    db_session.commit()
    with pytest.raises(ValidationError):
        catalog_service.create_product(fields=_fields(), category_ids=[cat.id])


def test_duplicate_sku_is_case_insensitive(db_session, category, hammer):
    with pytest.raises(DuplicateSku):
        catalog_service.create_product(fields=_fields(sku="mar-001"), category_ids=[category.id])


def test_duplicate_barcode_rejected(db_session, category):
    catalog_service.create_product(fields=_fields(), category_ids=[category.id], barcodes=["ABC"])
    with pytest.raises(DuplicateBarcode):
        catalog_service.create_product(fields=_fields(sku="OTRO-1"), category_ids=[category.id], barcodes=["abc"])


def test_update_with_current_fingerprint(db_session, category, other_category):
    product = catalog_service.create_product(fields=_fields(), category_ids=[category.id], barcodes=["X1"])
    token = catalog_service.product_detail(product)["fingerprint"]

    updated = catalog_service.update_product(
        product_id=product.id,
        original_fingerprint=token,
        fields={"price_cents": 5000, "name": "Llave francesa 10\""},
        category_ids=[other_category.id],
        barcodes=["X1,EAN8", "X2"],
    )

    assert updated.price_cents == 5000
    assert updated.category_id == other_category.id
    assert catalog_service.get_category_ids(product.id) == [other_category.id]
    assert [(b.code, b.code_type) for b in catalog_service.get_barcodes(product.id)] == [("X1", "EAN8"), ("X2", None)]
    assert catalog_service.product_detail(updated)["fingerprint"] != token


def test_update_with_stale_fingerprint_writes_nothing(db_session, category):
    product = catalog_service.create_product(fields=_fields(), category_ids=[category.id])
    token = catalog_service.product_detail(product)["fingerprint"]

    # another operator saves first
    catalog_service.update_product(product_id=product.id, original_fingerprint=token, fields={"price_cents": 4600})

    with pytest.raises(ConcurrentModification):
        catalog_service.update_product(product_id=product.id, original_fingerprint=token, fields={"price_cents": 9999})

    db_session.expire_all()
    assert db_session.get(Product, product.id).price_cents == 4600


def test_update_rejects_sku_of_another_product(db_session, category, hammer):
    product = catalog_service.create_product(fields=_fields(), category_ids=[category.id])
    token = catalog_service.product_detail(product)["fingerprint"]
    with pytest.raises(DuplicateSku):
        catalog_service.update_product(product_id=product.id, original_fingerprint=token, fields={"sku": "MAR-001"})


def test_parse_barcodes():
    assert catalog_service.parse_barcodes(["779123, EAN13", "779123", "", None, "int-1"]) == [
        ("779123", "EAN13"),
        ("int-1", None),
    ]

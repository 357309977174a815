from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "description": self.description,
            "is_active": self.is_active,
        }


class Product(db.Model):
    """
    Product master data.

    SKU uniqueness is case-insensitive and enforced by the catalog service
    (lower(sku) comparison) because SQLite has no functional unique index
    portable across backends.

    Products are never physically deleted by the sale path; deactivate
    with is_active=False.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Primary category (first of the up-to-3 associations)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    unit_of_measure = db.Column(db.String(32), nullable=False, default="unidad")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    preferred_location_id = db.Column(db.Integer, nullable=True)
    location_code = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category")

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "price_cents": self.price_cents,
            "min_stock": self.min_stock,
            "unit_of_measure": self.unit_of_measure,
            "is_active": self.is_active,
            "preferred_location_id": self.preferred_location_id,
            "location_code": self.location_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductCategory(db.Model):
    """Association of a product with one of its (at most 3) categories."""
    __tablename__ = "product_categories"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), primary_key=True)


class ProductBarcode(db.Model):
    """
    Scannable code attached to a product.

    Codes are globally unique across products; the optional type is a
    free-form label (EAN13, UPC, INTERNO, ...).
    """
    __tablename__ = "product_barcodes"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_product_barcodes_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    code = db.Column(db.String(128), nullable=False)
    code_type = db.Column(db.String(32), nullable=True)

    product = db.relationship("Product", backref=db.backref("barcodes", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "code": self.code,
            "code_type": self.code_type,
        }

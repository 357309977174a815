# Overview: Flask API routes for products; parses input and returns JSON responses.

"""
Product routes.

Edits are optimistic: GET returns a `fingerprint` that must be sent back
unchanged with PUT. A mismatch means someone else saved the product in
between and the edit is rejected with 409.
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import BusinessError, ValidationError, error_body
from ..models import Product
from ..permissions import Capability
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    coerce_int,
    enforce_rules_product,
)
from ..decorators import require_operator, require_capability

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(catalog_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"sku", "name", "category_ids"},
    extra_fields={"category_ids", "barcodes", "fingerprint"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _split_payload(payload: dict, *, partial: bool) -> tuple[dict, list | None, list | None]:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)

    category_ids = patch.pop("category_ids", None)
    barcodes = patch.pop("barcodes", None)
    patch.pop("fingerprint", None)

    if category_ids is not None:
        if not isinstance(category_ids, list):
            raise ValidationError("category_ids must be a list")
        category_ids = [coerce_int(c, "category_ids") for c in category_ids]
    if barcodes is not None and not isinstance(barcodes, list):
        raise ValidationError("barcodes must be a list of \"code[,type]\" strings")
    return patch, category_ids, barcodes


@products_bp.get("/<int:product_id>")
@require_operator
@require_capability(Capability.VIEW_STOCK)
def get_product_route(product_id: int):
    product = catalog_service.get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": catalog_service.product_detail(product)}), 200


@products_bp.get("/by-barcode/<code>")
@require_operator
@require_capability(Capability.VIEW_STOCK)
def find_by_barcode_route(code: str):
    product = catalog_service.find_by_barcode(code)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": catalog_service.product_detail(product)}), 200


@products_bp.post("")
@require_operator
@require_capability(Capability.MANAGE_CATALOG)
def create_product_route():
    """
    Create a product. Body: product fields plus category_ids (1..3) and
    barcodes ("code[,type]").
    """
    try:
        fields, category_ids, barcodes = _split_payload(request.get_json(silent=True) or {}, partial=False)
        product = catalog_service.create_product(fields=fields, category_ids=category_ids, barcodes=barcodes)
        return jsonify({"product": catalog_service.product_detail(product)}), 201

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_operator
@require_capability(Capability.MANAGE_CATALOG)
def update_product_route(product_id: int):
    """
    Update a product. Body must carry the `fingerprint` obtained from GET.
    409 CONCURRENT_MODIFICATION if the product changed since then.
    """
    try:
        payload = request.get_json(silent=True) or {}
        fingerprint = payload.get("fingerprint")
        if not fingerprint:
            raise ValidationError("fingerprint required")
        fields, category_ids, barcodes = _split_payload(payload, partial=True)
        product = catalog_service.update_product(
            product_id=product_id,
            original_fingerprint=fingerprint,
            fields=fields,
            category_ids=category_ids,
            barcodes=barcodes,
        )
        return jsonify({"product": catalog_service.product_detail(product)}), 200

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

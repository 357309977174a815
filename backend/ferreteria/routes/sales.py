# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""Sales API routes with capability enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import BusinessError, ValidationError, error_body
from ..permissions import Capability, PermissionDeniedError
from ..services import sales_service
from ..services.sales_service import SaleLineRequest, SaleRequest
from ..validation import coerce_bool, coerce_int
from ..decorators import require_operator, require_capability


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_quantity(raw):
    # leave unparseable values for the sale validator to report per line
    try:
        return coerce_int(raw, "quantity")
    except ValidationError:
        return raw


def _parse_sale_request(data: dict) -> SaleRequest:
    raw_lines = data.get("lines")
    if raw_lines is None:
        raw_lines = []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    lines = []
    for raw in raw_lines:
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise ValidationError("each line needs a product_id")
        lines.append(SaleLineRequest(
            product_id=coerce_int(raw["product_id"], "product_id"),
            quantity=_parse_quantity(raw.get("quantity")),
            allow_below_stock=coerce_bool(raw.get("allow_below_stock", False), "allow_below_stock"),
        ))

    customer_id = data.get("customer_id")
    return SaleRequest(
        lines=lines,
        customer_type=str(data.get("customer_type") or "WALK_IN").strip().upper(),
        customer_id=coerce_int(customer_id, "customer_id") if customer_id is not None else None,
        payment_type=str(data.get("payment_type") or "CASH").strip().upper(),
        override_credit_limit=coerce_bool(data.get("override_credit_limit", False), "override_credit_limit"),
        issue_invoice=coerce_bool(data.get("issue_invoice", True), "issue_invoice"),
        notes=data.get("notes"),
    )


@sales_bp.post("")
@require_operator
@require_capability(Capability.CREATE_SALE)
def create_sale_route():
    """
    Confirm a sale.

    Body: {lines: [{product_id, quantity, allow_below_stock}], customer_type,
    customer_id, payment_type, override_credit_limit, issue_invoice, notes}

    201 with the sale, lines, invoice and any post-commit failures;
    400 with every validation error found.
    """
    try:
        sale_request = _parse_sale_request(request.get_json(silent=True) or {})
        result = sales_service.create_sale(sale_request, g.current_user)
        return jsonify(result.to_dict()), 201

    except PermissionDeniedError as e:
        return jsonify({
            "error": "Permission denied",
            "required_permission": Capability.OVERRIDE_CREDIT_LIMIT.value,
            "message": str(e),
        }), 403
    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_operator
@require_capability(Capability.VIEW_SALES)
def list_sales_route():
    """Paged sales, newest first. Query: page, page_size, customer_id."""
    try:
        page = sales_service.list_sales(
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
            customer_id=request.args.get("customer_id", type=int),
        )
        return jsonify(page.to_dict()), 200

    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>/receipt")
@require_operator
@require_capability(Capability.VIEW_SALES)
def get_receipt_route(sale_id: int):
    try:
        receipt = sales_service.get_receipt(sale_id)
        return jsonify(receipt.to_dict()), 200

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to load receipt for sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500

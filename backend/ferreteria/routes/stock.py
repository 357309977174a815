# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import BusinessError, ValidationError, error_body
from ..permissions import Capability
from ..services import stock_service
from ..validation import coerce_bool, coerce_int
from ..decorators import require_operator, require_capability


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _quantity_payload(data: dict) -> tuple[int, str | None]:
    if "quantity" not in data:
        raise ValidationError("quantity required")
    return coerce_int(data["quantity"], "quantity"), data.get("reason")


@stock_bp.get("/<int:product_id>")
@require_operator
@require_capability(Capability.VIEW_STOCK)
def get_stock_route(product_id: int):
    return jsonify({
        "product_id": product_id,
        "quantity": stock_service.get_quantity(product_id),
    }), 200


@stock_bp.post("/<int:product_id>/ingress")
@require_operator
@require_capability(Capability.ADJUST_STOCK)
def ingress_route(product_id: int):
    """
    Add stock. Body: {quantity, reason, unit_cost_cents}
    """
    try:
        data = request.get_json(silent=True) or {}
        quantity, reason = _quantity_payload(data)
        unit_cost = data.get("unit_cost_cents")
        movement = stock_service.ingress(
            product_id,
            quantity,
            reason,
            unit_cost_cents=coerce_int(unit_cost, "unit_cost_cents") if unit_cost is not None else None,
        )
        return jsonify({
            "movement": movement.to_dict(),
            "quantity": stock_service.get_quantity(product_id),
        }), 201

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record ingress for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/<int:product_id>/egress")
@require_operator
@require_capability(Capability.ADJUST_STOCK)
def egress_route(product_id: int):
    """
    Remove stock. Body: {quantity, reason, allow_negative}

    Without allow_negative, the request fails with INSUFFICIENT_STOCK
    rather than driving the quantity below zero.
    """
    try:
        data = request.get_json(silent=True) or {}
        quantity, reason = _quantity_payload(data)
        if coerce_bool(data.get("allow_negative", False), "allow_negative"):
            movement = stock_service.egress_allowing_negative(product_id, quantity, reason)
        else:
            movement = stock_service.egress(product_id, quantity, reason)
        return jsonify({
            "movement": movement.to_dict(),
            "quantity": stock_service.get_quantity(product_id),
        }), 201

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record egress for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
@require_operator
@require_capability(Capability.VIEW_STOCK)
def list_movements_route():
    """Global movement log. Query: type (INGRESO|EGRESO), page, page_size."""
    try:
        page = stock_service.list_movements(
            movement_type=request.args.get("type") or None,
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
        )
        return jsonify(page.to_dict()), 200

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/<int:product_id>/movements")
@require_operator
@require_capability(Capability.VIEW_STOCK)
def list_product_movements_route(product_id: int):
    try:
        page = stock_service.list_movements(
            product_id=product_id,
            movement_type=request.args.get("type") or None,
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
        )
        return jsonify(page.to_dict()), 200

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list movements for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/critical")
@require_operator
@require_capability(Capability.VIEW_STOCK)
def critical_stock_route():
    items = stock_service.critical_stock()
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200

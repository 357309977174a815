# Overview: Flask API routes for customers and their credit accounts.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import BusinessError, ValidationError, error_body
from ..models import Customer
from ..permissions import Capability
from ..services import credit_service, customer_service
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    enforce_rules_customer,
    validate_payload,
)
from ..decorators import require_operator, require_capability

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customer_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"first_name"},
    extra_fields={"initial_balance_cents"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _account_summary(customer: Customer) -> dict:
    balance = credit_service.get_balance(customer.id)
    limit = customer_service.effective_credit_limit(customer)
    return {
        "customer": customer.to_dict(),
        "display_name": customer_service.display_name(customer),
        "balance_cents": balance,
        "credit_limit_cents": limit,
        "available_cents": max(0, limit - balance),
        "entries": [line.to_dict() for line in credit_service.list_entries(customer.id)],
    }


@customers_bp.post("")
@require_operator
@require_capability(Capability.MANAGE_CREDIT)
def create_customer_route():
    try:
        patch = validate_payload(
            model=Customer, payload=request.get_json(silent=True) or {}, policy=CUSTOMER_POLICY, partial=False,
        )
        enforce_rules_customer(patch)
        opening = patch.pop("initial_balance_cents", None)
        customer = customer_service.create_customer(
            fields=patch,
            initial_balance_cents=coerce_int(opening, "initial_balance_cents") if opening is not None else 0,
            operator_id=g.current_user.id,
        )
        return jsonify({"customer": customer.to_dict()}), 201

    except BusinessError as e:
        return jsonify(error_body(e)), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/account")
@require_operator
@require_capability(Capability.VIEW_SALES)
def get_account_route(customer_id: int):
    """Balance (positive = owed), effective limit, available credit and the statement."""
    customer = customer_service.get_customer(customer_id)
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(_account_summary(customer)), 200


@customers_bp.post("/<int:customer_id>/payments")
@require_operator
@require_capability(Capability.MANAGE_CREDIT)
def register_payment_route(customer_id: int):
    """
    Body: {amount_cents, description, sale_id}

    With sale_id the payment settles that sale's debt; 400
    PAYMENT_EXCEEDS_PENDING when it is more than what is still owed on it.
    """
    try:
        data = request.get_json(silent=True) or {}
        if "amount_cents" not in data:
            raise ValidationError("amount_cents required")
        entry = credit_service.register_payment(
            customer_id,
            coerce_int(data["amount_cents"], "amount_cents"),
            operator_id=g.current_user.id,
            description=data.get("description"),
            sale_id=coerce_int(data["sale_id"], "sale_id") if data.get("sale_id") is not None else None,
        )
        return jsonify({
            "entry": entry.to_dict(),
            "balance_cents": credit_service.get_balance(customer_id),
        }), 201

    except BusinessError as e:
        status = 404 if e.code == "CUSTOMER_NOT_FOUND" else e.http_status
        return jsonify(error_body(e)), status
    except Exception:
        current_app.logger.exception("Failed to register payment for customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/pending-debts")
@require_operator
@require_capability(Capability.VIEW_SALES)
def pending_debts_route(customer_id: int):
    """Store-credit sales still owed, earliest due first, each flagged when overdue."""
    customer = customer_service.get_customer(customer_id)
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404
    items = credit_service.pending_debts(customer_id)
    return jsonify({
        "items": [p.to_dict() for p in items],
        "pending_cents": sum(p.pending_cents for p in items),
        "overdue_count": sum(1 for p in items if p.overdue),
    }), 200

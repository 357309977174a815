# Overview: Flask API route for reading the operator activity log.

from flask import Blueprint, request, jsonify, current_app

from ..permissions import Capability
from ..services import audit_service
from ..decorators import require_operator, require_capability


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_operator
@require_capability(Capability.VIEW_AUDIT)
def list_audit_route():
    """Paged activity log, newest first. Query: action, page, page_size."""
    try:
        page = audit_service.list_records(
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
            action=(request.args.get("action") or "").strip().upper() or None,
        )
        return jsonify(page.to_dict()), 200

    except Exception:
        current_app.logger.exception("Failed to list audit records")
        return jsonify({"error": "Internal server error"}), 500

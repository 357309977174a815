# Overview: Request decorators that resolve the operator and gate routes on capabilities.

from functools import wraps
from flask import request, jsonify, g, current_app

from .extensions import db
from .models import User
from .permissions import Capability

OPERATOR_HEADER = "X-Operator-Id"


def _has_operator() -> bool:
    return getattr(g, "current_user", None) is not None


def require_operator(f):
    """
    Resolve the acting operator from the X-Operator-Id header.

    Authentication happens upstream; this layer only trusts the id it is
    handed and sets g.current_user to the matching active User.

    Returns 401 if the header is missing or malformed, or the user is
    unknown or inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(OPERATOR_HEADER) or "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Operator required"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or inactive operator"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: Capability):
    """Require the operator's role to grant a capability. Apply after @require_operator."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_operator():
                return jsonify({"error": "Operator required"}), 401

            user = g.current_user
            if not user.can(capability):
                current_app.logger.warning(
                    "Permission denied: user %s (%s) lacks %s on %s",
                    user.id, user.role.value, capability.value, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": capability.value,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

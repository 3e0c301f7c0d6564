# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import user_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Resolve the calling staff member.

    Identity is established upstream (session / reverse proxy); the request
    carries the user id in the X-User-Id header. Sets g.current_user.

    Returns 401 if the header is missing or malformed, or the user is
    unknown or deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        if not raw.isdigit():
            return jsonify({"error": "Invalid user id"}), 401

        user = user_service.get_active_user(int(raw))
        if user is None:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """
    Require a specific role. Admins pass every role check.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.role != role and not user.is_admin:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": role,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

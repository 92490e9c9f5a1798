# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _unauthenticated(message: str):
    return jsonify({"success": False, "error": message, "code": "unauthenticated", "details": {}}), 401


def require_auth(f):
    """
    Require a bearer token and establish the acting user.

    Sets g.current_user to an ActingUser (id, name, role). Services receive
    it as the actor; user identity is never taken from the request body.

    Returns 401 if the header is missing, the token is unknown, or the user
    is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthenticated("Authentication required")

        token = auth_header.split(" ", 1)[1].strip()

        actor = session_service.validate_token(token)
        if actor is None:
            return _unauthenticated("Invalid or expired token")

        g.current_user = actor
        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """Require the authenticated user to hold role. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return _unauthenticated("Authentication required")

            if user.role != role:
                return jsonify({
                    "success": False,
                    "error": "Permission denied",
                    "code": "permission_denied",
                    "details": {"required_role": role},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

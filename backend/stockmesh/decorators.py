# Overview: Request authentication and capability decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .permissions import role_has_capability, validate_capability_code
from .services import token_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user_id') and hasattr(g, 'current_role')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user_id: user id from the token
    - g.current_role: role claim from the token

    Returns 401 if:
    - No Authorization header
    - Invalid, tampered or expired token
    Returns 500 if the signing secret is not configured.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        try:
            claims = token_service.decode_token(token)
        except token_service.InvalidTokenError:
            return jsonify({"error": "Invalid or expired token"}), 401
        except token_service.TokenConfigError:
            current_app.logger.error("TOKEN_SECRET is not set; cannot verify bearer tokens")
            return jsonify({"error": "Server configuration error"}), 500

        g.current_user_id = claims.user_id
        g.current_role = claims.role

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability_code: str):
    """
    Require the caller's role to hold a capability from permissions.ROLE_CAPABILITIES.

    Must be stacked under @require_auth. Unknown codes fail at import time.
    """
    if not validate_capability_code(capability_code):
        raise ValueError(f"Unknown capability: {capability_code}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not role_has_capability(g.current_role, capability_code):
                current_app.logger.warning(
                    "Denied %s %s to user %s (role=%s, needs %s)",
                    request.method, request.path, g.current_user_id, g.current_role, capability_code,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

# Overview: Flask API routes for identity; registration, login and user administration.

"""
Identity routes.

- POST /api/auth/register and /api/auth/login are public
- GET /api/auth/roles is public
- /api/auth/users routes require a token; listing is filtered per role and
  the rest is admin-only (see permissions.ROLE_CAPABILITIES)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_capability
from ..models import User
from ..permissions import DEFAULT_REGISTRATION_ROLE, ROLES, SELF_REGISTRATION_ROLES
from ..services import auth_service, token_service
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_user,
    validate_payload,
)

USER_POLICY = ModelValidationPolicy(
    writable_fields={"username", "email", "role"},
    required_on_create={"username", "email", "role"},
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _split_credentials(payload: dict) -> tuple[dict, str | None, str | None]:
    """Pull the password fields out so the rest can be checked against the User columns."""
    payload = dict(payload)
    password = payload.pop("password", None)
    confirm_password = payload.pop("confirm_password", None)
    return payload, password, confirm_password


@auth_bp.post("/register")
def register_route():
    """
    Self-registration.

    Request body:
    {
        "username": str,
        "email": str,
        "password": str,
        "confirm_password": str,
        "role": str (optional, defaults to sales; admin not allowed)
    }

    Returns:
        201: user summary (never the password hash)
        400: validation failure, password mismatch, duplicate user
    """
    payload = request.get_json(silent=True) or {}
    fields, password, confirm_password = _split_credentials(payload)
    fields.setdefault("role", DEFAULT_REGISTRATION_ROLE)

    try:
        patch = validate_payload(model=User, payload=fields, policy=USER_POLICY, partial=False)
        enforce_rules_user(patch)
        if patch["role"] not in SELF_REGISTRATION_ROLES:
            raise ValidationError("role cannot be self-assigned")
        user = auth_service.register_user(
            username=patch["username"],
            email=patch["email"],
            password=password,
            confirm_password=confirm_password,
            role=patch["role"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User registered successfully", "user": user.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and issue a bearer token.

    Accepts "email" or "username" plus "password".

    Returns:
        200: token and user summary
        400: missing or non-string fields
        401: invalid credentials
        500: signing secret not configured
    """
    data = request.get_json(silent=True) or {}
    identifier = data.get("email") or data.get("username")
    password = data.get("password")

    if not identifier or not password:
        return jsonify({"error": "email/username and password required"}), 400
    if not isinstance(identifier, str) or not isinstance(password, str):
        return jsonify({"error": "email/username and password must be strings"}), 400

    try:
        user = auth_service.authenticate(identifier, password)
        token = token_service.issue_token(user)
    except auth_service.InvalidCredentialsError:
        return jsonify({"error": "Invalid credentials"}), 401
    except token_service.TokenConfigError:
        current_app.logger.error("TOKEN_SECRET is not set; refusing to issue tokens")
        return jsonify({"error": "Server configuration error"}), 500
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Login successful",
        "token": token,
        "user": user.to_dict(),
    }), 200


@auth_bp.get("/roles")
def list_roles_route():
    return jsonify(list(ROLES)), 200


@auth_bp.get("/users")
@require_auth
@require_capability("LIST_USERS")
def list_users_route():
    """Admin sees every user; company sees warehouse managers only."""
    users = auth_service.list_users(g.current_role)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@auth_bp.post("/users")
@require_auth
@require_capability("MANAGE_USERS")
def create_user_route():
    payload = request.get_json(silent=True) or {}
    fields, password, _ = _split_credentials(payload)

    try:
        patch = validate_payload(model=User, payload=fields, policy=USER_POLICY, partial=False)
        enforce_rules_user(patch)
        user = auth_service.create_user(
            username=patch["username"],
            email=patch["email"],
            password=password,
            role=patch["role"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User created", "user": user.to_dict()}), 201


@auth_bp.get("/users/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def get_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(user.to_dict()), 200


@auth_bp.put("/users/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
        enforce_rules_user(patch)
        user = auth_service.update_user(user_id, patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User updated", "user": user.to_dict()}), 200


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_capability("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "User deleted"}), 200

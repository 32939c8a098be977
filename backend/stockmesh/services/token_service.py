# Overview: Signed bearer tokens carrying the user id and role claim.

"""
Tokens are stateless so every service can verify them with the shared
TOKEN_SECRET alone, without a call back to the identity service.

Format: itsdangerous URLSafeTimedSerializer over {"id": <int>, "role": <str>},
salted per purpose and bounded by TOKEN_MAX_AGE_SECONDS.
"""

from dataclasses import dataclass

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

TOKEN_SALT = "stockmesh.bearer"


class TokenConfigError(Exception):
    """Raised when the signing secret is not configured."""
    pass


class InvalidTokenError(Exception):
    """Raised for tampered, malformed or expired tokens."""
    pass


@dataclass
class TokenClaims:
    user_id: int
    role: str


def _serializer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("TOKEN_SECRET")
    if not secret:
        raise TokenConfigError("TOKEN_SECRET is not set")
    return URLSafeTimedSerializer(secret, salt=TOKEN_SALT)


def issue_token(user) -> str:
    return _serializer().dumps({"id": user.id, "role": user.role})


def decode_token(token: str) -> TokenClaims:
    max_age = current_app.config.get("TOKEN_MAX_AGE_SECONDS")
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise InvalidTokenError("Token expired") from exc
    except BadSignature as exc:
        raise InvalidTokenError("Invalid token") from exc

    if not isinstance(payload, dict) or "id" not in payload or "role" not in payload:
        raise InvalidTokenError("Invalid token")

    return TokenClaims(user_id=payload["id"], role=payload["role"])

# Overview: Service-layer operations for identity; user accounts and credentials.

"""
Authentication and user management.

Uses bcrypt for password hashing and validates password strength before
anything is stored.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- username and email are unique across all users
- Tokens are issued separately (see token_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..permissions import USER_LIST_VISIBILITY
from ..validation import ConflictError, NotFoundError, ValidationError
from stockmesh.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


class InvalidCredentialsError(Exception):
    """Raised when a login attempt does not match any account."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash is a
    failed verification, not an error.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _ensure_unique(username: str | None, email: str | None, *, exclude_user_id: int | None = None) -> None:
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return

    query = db.session.query(User).filter(db.or_(*clauses))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)

    if query.first():
        raise ConflictError("User already exists")


def register_user(*, username: str, email: str, password: str, confirm_password: str | None, role: str) -> User:
    """
    Self-registration.

    Raises:
        ValidationError: passwords differ or password too weak
        ConflictError: username or email already taken
    """
    if password != confirm_password:
        raise ValidationError("Passwords do not match")

    return create_user(username=username, email=email, password=password, role=role)


def create_user(*, username: str, email: str, password: str, role: str) -> User:
    """Create a user with a bcrypt password hash (admin path and registration)."""
    _ensure_unique(username, email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User:
    """
    Authenticate by email or username.

    Raises InvalidCredentialsError without saying which half was wrong.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.email == identifier, User.username == identifier)
    ).first()

    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("Invalid credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users(viewer_role: str) -> list[User]:
    """
    Users visible to the viewer's role (see permissions.USER_LIST_VISIBILITY).

    Roles missing from the visibility table see nobody.
    """
    if viewer_role not in USER_LIST_VISIBILITY:
        return []

    visible_roles = USER_LIST_VISIBILITY[viewer_role]
    query = db.session.query(User).order_by(User.id.asc())
    if visible_roles is not None:
        query = query.filter(User.role.in_(visible_roles))
    return query.all()


def get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def update_user(user_id: int, patch: dict) -> User:
    """Admin update of username, email and role. Passwords are not changed here."""
    user = get_user(user_id)

    _ensure_unique(patch.get("username"), patch.get("email"), exclude_user_id=user.id)

    for key in ("username", "email", "role"):
        if key in patch:
            setattr(user, key, patch[key])

    db.session.commit()
    return user


def delete_user(user_id: int) -> None:
    user = get_user(user_id)
    db.session.delete(user)
    db.session.commit()

# Overview: Service-layer operations for user accounts; password hashing and actor lookups.

"""
User account service.

WHY: Every stock-changing action is attributed to a user, so the engines
need a cheap "does this actor exist" lookup. Passwords are hashed with
bcrypt (cost factor 12); plain passwords are never stored.
"""

import logging

import bcrypt
from sqlalchemy import or_

from ..extensions import db
from ..errors import DuplicateUserError, UserNotFoundError
from ..models import User
from ..models.auth import USER_ROLES
from ..validation import ValidationError
from app.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = "cashier",
    *,
    rounds: int = 12,
) -> User:
    """
    Create a new user with a bcrypt password hash.

    Raises:
        ValidationError: bad role, short password, blank username/email
        DuplicateUserError: username or email already taken
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if len(username) < 3:
        raise ValidationError("username must be at least 3 characters")
    if "@" not in email:
        raise ValidationError("email must be a valid address")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    existing = db.session.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise DuplicateUserError(
            "Username or email already exists",
            {"username": username, "email": email},
        )

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("Created %s user %s (id=%s)", role, username, user.id)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Check credentials for an active user.

    Returns the User on success, None on any failure (unknown user, wrong
    password, deactivated account) so callers cannot tell which.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user

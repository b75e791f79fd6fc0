# Overview: Password hashing and credential checks.

"""
Authentication service.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 6 characters
- Emails are matched case-insensitively (stored lower-cased)
- Deactivated accounts cannot authenticate
- Session tokens managed separately (see session_service.py)
"""
from __future__ import annotations

import logging

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import User
from ..time_utils import utcnow

logger = logging.getLogger(__name__)


PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128
DEFAULT_BCRYPT_ROUNDS = 12


def validate_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters")


def hash_password(password: str) -> str:
    """Validate and bcrypt-hash a password. Returns the hash as a string."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash is treated as a
    mismatch.
    """
    if not isinstance(password, str) or not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Malformed password hash encountered during login")
        return False


def find_user_by_email(email: str | None) -> User | None:
    if not email:
        return None
    return db.session.query(User).filter(User.email == email.strip().lower()).first()


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, or None.

    Updates last_login_at on success.
    """
    user = find_user_by_email(email)
    if user is None or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user

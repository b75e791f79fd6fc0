"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the account is temporarily locked.

- Tracks failed attempts per email (LOGIN_FAILED rows in security_events)
- Lockout after LOGIN_MAX_FAILED_ATTEMPTS failures within the window
- Lockout lasts LOGIN_LOCKOUT_MINUTES after the most recent failure
- The failsafe admin account is never locked out
"""
from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent
from ..time_utils import utcnow
from .auth_service import find_user_by_email


DEFAULT_MAX_FAILED_ATTEMPTS = 20
DEFAULT_LOCKOUT_MINUTES = 15

LOGIN_RESOURCE = "/api/auth/login"


def _max_attempts() -> int:
    return current_app.config.get("LOGIN_MAX_FAILED_ATTEMPTS", DEFAULT_MAX_FAILED_ATTEMPTS)


def _lockout_window() -> timedelta:
    return timedelta(minutes=current_app.config.get("LOGIN_LOCKOUT_MINUTES", DEFAULT_LOCKOUT_MINUTES))


def _normalize(identifier: str | None) -> str:
    return (identifier or "").strip().lower()


def get_recent_failed_attempts(identifier: str) -> int:
    """Count LOGIN_FAILED events for this email within the lockout window."""
    cutoff = utcnow() - _lockout_window()
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == _normalize(identifier),
        SecurityEvent.occurred_at >= cutoff,
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    identifier = _normalize(identifier)
    user = find_user_by_email(identifier)
    if user is not None and user.is_failsafe:
        return False, None

    if get_recent_failed_attempts(identifier) < _max_attempts():
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + _lockout_window()
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failed login; returns the number of recent failures."""
    identifier = _normalize(identifier)
    user = find_user_by_email(identifier)

    event = SecurityEvent(
        user_id=user.id if user else None,
        event_type="LOGIN_FAILED",
        resource=LOGIN_RESOURCE,
        action=identifier,
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()

    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    event = SecurityEvent(
        user_id=user_id,
        event_type="LOGIN_SUCCESS",
        resource=LOGIN_RESOURCE,
        action=_normalize(identifier),
        success=True,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()


def get_lockout_status(identifier: str) -> dict:
    failed_count = get_recent_failed_attempts(identifier)
    is_locked, seconds_remaining = is_account_locked(identifier)
    window = _lockout_window()

    return {
        "locked": is_locked,
        "failed_attempts": failed_count,
        "max_attempts": _max_attempts(),
        "seconds_until_unlock": seconds_remaining,
        "lockout_window_minutes": int(window.total_seconds() / 60),
    }

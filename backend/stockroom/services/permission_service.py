# Overview: Actor capability checks and the security event audit trail.

"""
Permission checking and security event logging.

DESIGN PRINCIPLES:
- Fail closed: inactive or unknown actors have no capabilities
- Capabilities are derived from the role on every check, never cached
- Log denials only: grants are not logged
"""
from __future__ import annotations

from ..extensions import db
from ..errors import ForbiddenError
from ..models import SecurityEvent, User
from ..permissions import has_capability
from ..time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a row to the security audit trail and commit it.

    event_type examples:
    - LOGIN_SUCCESS
    - LOGIN_FAILED
    - LOGOUT
    - PERMISSION_DENIED
    - PASSWORD_CHANGED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def require_actor(user_id: int | None, capability: str) -> User:
    """
    Load the acting user and require one capability.

    Raises ForbiddenError if the user is missing, inactive, or lacks the
    capability. Nothing is written, so it is safe inside a unit of work.
    """
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        raise ForbiddenError("Acting user not found or inactive")
    if not has_capability(user, capability):
        raise ForbiddenError(f"Permission denied: {capability} required")
    return user

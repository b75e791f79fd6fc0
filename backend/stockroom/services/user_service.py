# backend/stockroom/services/user_service.py
"""
User management.

FAILSAFE ACCOUNT:
The account whose email equals FAILSAFE_ADMIN_EMAIL always exists (see
ensure_failsafe_admin), is always an active admin, and cannot be deleted,
deactivated or modified through the API, including by itself. No other
account may take its email.

Roles are the only permission input: changing a role changes capabilities
immediately because they are derived on every read.
"""
from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..models import HandOver, Product, SecurityEvent, SessionToken, User
from ..permissions import MANAGE_PRODUCTS, MANAGE_USERS, ROLE_ADMIN, ROLE_EMPLOYEE
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_user,
    ensure_choice,
    normalize_email,
    validate_payload,
)
from .auth_service import hash_password, verify_password
from .handover_queries import paginate
from .permission_service import require_actor
from .session_service import revoke_all_user_sessions

logger = logging.getLogger(__name__)


DEFAULT_FAILSAFE_EMAIL = "failsafe@stockroom.local"

USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"first_name", "last_name", "email", "role", "phone"}),
    required_on_create=frozenset({"first_name", "last_name", "email"}),
)
USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"first_name", "last_name", "email", "role", "phone"}),
)
PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"first_name", "last_name", "phone"}),
)

USER_SORT_FIELDS = {
    "first_name": User.first_name,
    "last_name": User.last_name,
    "email": User.email,
    "role": User.role,
    "created_at": User.created_at,
    "last_login_at": User.last_login_at,
}
SORT_ORDERS = ("asc", "desc")


def failsafe_email() -> str:
    return current_app.config.get("FAILSAFE_ADMIN_EMAIL", DEFAULT_FAILSAFE_EMAIL).strip().lower()


def is_failsafe_email(email: str | None) -> bool:
    return bool(email) and email.strip().lower() == failsafe_email()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _ensure_email_available(email: str, *, exclude_user_id: int | None = None) -> None:
    if is_failsafe_email(email):
        raise ForbiddenError("Cannot use failsafe admin email")
    query = db.session.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise ConflictError("User already exists with this email")


def _protect_failsafe(user: User, message: str) -> None:
    if user.is_failsafe or is_failsafe_email(user.email):
        raise ForbiddenError(message)


def list_users(
    *,
    actor_user_id: int,
    search: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> dict:
    require_actor(actor_user_id, MANAGE_USERS)

    if sort_by not in USER_SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(USER_SORT_FIELDS)}")
    ensure_choice(sort_order, "sort_order", SORT_ORDERS)

    query = db.session.query(User)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.email.ilike(pattern),
        ))
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    column = USER_SORT_FIELDS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, User.id.asc())

    users, pagination = paginate(query, page=page, limit=limit)
    return {"users": [u.to_dict() for u in users], "pagination": pagination}


def list_users_for_handover(*, actor_user_id: int) -> list[dict]:
    """Active users a manager can hand items to, by name."""
    require_actor(actor_user_id, MANAGE_PRODUCTS)
    users = (
        db.session.query(User)
        .filter(User.is_active.is_(True))
        .order_by(User.first_name.asc(), User.last_name.asc(), User.id.asc())
        .all()
    )
    return [u.to_summary() for u in users]


def _insert_user(*, patch: dict, password: str) -> User:
    user = User(
        first_name=patch["first_name"],
        last_name=patch["last_name"],
        email=patch["email"],
        role=patch.get("role") or ROLE_EMPLOYEE,
        phone=patch.get("phone"),
        password_hash=hash_password(password),
        is_active=True,
        is_failsafe=False,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User %s created (%s, role %s)", user.id, user.email, user.role)
    return user


def _validate_new_user(payload: dict) -> tuple[dict, str]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    fields = dict(payload)
    password = fields.pop("password", None)
    patch = validate_payload(model=User, payload=fields, policy=USER_CREATE_POLICY, partial=False)
    enforce_rules_user(patch)
    if password is None:
        raise ValidationError("Missing required fields: password")
    _ensure_email_available(patch["email"])
    return patch, password


def create_user(*, payload: dict, actor_user_id: int) -> User:
    """
    Create an account (admin only). Payload carries a plaintext password.

    Raises:
        ForbiddenError: actor lacks MANAGE_USERS, or email is the failsafe email
        ConflictError: email taken
        ValidationError: bad payload or short password
    """
    require_actor(actor_user_id, MANAGE_USERS)
    patch, password = _validate_new_user(payload)
    return _insert_user(patch=patch, password=password)


def provision_user(
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str = ROLE_EMPLOYEE,
) -> User:
    """Create an account from a trusted local shell (CLI). Same rules, no actor."""
    patch, password = _validate_new_user({
        "email": email,
        "password": password,
        "first_name": first_name,
        "last_name": last_name,
        "role": role,
    })
    return _insert_user(patch=patch, password=password)


def update_user(*, user_id: int, payload: dict, actor_user_id: int) -> User:
    require_actor(actor_user_id, MANAGE_USERS)
    user = get_user(user_id)
    _protect_failsafe(user, "Cannot modify failsafe admin account")

    patch = validate_payload(model=User, payload=payload, policy=USER_UPDATE_POLICY, partial=True)
    enforce_rules_user(patch)

    if "email" in patch and patch["email"] != user.email:
        _ensure_email_available(patch["email"], exclude_user_id=user.id)

    previous_role = user.role
    for key, value in patch.items():
        setattr(user, key, value)

    db.session.commit()
    if user.role != previous_role:
        logger.info("User %s role changed %s -> %s", user.id, previous_role, user.role)
    return user


def update_profile(*, user_id: int, payload: dict) -> User:
    """A user editing their own names and phone."""
    user = get_user(user_id)
    _protect_failsafe(user, "Cannot modify failsafe admin profile")

    patch = validate_payload(model=User, payload=payload, policy=PROFILE_POLICY, partial=True)
    enforce_rules_user(patch)
    for key, value in patch.items():
        setattr(user, key, value)

    db.session.commit()
    return user


def delete_user(*, user_id: int, actor_user_id: int) -> None:
    """
    Delete an account that no handover references.

    Raises:
        ForbiddenError: failsafe account or own account
        ConflictError: the user appears on handover records (deactivate instead)
    """
    actor = require_actor(actor_user_id, MANAGE_USERS)
    user = get_user(user_id)
    _protect_failsafe(user, "Cannot delete failsafe admin account")
    if user.id == actor.id:
        raise ForbiddenError("You cannot delete your own account")

    referenced = db.session.query(HandOver).filter(or_(
        HandOver.employee_id == user.id,
        HandOver.handed_over_by_user_id == user.id,
        HandOver.returned_by_user_id == user.id,
        HandOver.rejected_by_user_id == user.id,
    )).count()
    if referenced:
        raise ConflictError("User appears on handover records; deactivate the account instead")

    # Sessions go with the account; audit rows and product attribution are kept, unlinked
    db.session.query(SessionToken).filter(SessionToken.user_id == user.id).delete(
        synchronize_session="fetch"
    )
    db.session.query(SecurityEvent).filter(SecurityEvent.user_id == user.id).update(
        {"user_id": None}, synchronize_session=False
    )
    for column in (Product.created_by_user_id, Product.updated_by_user_id):
        db.session.query(Product).filter(column == user.id).update(
            {column: None}, synchronize_session=False
        )
    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted by user %s", user_id, actor.id)


def toggle_user_status(*, user_id: int, actor_user_id: int) -> User:
    actor = require_actor(actor_user_id, MANAGE_USERS)
    user = get_user(user_id)
    _protect_failsafe(user, "Cannot deactivate failsafe admin account")
    if user.id == actor.id:
        raise ForbiddenError("You cannot deactivate your own account")

    user.is_active = not user.is_active
    if not user.is_active:
        revoke_all_user_sessions(user.id, "User account deactivated", commit=False)

    db.session.commit()
    logger.info("User %s %s", user.id, "activated" if user.is_active else "deactivated")
    return user


def change_password(*, user_id: int, current_password: str, new_password: str) -> User:
    """Self-service password change. Revokes every session of the user."""
    user = get_user(user_id)
    _protect_failsafe(user, "Cannot change failsafe admin password")

    if not current_password:
        raise ValidationError("Current password is required")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    revoke_all_user_sessions(user.id, "Password changed", commit=False)
    db.session.commit()
    return user


def ensure_failsafe_admin(
    password: str | None = None,
    *,
    first_name: str = "Failsafe",
    last_name: str = "Admin",
) -> User:
    """
    Create or repair the failsafe account.

    An existing account is forced back to admin, active and flagged; its
    password is only replaced when one is given. Creating it requires one.
    """
    email = failsafe_email()
    user = db.session.query(User).filter(User.email == email).first()

    if user is None:
        if password is None:
            raise ValidationError("A password is required to create the failsafe admin")
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=normalize_email(email),
            password_hash=hash_password(password),
        )
        db.session.add(user)
        logger.info("Failsafe admin %s created", email)
    elif password is not None:
        user.password_hash = hash_password(password)

    user.role = ROLE_ADMIN
    user.is_active = True
    user.is_failsafe = True

    db.session.commit()
    return user

# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/stockroom/routes/users.py
"""
User administration routes.

SECURITY:
- Everything requires MANAGE_USERS, except /for-handover (MANAGE_PRODUCTS)
- The failsafe admin account cannot be modified, deactivated or deleted
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import DomainError, ValidationError
from ..permissions import MANAGE_PRODUCTS, MANAGE_USERS
from ..services import user_service
from ..validation import json_object, parse_pagination
from ..decorators import require_auth, require_capability


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

DEFAULT_USER_PAGE_LIMIT = 10


def _parse_bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValidationError(f"{name} must be true or false")


@users_bp.get("")
@require_auth
@require_capability(MANAGE_USERS)
def list_users_route():
    """
    Query params:
    - search: matches first name, last name or email
    - role: admin | manager | employee
    - is_active: true | false
    - sort_by: first_name | last_name | email | role | created_at | last_login_at
    - sort_order: asc | desc (default desc)
    - page, limit
    """
    try:
        page, limit = parse_pagination(
            request.args.get("page"),
            request.args.get("limit"),
            default_limit=DEFAULT_USER_PAGE_LIMIT,
            max_limit=current_app.config["PAGE_LIMIT_MAX"],
        )
        result = user_service.list_users(
            actor_user_id=g.current_user.id,
            search=request.args.get("search"),
            role=request.args.get("role") or None,
            is_active=_parse_bool_arg("is_active"),
            sort_by=request.args.get("sort_by") or "created_at",
            sort_order=request.args.get("sort_order") or "desc",
            page=page,
            limit=limit,
        )
        return jsonify(result), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code


@users_bp.get("/for-handover")
@require_auth
@require_capability(MANAGE_PRODUCTS)
def users_for_handover_route():
    try:
        users = user_service.list_users_for_handover(actor_user_id=g.current_user.id)
        return jsonify({"users": users}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code


@users_bp.get("/<int:user_id>")
@require_auth
@require_capability(MANAGE_USERS)
def get_user_route(user_id: int):
    try:
        return jsonify({"user": user_service.get_user(user_id).to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code


@users_bp.post("")
@require_auth
@require_capability(MANAGE_USERS)
def create_user_route():
    """
    Request body:
    {
        "first_name": str, "last_name": str, "email": str,
        "password": str (min 6), "role": str (default employee), "phone": str
    }
    """
    try:
        user = user_service.create_user(
            payload=json_object(request.get_json(silent=True)),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>")
@require_auth
@require_capability(MANAGE_USERS)
def update_user_route(user_id: int):
    try:
        user = user_service.update_user(
            user_id=user_id,
            payload=json_object(request.get_json(silent=True)),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"message": "User updated successfully", "user": user.to_dict()}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>")
@require_auth
@require_capability(MANAGE_USERS)
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(user_id=user_id, actor_user_id=g.current_user.id)
        return jsonify({"message": "User deleted successfully"}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>/toggle-status")
@require_auth
@require_capability(MANAGE_USERS)
def toggle_user_status_route(user_id: int):
    try:
        user = user_service.toggle_user_status(user_id=user_id, actor_user_id=g.current_user.id)
        state = "activated" if user.is_active else "deactivated"
        return jsonify({"message": f"User {state} successfully", "user": user.to_dict()}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to toggle user status")
        return jsonify({"error": "Internal server error"}), 500

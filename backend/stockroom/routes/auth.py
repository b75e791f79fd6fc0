# Overview: Flask API routes for authentication; parses input and returns JSON responses.

# backend/stockroom/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- No self-registration: accounts are created by admins or the CLI
- Login throttling with temporary lockout (failsafe admin exempt)
- Opaque session tokens, revoked on logout and password change
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import DomainError, ValidationError
from ..permissions import capability_flags
from ..services import auth_service
from ..services import login_throttle_service
from ..services import permission_service
from ..services import session_service
from ..services import user_service
from ..decorators import bearer_token, require_auth
from ..validation import json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/login-status")
def login_status_route():
    """
    Lockout policy, plus the lockout state of ?email= when given.
    """
    email = request.args.get("email")
    cfg = current_app.config
    body = {
        "message": "Login endpoint is available",
        "rate_limit": {
            "window_minutes": cfg.get("LOGIN_LOCKOUT_MINUTES"),
            "max_attempts": cfg.get("LOGIN_MAX_FAILED_ATTEMPTS"),
        },
    }
    if email:
        body["lockout"] = login_throttle_service.get_lockout_status(email)
    return jsonify(body), 200


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    The token goes in the Authorization header: Bearer <token>.
    """
    try:
        data = json_object(request.get_json(silent=True))
        email = (data.get("email") or "").strip().lower()
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            minutes_remaining = (seconds_remaining // 60) + 1 if seconds_remaining else None
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": minutes_remaining,
            }), 429

        user = auth_service.authenticate(email, password)

        if not user:
            existing = auth_service.find_user_by_email(email)
            if existing is not None and not existing.is_active:
                reason = "Account is deactivated"
            else:
                reason = "Invalid credentials"

            login_throttle_service.record_failed_attempt(
                identifier=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason=reason,
            )
            return jsonify({"error": reason}), 401

        login_throttle_service.record_successful_login(
            user_id=user.id,
            identifier=email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the presented session token."""
    try:
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with role-derived permission flags."""
    user = g.current_user
    return jsonify({"user": user.to_dict(), "permissions": capability_flags(user)}), 200


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """Update own first_name, last_name, phone."""
    try:
        user = user_service.update_profile(
            user_id=g.current_user.id,
            payload=json_object(request.get_json(silent=True)),
        )
        return jsonify({"user": user.to_dict(), "message": "Profile updated successfully"}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.put("/password")
@require_auth
def change_password_route():
    """
    Request body:
    {
        "current_password": str,
        "new_password": str (min 6)
    }

    All sessions of the user are revoked; log in again afterwards.
    """
    try:
        data = json_object(request.get_json(silent=True))
        user = user_service.change_password(
            user_id=g.current_user.id,
            current_password=data.get("current_password"),
            new_password=data.get("new_password"),
        )
        permission_service.log_security_event(
            user_id=user.id,
            event_type="PASSWORD_CHANGED",
            success=True,
            resource=request.path,
            action=request.method,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"message": "Password changed successfully"}), 200
    except DomainError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

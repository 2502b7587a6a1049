# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/bookcycle/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration and password change
- Registration per role gated by system settings
- Session management with token-based auth
- Password change revokes every session of the profile
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_TEACHER
from ..services import auth_service
from ..services import session_service
from ..services import settings_service
from ..decorators import bearer_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration for teachers and admins.

    Each role can be switched off in system settings
    (teacher_registration_enabled / admin_registration_enabled).

    Request body:
        {"email", "password", "full_name", "department", "role"?}
    """
    try:
        data = request.get_json(silent=True) or {}
        role = data.get("role") or ROLE_TEACHER

        if not settings_service.is_registration_enabled(role):
            return jsonify({"error": f"Registration is disabled for role '{role}'"}), 403

        profile = auth_service.create_profile(
            email=data.get("email"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            department=data.get("department"),
            role=role,
            bcrypt_rounds=current_app.config.get("BCRYPT_ROUNDS", 12),
        )
        current_app.logger.info("Registered profile %s (%s)", profile.id, profile.role)
        return jsonify({"user": profile.to_dict()}), 201

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a profile and create a session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        profile = auth_service.authenticate(email, password)
        if not profile:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            profile.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": profile.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this call."""
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        return jsonify({"message": "Logged out successfully"}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.session_context
    return jsonify({
        "user": context.profile.to_dict(),
        "session": context.session.to_dict(),
    }), 200


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Change the caller's password.

    Request body: {"current_password", "new_password"}

    All sessions of the profile are revoked; the client must log in again.
    """
    try:
        data = request.get_json(silent=True) or {}
        profile_id = g.current_user.id

        auth_service.change_password(
            profile_id=profile_id,
            current_password=data.get("current_password"),
            new_password=data.get("new_password"),
            bcrypt_rounds=current_app.config.get("BCRYPT_ROUNDS", 12),
        )
        revoked = session_service.revoke_all_sessions(profile_id, reason="Password changed")

        return jsonify({
            "message": "Password changed successfully",
            "sessions_revoked": revoked,
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

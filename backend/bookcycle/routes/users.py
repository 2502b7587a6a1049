# Overview: Flask API routes for admin user management.

# backend/bookcycle/routes/users.py
"""
User Management API Routes

- GET   /api/users            - Profiles, filterable by ?role= ?department= ?q=
- PATCH /api/users/<id>/role  - Promote to admin / demote to teacher

All routes require the admin role. Admins cannot change their own role.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_ADMIN
from ..services import auth_service
from ..decorators import require_auth, require_role


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    """
    Response:
        {
            "users": [...],
            "stats": {"total_users", "admin_users", "teacher_users", "department_counts"}
        }

    stats always cover every profile, not just the filtered page.
    """
    try:
        profiles = auth_service.list_profiles(
            role=request.args.get("role") or None,
            department=request.args.get("department") or None,
            search=request.args.get("q"),
        )
        return jsonify({
            "users": [p.to_dict() for p in profiles],
            "stats": auth_service.profile_stats(),
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.patch("/<int:profile_id>/role")
@require_auth
@require_role(ROLE_ADMIN)
def update_role_route(profile_id: int):
    """
    Request body:
        {"role": "admin" | "teacher"}

    Error responses:
        400: Unknown role
        403: Changing your own role
        404: Profile not found
    """
    try:
        data = request.get_json(silent=True) or {}
        profile = auth_service.update_role(
            profile_id,
            data.get("role"),
            actor_id=g.current_user.id,
        )
        current_app.logger.info("Profile %s role set to %s by %s", profile.id, profile.role, g.current_user.id)
        return jsonify({"user": profile.to_dict()}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user role")
        return jsonify({"error": "Internal server error"}), 500

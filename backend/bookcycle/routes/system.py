# backend/bookcycle/routes/system.py
"""
System endpoints: health check, departments, settings and the activity log.
"""

import time
from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..departments import Department
from ..errors import PurchaseCycleError
from ..models import Profile, PurchaseSheet, SessionToken
from ..models.auth import ROLE_ADMIN
from ..services import activity_service, settings_service
from ..decorators import require_auth, require_role
from bookcycle.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

_SETTINGS_FIELDS = ("request_deadline", "teacher_registration_enabled", "admin_registration_enabled")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        profile_count = db.session.query(Profile).count()
        sheet_count = db.session.query(PurchaseSheet).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "profiles": profile_count,
                "purchase_sheets": sheet_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503


@system_bp.get("/api/departments")
def list_departments():
    return jsonify({"departments": Department.choices()}), 200


@system_bp.get("/api/settings")
@require_auth
def get_settings_route():
    try:
        settings = settings_service.get_settings()
        data = settings.to_dict()
        data["request_window_open"] = settings_service.is_request_window_open()
        return jsonify({"settings": data}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load settings")
        return jsonify({"error": "Internal server error"}), 500


@system_bp.patch("/api/settings")
@require_auth
@require_role(ROLE_ADMIN)
def update_settings_route():
    """
    Request body (all optional):
        {
            "request_deadline": "2026-03-01T17:00:00Z" | null,
            "teacher_registration_enabled": true,
            "admin_registration_enabled": false
        }
    """
    try:
        data = request.get_json(silent=True) or {}
        unknown = sorted(k for k in data if k not in _SETTINGS_FIELDS)
        if unknown:
            return jsonify({"error": f"Field not allowed: {', '.join(unknown)}"}), 400

        settings = settings_service.update_settings(**{k: data[k] for k in _SETTINGS_FIELDS if k in data})
        return jsonify({"settings": settings.to_dict()}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500


@system_bp.get("/api/activity")
@require_auth
@require_role(ROLE_ADMIN)
def list_activity_route():
    """
    Query params:
        limit: 1-500 (default 50)
        action: filter by action code (optional)
    """
    try:
        limit = request.args.get("limit", 50, type=int)
        if limit is None or limit < 1 or limit > 500:
            return jsonify({"error": "limit must be between 1 and 500"}), 400

        entries = activity_service.list_recent_activity(limit=limit, action=request.args.get("action"))
        return jsonify({"activity": [e.to_dict() for e in entries]}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load activity log")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API route for the role-specific dashboard summary.

# backend/bookcycle/routes/dashboard.py
"""
Dashboard API Route

- GET /api/dashboard - Admins get workspace-wide counts and recent activity;
                       teachers get counts over their own requests and sheets.
"""

from flask import Blueprint, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..services import dashboard_service, settings_service
from ..decorators import require_auth


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    try:
        context = g.session_context
        if context.is_admin:
            summary = dashboard_service.admin_summary()
            summary["recent_activity"] = [e.to_dict() for e in summary["recent_activity"]]
        else:
            summary = dashboard_service.teacher_summary(context.user_id)
            summary["recent_requests"] = [r.to_dict() for r in summary["recent_requests"]]

        summary["request_window_open"] = settings_service.is_request_window_open()
        return jsonify({"role": context.role, "dashboard": summary}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load dashboard")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for browsing and deleting archived purchase cycles.

# backend/bookcycle/routes/history.py
"""
Purchase History API Routes

- GET    /api/history              - One summary per closed cycle, newest first
- GET    /api/history/<cycle_id>   - Archived sheets, requests and purchases of one cycle
- DELETE /api/history/<cycle_id>   - Permanently delete one cycle's history

History rows themselves are never edited.
"""

from flask import Blueprint, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_ADMIN
from ..services import cycle_service
from ..validation import format_cents
from ..decorators import require_auth, require_role


history_bp = Blueprint("history", __name__, url_prefix="/api/history")


@history_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_cycles_route():
    try:
        return jsonify({"cycles": cycle_service.list_cycles()}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list purchase cycles")
        return jsonify({"error": "Internal server error"}), 500


@history_bp.get("/<cycle_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_cycle_route(cycle_id: str):
    try:
        cycle = cycle_service.get_cycle(cycle_id)
        return jsonify({
            "cycle_id": cycle["cycle_id"],
            "cycle_closed_at": cycle["cycle_closed_at"],
            "sheets": [s.to_dict() for s in cycle["sheets"]],
            "requests": [r.to_dict() for r in cycle["requests"]],
            "purchases": [p.to_dict() for p in cycle["purchases"]],
            "total_amount_cents": cycle["total_amount_cents"],
            "total_amount": format_cents(cycle["total_amount_cents"]),
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load purchase cycle")
        return jsonify({"error": "Internal server error"}), 500


@history_bp.delete("/<cycle_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_cycle_route(cycle_id: str):
    try:
        deleted = cycle_service.delete_cycle(cycle_id, actor_id=g.current_user.id)
        return jsonify({
            "deleted": deleted,
            "message": f"Purchase cycle {cycle_id} deleted",
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase cycle")
        return jsonify({"error": "Internal server error"}), 500

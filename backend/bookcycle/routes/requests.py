# Overview: Flask API routes for book requests.

# backend/bookcycle/routes/requests.py
"""
Book Request API Routes

- GET    /api/requests          - Teacher: own requests; admin: ?sheet_id= required
- POST   /api/requests          - Teacher adds a request to a sheet assigned to them
- PATCH  /api/requests/<id>     - Edit a request (teachers: own only)
- DELETE /api/requests/<id>     - Withdraw a request (teachers: own only)

Creating requests is closed once the request deadline in system settings has
passed.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_TEACHER
from ..services import request_service, settings_service, sheet_service
from ..validation import parse_id
from ..decorators import require_auth, require_role


requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


def _acting_teacher_id():
    """Teachers act on their own rows only; admins act on any row."""
    context = g.session_context
    return None if context.is_admin else context.user_id


@requests_bp.get("")
@require_auth
def list_requests_route():
    try:
        context = g.session_context
        if not context.is_admin:
            rows = request_service.list_by_teacher(context.user_id)
        else:
            sheet_id = request.args.get("sheet_id")
            if sheet_id is None:
                return jsonify({"error": "sheet_id query parameter is required"}), 400
            rows = request_service.list_by_sheet(parse_id(sheet_id, "sheet_id"))

        return jsonify({"requests": [r.to_dict() for r in rows]}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list book requests")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.post("")
@require_auth
@require_role(ROLE_TEACHER)
def create_request_route():
    """
    Request body:
        {
            "sheet_id": 4,
            "book_name": "Calculus",
            "author": "Stewart",
            "edition": "8th",
            "quantity": 30
        }

    Error responses:
        400: Missing/blank field or quantity < 1
        403: Deadline passed, or sheet not assigned to the caller
        404: Sheet not found
    """
    try:
        data = dict(request.get_json(silent=True) or {})

        if not settings_service.is_request_window_open():
            return jsonify({"error": "The request deadline has passed"}), 403

        if "sheet_id" not in data:
            return jsonify({"error": "sheet_id is required"}), 400
        sheet = sheet_service.get_sheet(parse_id(data.pop("sheet_id"), "sheet_id"))

        teacher_id = g.current_user.id
        if sheet.assigned_to != teacher_id:
            return jsonify({"error": "This sheet is not assigned to you"}), 403

        book_request = request_service.create_request(
            sheet_id=sheet.id,
            teacher_id=teacher_id,
            fields=data,
        )
        return jsonify({"request": book_request.to_dict()}), 201

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create book request")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.patch("/<int:request_id>")
@require_auth
def update_request_route(request_id: int):
    try:
        data = request.get_json(silent=True) or {}
        book_request = request_service.update_request(
            request_id,
            data,
            acting_teacher_id=_acting_teacher_id(),
        )
        return jsonify({"request": book_request.to_dict()}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update book request")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.delete("/<int:request_id>")
@require_auth
def delete_request_route(request_id: int):
    try:
        request_service.delete_request(request_id, acting_teacher_id=_acting_teacher_id())
        return jsonify({"message": f"Book request {request_id} deleted"}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete book request")
        return jsonify({"error": "Internal server error"}), 500

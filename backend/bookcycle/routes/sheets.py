# Overview: Flask API routes for purchase sheets and consolidation.

# backend/bookcycle/routes/sheets.py
"""
Purchase Sheet API Routes

- GET    /api/sheets                 - Admin: all sheets; teacher: sheets assigned to them
- POST   /api/sheets                 - Create a sheet for one teacher or for all teachers
- GET    /api/sheets/<id>            - One sheet with its book requests
- DELETE /api/sheets/<id>            - Manual delete; requests are kept, orphaned
- POST   /api/sheets/<id>/compare    - Move a pending sheet to the comparison phase
- POST   /api/sheets/consolidate     - Merge teachers' pending requests into one sheet
- GET    /api/sheets/teachers        - Teachers a sheet can be assigned to

SECURITY:
- All routes require authentication
- Everything except reading one's own sheets requires the admin role
- Actor ids are taken from the authenticated session, NOT from the request body
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_ADMIN, ROLE_TEACHER
from ..services import auth_service, consolidation_service, request_service, sheet_service
from ..validation import parse_id
from ..decorators import require_auth, require_role


sheets_bp = Blueprint("sheets", __name__, url_prefix="/api/sheets")


def _sheet_payload(sheet) -> dict:
    data = sheet.to_dict()
    data["request_count"] = sheet_service.count_requests(sheet.id)
    return data


@sheets_bp.get("")
@require_auth
def list_sheets_route():
    """
    Query params:
        status: pending | comparing | completed (optional)
    """
    try:
        status = request.args.get("status") or None
        context = g.session_context

        if context.is_admin:
            sheets = sheet_service.list_sheets(status=status)
        else:
            sheets = sheet_service.list_sheets(status=status, assigned_to=context.user_id)

        return jsonify({"sheets": [_sheet_payload(s) for s in sheets]}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sheets")
        return jsonify({"error": "Internal server error"}), 500


@sheets_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_sheet_route():
    """
    Request body:
        {
            "sheet_name": "Term 1 Books",
            "assigned_to": 7 | "all",
            "department": "mathematics"   // optional, single-teacher only
        }

    "all" creates one sheet per active teacher.
    """
    try:
        data = request.get_json(silent=True) or {}
        created_by = g.current_user.id
        assigned_to = data.get("assigned_to")

        if assigned_to == "all":
            sheets = sheet_service.create_sheets_for_all_teachers(
                sheet_name=data.get("sheet_name"),
                created_by=created_by,
            )
            return jsonify({
                "sheets": [s.to_dict() for s in sheets],
                "message": f"Created {len(sheets)} sheets",
            }), 201

        if assigned_to is None:
            return jsonify({"error": "assigned_to is required"}), 400

        sheet = sheet_service.create_sheet(
            sheet_name=data.get("sheet_name"),
            assigned_to=parse_id(assigned_to, "assigned_to"),
            created_by=created_by,
            department=data.get("department"),
        )
        return jsonify({"sheet": sheet.to_dict()}), 201

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sheet")
        return jsonify({"error": "Internal server error"}), 500


@sheets_bp.get("/teachers")
@require_auth
@require_role(ROLE_ADMIN)
def list_teachers_route():
    try:
        teachers = auth_service.list_teachers()
        return jsonify({"teachers": [t.to_dict() for t in teachers]}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list teachers")
        return jsonify({"error": "Internal server error"}), 500


@sheets_bp.get("/<int:sheet_id>")
@require_auth
def get_sheet_route(sheet_id: int):
    """Teachers may only read sheets assigned to them."""
    try:
        sheet = sheet_service.get_sheet(sheet_id)
        context = g.session_context
        if context.role == ROLE_TEACHER and sheet.assigned_to != context.user_id:
            return jsonify({"error": "Permission denied"}), 403

        requests = request_service.list_by_sheet(sheet.id)
        data = sheet.to_dict()
        data["request_count"] = len(requests)
        return jsonify({
            "sheet": data,
            "requests": [r.to_dict() for r in requests],
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get sheet")
        return jsonify({"error": "Internal server error"}), 500


@sheets_bp.delete("/<int:sheet_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_sheet_route(sheet_id: int):
    try:
        sheet_service.delete_sheet(sheet_id, actor_id=g.current_user.id)
        return jsonify({"message": f"Sheet {sheet_id} deleted"}), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sheet")
        return jsonify({"error": "Internal server error"}), 500


@sheets_bp.post("/<int:sheet_id>/compare")
@require_auth
@require_role(ROLE_ADMIN)
def move_to_compare_route(sheet_id: int):
    """
    Move a pending sheet to comparing (PENDING -> COMPARING).

    Error responses:
        400: Sheet has no book requests
        404: Sheet not found
        409: Sheet is not pending
    """
    try:
        sheet, moved = sheet_service.move_to_compare(sheet_id, actor_id=g.current_user.id)
        return jsonify({
            "sheet": sheet.to_dict(),
            "requests_moved": moved,
            "message": f"Moved {moved} book requests to comparison phase",
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to move sheet to comparison")
        return jsonify({"error": "Internal server error"}), 500


@sheets_bp.post("/consolidate")
@require_auth
@require_role(ROLE_ADMIN)
def consolidate_route():
    """
    Request body: {"teacher_ids": [3, 5]}

    Response:
        {
            "sheet": {...},
            "requests": [...],     // merged, one per unique title
            "source_count": 6,
            "teacher_count": 2
        }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = consolidation_service.consolidate(
            data.get("teacher_ids"),
            created_by=g.current_user.id,
        )
        return jsonify({
            "sheet": result.sheet.to_dict(),
            "requests": [r.to_dict() for r in result.requests],
            "source_count": result.source_count,
            "teacher_count": result.teacher_count,
            "message": (
                f"Consolidated {result.source_count} requests into "
                f"{len(result.requests)} unique books from {result.teacher_count} teachers"
            ),
        }), 201

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to consolidate requests")
        return jsonify({"error": "Internal server error"}), 500

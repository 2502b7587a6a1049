# Overview: Flask API routes for finalizing purchases and closing the purchase cycle.

# backend/bookcycle/routes/purchases.py
"""
Purchase Finalization API Routes

- GET  /api/purchases                  - Live finalized purchases with grand total
- POST /api/purchases/finalize         - Finalize selected books at their minimum price
- POST /api/purchases/finalize-all     - Finalize every book under comparing sheets
- POST /api/purchases/<id>/move-back   - Undo one finalization
- POST /api/purchases/close-cycle      - Archive the whole workspace into history

CRITICAL: close-cycle deletes every live sheet, request, price and purchase
after snapshotting them. It cannot be undone.

SECURITY: All routes require the admin role. finalized_by / closed_by are
taken from the authenticated session, NOT from the request body.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_ADMIN
from ..services import cycle_service, finalize_service
from ..validation import format_cents
from ..decorators import require_auth, require_role


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _result_payload(result) -> dict:
    return {
        "purchases": [p.to_dict(include_request=True) for p in result.purchases],
        "created_count": result.created_count,
        "skipped_request_ids": result.skipped_request_ids,
        "completed_sheet_ids": result.completed_sheet_ids,
        "total_amount_cents": result.total_amount_cents,
        "total_amount": format_cents(result.total_amount_cents),
    }


@purchases_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_purchases_route():
    try:
        purchases, total_cents = finalize_service.list_finalized_purchases()
        return jsonify({
            "purchases": [p.to_dict(include_request=True) for p in purchases],
            "total_amount_cents": total_cents,
            "total_amount": format_cents(total_cents),
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list finalized purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/finalize")
@require_auth
@require_role(ROLE_ADMIN)
def finalize_route():
    """
    Request body: {"book_ids": [12, 13]}

    Error responses:
        400: Empty selection, or no selected book has a positive price
        404: Unknown book id
    """
    try:
        data = request.get_json(silent=True) or {}
        result = finalize_service.finalize(data.get("book_ids"), finalized_by=g.current_user.id)
        return jsonify(_result_payload(result)), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/finalize-all")
@require_auth
@require_role(ROLE_ADMIN)
def finalize_all_route():
    try:
        result = finalize_service.finalize_all(finalized_by=g.current_user.id)
        return jsonify(_result_payload(result)), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize all purchases")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/move-back")
@require_auth
@require_role(ROLE_ADMIN)
def move_back_route(purchase_id: int):
    try:
        restored = finalize_service.move_back(purchase_id, actor_id=g.current_user.id)
        return jsonify({
            "price_comparison": restored.to_dict(),
            "message": "Purchase moved back to comparison phase",
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to move purchase back")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/close-cycle")
@require_auth
@require_role(ROLE_ADMIN)
def close_cycle_route():
    """
    Response:
        {
            "cycle": {
                "cycle_id": "6f1c...",
                "sheets_archived": 3,
                "requests_archived": 12,
                "purchases_archived": 9,
                ...
            }
        }
    """
    try:
        result = cycle_service.close_cycle(closed_by=g.current_user.id)
        return jsonify({
            "cycle": result.to_dict(),
            "message": "Purchase cycle closed",
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close purchase cycle")
        return jsonify({"error": "Internal server error"}), 500

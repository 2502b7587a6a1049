# Overview: Flask API routes for the shop price comparison workspace.

# backend/bookcycle/routes/prices.py
"""
Price Comparison API Routes

- GET /api/prices                  - Comparison workspace (books under comparing sheets)
- PUT /api/prices                  - Save a price matrix
- GET /api/prices/<book_id>/best   - Minimum price and winning shop for one book

All routes require the admin role.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PurchaseCycleError
from ..models.auth import ROLE_ADMIN
from ..services import price_service
from ..validation import format_cents
from ..decorators import require_auth, require_role


prices_bp = Blueprint("prices", __name__, url_prefix="/api/prices")


@prices_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def workspace_route():
    """
    Response:
        {
            "books": [...],
            "shops": ["Alpha Books", "City Store"],
            "prices": {"12": {"Alpha Books": {"price_cents": 8500, "price": "85.00"}}},
            "best": {"12": {"min_price_cents": 8500, "min_price": "85.00", "shop_name": "Alpha Books"}}
        }
    """
    try:
        workspace = price_service.comparison_workspace()
        return jsonify({
            "books": [b.to_dict() for b in workspace["books"]],
            "shops": workspace["shops"],
            "prices": {
                str(book_id): {
                    shop: {"price_cents": cents, "price": format_cents(cents)}
                    for shop, cents in row.items()
                }
                for book_id, row in workspace["prices"].items()
            },
            "best": {str(book_id): offer.to_dict() for book_id, offer in workspace["best"].items()},
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load comparison workspace")
        return jsonify({"error": "Internal server error"}), 500


@prices_bp.put("")
@require_auth
@require_role(ROLE_ADMIN)
def save_prices_route():
    """
    Request body:
        {
            "book_ids": [12, 13],   // optional, defaults to the whole workspace
            "prices": {"12": {"Alpha Books": "85.00", "City Store": 90}}
        }

    Existing prices of the affected books are replaced. Zero or blank prices
    are dropped.
    """
    try:
        data = request.get_json(silent=True) or {}
        actor_id = g.current_user.id
        matrix = data.get("prices")

        if "book_ids" in data:
            rows = price_service.record_prices(data.get("book_ids"), matrix, actor_id=actor_id)
        else:
            rows = price_service.save_workspace_prices(matrix, actor_id=actor_id)

        return jsonify({
            "price_comparisons": [r.to_dict() for r in rows],
            "message": "Prices saved successfully",
        }), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save prices")
        return jsonify({"error": "Internal server error"}), 500


@prices_bp.get("/<int:book_id>/best")
@require_auth
@require_role(ROLE_ADMIN)
def best_offer_route(book_id: int):
    try:
        offer = price_service.best_offer(book_id)
        return jsonify(offer.to_dict()), 200

    except PurchaseCycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load best offer")
        return jsonify({"error": "Internal server error"}), 500

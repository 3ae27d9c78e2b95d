# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/spherical/routes/inventory.py
from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service
from ..validation import ValidationError, NotFoundError, ConflictError
from ..decorators import require_auth, require_permission

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_inventory_route():
    """All inventory rows with their product, ordered by product name."""
    try:
        items = inventory_service.list_inventory()
        return jsonify([item.to_dict() for item in items]), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("")
@require_auth
@require_permission("MANAGE_INVENTORY")
def upsert_inventory_route():
    """
    Set the stock for a product at a location.

    Body: product_id, location, quantity (> 0), min_stock_level (>= 0)

    Returns 201 when a new row was created, 200 when an existing row was updated.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = inventory_service.validate_stock_payload(payload)
        item, created = inventory_service.upsert_stock(
            product_id=patch["product_id"],
            location=patch["location"],
            quantity=patch["quantity"],
            min_stock_level=patch["min_stock_level"],
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to save inventory item")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(item.to_dict()), 201 if created else 200


@inventory_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    """Rows at or below their minimum stock level, lowest quantity first."""
    try:
        items = inventory_service.list_low_stock()
        return jsonify([item.to_dict() for item in items]), 200
    except Exception:
        current_app.logger.exception("Failed to list low-stock items")
        return jsonify({"error": "Internal server error"}), 500

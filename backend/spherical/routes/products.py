# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/spherical/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations are open to every staff role (cashiers sell from this list)
- Create/update require EDIT_CATALOG
- Delete requires DELETE_CATALOG
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products ordered by name.

    Query params:
    - category_id: int (optional) - filter by category
    """
    category_id = request.args.get("category_id", type=int)
    products = catalog_service.list_products(category_id=category_id)
    return jsonify([p.to_dict() for p in products]), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(catalog_service.get_product(product_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.post("")
@require_auth
@require_permission("EDIT_CATALOG")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        product = catalog_service.create_product(payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product.to_dict()), 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("EDIT_CATALOG")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        product = catalog_service.update_product(product_id, payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_CATALOG")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True}), 200

# Overview: Flask API routes for product categories; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    return jsonify([c.to_dict() for c in catalog_service.list_categories()]), 200


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        category = catalog_service.get_category(category_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    data = category.to_dict()
    data["products"] = [p.to_dict() for p in category.products]
    return jsonify(data), 200


@categories_bp.post("")
@require_auth
@require_permission("EDIT_CATALOG")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(category.to_dict()), 201


@categories_bp.patch("/<int:category_id>")
@require_auth
@require_permission("EDIT_CATALOG")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        category = catalog_service.update_category(category_id, payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(category.to_dict()), 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("DELETE_CATALOG")
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True}), 200

# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/spherical/routes/sales.py
"""
Sales routes.

POST /api/sales records the sale and consumes stock in one atomic unit;
either everything is stored or nothing is.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import sales_service
from ..services.concurrency import StorageError
from ..services.permission_service import AuthorizationError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("PROCESS_SALES")
def create_sale_route():
    """
    Record a sale.

    Body:
    {
        "items": [{"product_id": 1, "quantity": 2, "unit_price": 150.0}],
        "payment_method": "cash" | "card" | "bank_transfer" | "mobile_money",
        "discount": 0,            // percent, optional
        "tax": 0,                 // percent, optional
        "customer_name": "...",   // optional
        "customer_email": "...",  // optional
        "customer_phone": "...",  // optional
        "customer_id": "..."      // optional
    }
    """
    payload = request.get_json(silent=True)

    try:
        sale = sales_service.create_sale(payload, g.identity)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except AuthorizationError as e:
        return jsonify(e.to_dict()), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError as e:
        current_app.logger.exception("Failed to store sale")
        return jsonify({"error": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(sale.to_dict()), 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    try:
        return jsonify([s.to_dict() for s in sales_service.list_sales()]), 200
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/by-date")
@require_auth
@require_permission("VIEW_SALES")
def sales_by_date_route():
    """
    Sales between two dates, end date inclusive.

    Query params: startDate, endDate (ISO-8601, e.g. 2024-01-31)
    """
    try:
        sales = sales_service.list_sales_by_date(
            request.args.get("startDate"),
            request.args.get("endDate"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to list sales by date range")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify([s.to_dict() for s in sales]), 200


@sales_bp.get("/summary")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_summary_route():
    try:
        return jsonify(sales_service.get_sales_summary()), 200
    except Exception:
        current_app.logger.exception("Failed to build sales summary")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(sale_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch sale")
        return jsonify({"error": "Internal server error"}), 500

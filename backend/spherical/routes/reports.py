# Overview: Flask API routes for reports; read-only aggregates over sales and stock.

from flask import Blueprint, jsonify, current_app

from ..services import sales_service, inventory_service
from ..decorators import require_auth, require_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_summary_report():
    """Sale count, revenue, average sale value and amounts per category."""
    try:
        return jsonify(sales_service.get_sales_summary()), 200
    except Exception:
        current_app.logger.exception("Failed to build sales summary report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_REPORTS")
def low_stock_report():
    try:
        items = inventory_service.list_low_stock()
        return jsonify({
            "count": len(items),
            "items": [item.to_dict() for item in items],
        }), 200
    except Exception:
        current_app.logger.exception("Failed to build low-stock report")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for staff account management; parses input and returns JSON responses.

# backend/spherical/routes/users.py
"""
Staff account management.

The guard already limits /api/users to MANAGING_DIRECTOR and ADMIN; the
per-route permission checks repeat that with the action table.

The last active managing director can never be deleted, deactivated or
demoted (409).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import permission_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _audit(event_type: str, user_id: int, reason: str | None = None) -> None:
    permission_service.log_security_event(
        user_id=g.identity.user_id,
        event_type=event_type,
        success=True,
        resource=f"/api/users/{user_id}",
        action=request.method,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    try:
        return jsonify([u.to_dict() for u in auth_service.list_users()]), 200
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """
    Create a staff account with an explicit role.

    Body: name, email, password, role, is_active (optional, default true)
    """
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role"),
            is_active=data.get("is_active", True),
        )
        _audit("USER_CREATED", user.id, reason=f"role={user.role}")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(user.to_dict()), 201


@users_bp.get("/<int:user_id>")
@require_auth
@require_permission("VIEW_USERS")
def get_user_route(user_id: int):
    try:
        return jsonify(auth_service.get_user(user_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@users_bp.patch("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.update_user(user_id, data)
        if data.get("is_active") is False:
            _audit("USER_DEACTIVATED", user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(user.to_dict()), 200


@users_bp.patch("/<int:user_id>/toggle-active")
@require_auth
@require_permission("MANAGE_USERS")
def toggle_active_route(user_id: int):
    try:
        user = auth_service.toggle_active(user_id)
        _audit("USER_ACTIVATED" if user.is_active else "USER_DEACTIVATED", user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to toggle user active status")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(user.to_dict()), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id)
        _audit("USER_DELETED", user_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True}), 200

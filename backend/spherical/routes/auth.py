# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/spherical/routes/auth.py
"""
Authentication API routes

/api/auth is public to the guard; each route does its own checks.

- POST /register: public self-registration (REPORT_VIEWER role)
- POST /login: email + password -> bearer token
- POST /logout: revoke the presented token
- GET  /me: the caller's account and the actions their role allows
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..permissions import get_role_actions
from ..validation import ValidationError, ConflictError, is_valid_email
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Public self-registration.

    New accounts always receive the REPORT_VIEWER role regardless of payload.
    """
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.register_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict(), "message": "User registered successfully"}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    Failed attempts are recorded in security_events.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not isinstance(email, str) or not is_valid_email(email.strip()) or not isinstance(password, str) or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason=f"Invalid credentials for {email.strip().lower()}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        return jsonify({
            "user": user.to_dict(),
            "actions": get_role_actions(user.role_enum),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user and the actions their role allows (for UI filtering)."""
    try:
        user = auth_service.get_user(g.identity.user_id)
        return jsonify({
            "user": user.to_dict(),
            "actions": get_role_actions(g.identity.role),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to load current user")
        return jsonify({"error": "Internal server error"}), 500

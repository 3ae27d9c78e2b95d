# backend/spherical/routes/system.py
"""
System health endpoint and the page paths the authorization guard redirects to.

The back office UI is a separate client; the page paths here answer with
small JSON documents so redirects issued by the guard land somewhere useful.
"""

import time
from flask import Blueprint, current_app, request, g
from ..extensions import db
from ..models import User, SessionToken
from spherical.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }, http_status


@system_bp.get("/")
def home():
    return {"name": "Spherical GIS back office API", "status": "ok"}


@system_bp.get("/login")
def login_page():
    return {"page": "login", "callback_url": request.args.get("callbackUrl")}


@system_bp.get("/signup")
def signup_page():
    return {
        "page": "signup",
        "message": request.args.get("message"),
        "callback_url": request.args.get("callbackUrl"),
    }


@system_bp.get("/unauthorized")
def unauthorized_page():
    return {
        "page": "unauthorized",
        "message": request.args.get("message"),
        "current_role": request.args.get("currentRole"),
    }


@system_bp.get("/admin")
@system_bp.get("/admin/<path:section>")
def admin_page(section: str = ""):
    """Admin pages; the guard has already checked the caller's role for the section."""
    return {"page": f"/admin/{section}".rstrip("/"), "role": g.identity.role.value}

# Overview: Request guard hook plus authentication and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, redirect, current_app

from . import guard
from .guard import GuardOutcome
from .services import session_service, permission_service
from .services.permission_service import AuthorizationError


def is_api_path(path: str) -> bool:
    return guard.matches_prefix(path, "/api")


def bearer_token() -> str | None:
    """Token from `Authorization: Bearer <token>`, or None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def _log_denied(user_id, resource: str, action: str, reason: str) -> None:
    current_app.logger.warning("Denied %s %s for user %s: %s", request.method, resource, user_id, reason)
    permission_service.log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def guard_request():
    """
    before_request hook: resolve the bearer token, run the guard, render its decision.

    Sets g.identity (None for anonymous callers on public paths).
    API paths get JSON 401/403; page paths get a 302 to the guard's redirect target.
    """
    g.identity = None
    if request.method == "OPTIONS":
        return None

    identity = session_service.resolve_identity(bearer_token())
    g.identity = identity

    decision = guard.evaluate(request.path, request.query_string.decode("utf-8", "replace"), identity)

    if decision.outcome is GuardOutcome.ALLOW:
        return None

    if decision.outcome is GuardOutcome.DENY_UNAUTHENTICATED:
        if is_api_path(request.path):
            return jsonify({"error": "Authentication required"}), 401
        return redirect(decision.redirect_to, code=302)

    _log_denied(identity.user_id, request.path, request.method, decision.reason)
    if is_api_path(request.path):
        return jsonify({
            "error": "Permission denied",
            "message": decision.reason,
            "required_roles": list(decision.allowed_roles),
            "current_role": decision.current_role,
        }), 403
    return redirect(decision.redirect_to, code=302)


def _is_authenticated() -> bool:
    return getattr(g, "identity", None) is not None


def require_auth(f):
    """
    Require an authenticated caller.

    The guard hook has already resolved the token; this covers routes the
    guard treats as public (e.g. /api/auth/me, /api/auth/logout).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: str):
    """
    Require the caller's role to allow `action`.

    Denials are written to security_events.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(g.identity, action)
            except AuthorizationError as e:
                _log_denied(g.identity.user_id, request.path, action, str(e))
                return jsonify(e.to_dict()), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

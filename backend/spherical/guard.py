# Overview: Request authorization guard; classifies a path and decides allow / login / unauthorized.

"""
Authorization Guard

evaluate() is a pure function of (path, query string, identity). It never
touches the request, the session or the database, so it can be exercised
directly in tests and reused by the before_request hook in decorators.py.

RULES:
1. Public paths are allowed without an identity.
2. Any other path needs an identity; without one the caller is sent to sign in,
   with the requested path + query preserved as the callback URL.
3. With an identity, the first matching entry of ROUTE_RULES decides which
   roles may enter. Paths with no entry only need authentication.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

from .permissions import ALL_ROLES, Role, parse_role, role_names


@dataclass(frozen=True)
class Identity:
    """Authenticated caller: who they are and the role they act under."""
    user_id: int
    role: Role


class GuardOutcome(str, Enum):
    ALLOW = "ALLOW"
    DENY_UNAUTHENTICATED = "DENY_UNAUTHENTICATED"
    DENY_UNAUTHORIZED = "DENY_UNAUTHORIZED"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    identity: Identity | None = None
    redirect_to: str | None = None
    callback_url: str | None = None
    reason: str | None = None
    allowed_roles: tuple[str, ...] = ()
    current_role: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GuardOutcome.ALLOW


# "/" is public only as an exact match; the rest cover their whole subtree.
PUBLIC_EXACT = ("/",)
PUBLIC_PREFIXES = (
    "/login",
    "/signup",
    "/public",
    "/api/auth",
    "/unauthorized",
    "/api/health",
)

MD = Role.MANAGING_DIRECTOR
ADMIN = Role.ADMIN
INVENTORY_MANAGER = Role.INVENTORY_MANAGER
CASHIER = Role.CASHIER
REPORT_VIEWER = Role.REPORT_VIEWER

# Ordered: first matching prefix wins, so specific entries precede "/admin".
ROUTE_RULES: tuple[tuple[str, frozenset[Role]], ...] = (
    ("/admin/users", frozenset({MD, ADMIN})),
    ("/admin/staff-management", frozenset({MD})),
    ("/admin/settings", frozenset({MD})),
    ("/admin/reports", frozenset({MD, ADMIN, REPORT_VIEWER})),
    ("/admin/products", frozenset({MD, ADMIN, INVENTORY_MANAGER})),
    ("/admin/inventory", frozenset({MD, ADMIN, INVENTORY_MANAGER})),
    ("/admin/sales", frozenset({MD, ADMIN, CASHIER})),
    ("/admin", ALL_ROLES),
    ("/api/users", frozenset({MD, ADMIN})),
    ("/api/reports", frozenset({MD, ADMIN, REPORT_VIEWER})),
)

LOGIN_PATH = "/login"
SIGNUP_PATH = "/signup"
UNAUTHORIZED_PATH = "/unauthorized"
SIGNUP_MESSAGE = "Please sign in to access admin features"


def matches_prefix(path: str, prefix: str) -> bool:
    """Prefix match on path-segment boundaries: /public matches /public/x, not /publicity."""
    if path == prefix:
        return True
    return path.startswith(prefix.rstrip("/") + "/")


def is_public(path: str) -> bool:
    if path in PUBLIC_EXACT:
        return True
    return any(matches_prefix(path, prefix) for prefix in PUBLIC_PREFIXES)


def rule_for(path: str) -> frozenset[Role] | None:
    """Allowed roles for the first matching route entry, or None when unlisted."""
    for prefix, roles in ROUTE_RULES:
        if matches_prefix(path, prefix):
            return roles
    return None


def _callback_url(path: str, query_string: str | None) -> str:
    if query_string:
        return f"{path}?{query_string}"
    return path


def _sign_in_redirect(path: str, callback_url: str) -> str:
    if matches_prefix(path, "/admin"):
        params = {"message": SIGNUP_MESSAGE, "callbackUrl": callback_url}
        return f"{SIGNUP_PATH}?{urlencode(params)}"
    return f"{LOGIN_PATH}?{urlencode({'callbackUrl': callback_url})}"


def denial_reason(roles) -> str:
    return f"Access denied. Required role: {' or '.join(role_names(roles))}"


def evaluate(path: str, query_string: str | None, identity: Identity | None) -> GuardDecision:
    """Decide whether a request for `path` may proceed for `identity`."""
    path = path or "/"

    if is_public(path):
        return GuardDecision(GuardOutcome.ALLOW, identity=identity)

    if identity is None:
        callback = _callback_url(path, query_string)
        return GuardDecision(
            GuardOutcome.DENY_UNAUTHENTICATED,
            redirect_to=_sign_in_redirect(path, callback),
            callback_url=callback,
            reason="Authentication required",
        )

    roles = rule_for(path)
    role = parse_role(identity.role)
    if roles is not None and role not in roles:
        reason = denial_reason(roles)
        current = role.value if role is not None else str(identity.role)
        params = {"message": reason, "currentRole": current}
        return GuardDecision(
            GuardOutcome.DENY_UNAUTHORIZED,
            identity=identity,
            redirect_to=f"{UNAUTHORIZED_PATH}?{urlencode(params)}",
            reason=reason,
            allowed_roles=tuple(role_names(roles)),
            current_role=current,
        )

    return GuardDecision(GuardOutcome.ALLOW, identity=identity)

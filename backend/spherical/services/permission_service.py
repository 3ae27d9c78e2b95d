# Overview: Service-layer operations for permission checks and the security audit trail.

"""
Permission Checking and Security Event Logging

WHY: Enforce role-based access control and create an audit trail.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and unknown actions are denied
- Pure checks: has_permission() never touches the database
- Log denials only: granted checks are not logged
"""

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import allowed_roles, has_permission, parse_role, role_names
from spherical.time_utils import utcnow


class AuthorizationError(Exception):
    """
    Raised when an authenticated caller's role does not allow an action.

    Carries the allowed roles and the caller's role; the audience is internal
    staff, so both are reported back.
    """

    def __init__(self, message: str, allowed_roles=None, current_role=None):
        super().__init__(message)
        self.allowed_roles = list(allowed_roles or [])
        self.current_role = current_role

    def to_dict(self) -> dict:
        return {
            "error": "Permission denied",
            "message": str(self),
            "required_roles": self.allowed_roles,
            "current_role": self.current_role,
        }


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - USER_CREATED
    - USER_DEACTIVATED
    - USER_DELETED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or None) and user_agent[:512],
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


def require_permission(identity, action: str) -> None:
    """
    Raise AuthorizationError unless `identity` may perform `action`.

    `identity` is anything with a `role` attribute (normally guard.Identity).
    """
    role = parse_role(getattr(identity, "role", None))
    if has_permission(role, action):
        return

    allowed = role_names(allowed_roles(action))
    current = role.value if role is not None else getattr(identity, "role", None)
    raise AuthorizationError(
        f"Access denied. Required role: {' or '.join(allowed)}",
        allowed_roles=allowed,
        current_role=current,
    )

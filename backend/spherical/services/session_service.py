# Overview: Service-layer operations for session tokens; resolves bearer tokens into identities.

"""
Session Token Management Service

WHY: The authorization guard needs a trustworthy (user_id, role) pair for
every request. Tokens are opaque, cryptographically random, hashed in the
database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute lifetime SESSION_MAX_AGE_HOURS (30 days by default)
- Idle timeout SESSION_IDLE_TIMEOUT_HOURS (24 hours by default)
- Revocable on logout, deactivation or deletion
- The role is read from the user row on every resolution, never from the token
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from spherical.time_utils import utcnow


class AuthenticationError(Exception):
    """No valid identity. Callers answer 401 / redirect to login without detail."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


def _max_age() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_MAX_AGE_HOURS", 720))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 24))


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is enough.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises AuthenticationError if the user does not exist or is inactive.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError()

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _max_age(),
        user_agent=(user_agent or None) and user_agent[:512],
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason
    db.session.commit()


def resolve_session(token: str | None) -> SessionToken | None:
    """
    Validate a token and return its live SessionToken, or None.

    Returns None if:
    - Token is missing, unknown, expired, or revoked
    - Session has been idle longer than the idle timeout (auto-revoked)
    - User account is deactivated or gone (auto-revoked)

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout", now)
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        return None

    if user.role_enum is None:
        # Unknown role in storage: treat as unauthenticated, keep the session
        current_app.logger.warning("User %s has unknown role %r", user.id, user.role)
        return None

    session.last_used_at = now
    db.session.commit()
    return session


def resolve_identity(token: str | None):
    """
    Resolve a bearer token into an Identity(user_id, role), or None.

    This is the only way an Identity enters the guard.
    """
    from ..guard import Identity

    session = resolve_session(token)
    if session is None:
        return None
    return Identity(user_id=session.user_id, role=session.user.role_enum)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason, utcnow())
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", commit: bool = True) -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked. Forces re-authentication on all devices.
    """
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    if commit:
        db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """
    Delete expired and revoked sessions older than `retention_days`.

    Returns count of sessions deleted. Run periodically (`flask sessions cleanup`).
    """
    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted

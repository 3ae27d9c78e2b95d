# Overview: Service-layer operations for staff accounts; password hashing and user lifecycle.

"""
Authentication and User Management Service

WHY: Every sale and stock change is attributed to a staff account. Uses bcrypt
for password hashing.

INVARIANT: at least one active MANAGING_DIRECTOR exists at all times. Deleting,
deactivating or demoting the last one is rejected with ConflictError. The
count and the write happen inside one atomic unit, and the active-director
rows are locked before counting, so two concurrent requests cannot both pass
the check.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum 6 characters
- Emails are stored lower-cased; uniqueness is case-insensitive
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import User, Sale
from ..permissions import Role, DEFAULT_SIGNUP_ROLE, parse_role
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
)
from .concurrency import atomic, lock_for_update
from . import session_service
from spherical.time_utils import utcnow


MIN_PASSWORD_LENGTH = 6

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "role", "is_active"},
    required_on_create={"name", "email"},
)

LAST_DIRECTOR_DELETE = "Cannot delete the last managing director"
LAST_DIRECTOR_DEACTIVATE = "Cannot deactivate the last active managing director"
LAST_DIRECTOR_DEMOTE = "Cannot change the role of the last active managing director"


def validate_password(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "Invalid request data",
            details={"password": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"},
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password length is validated before hashing.
    """
    validate_password(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_email(email)).first()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def count_active_directors() -> int:
    return db.session.query(func.count(User.id)).filter(
        User.role == Role.MANAGING_DIRECTOR.value,
        User.is_active.is_(True),
    ).scalar() or 0


def _lock_active_directors() -> int:
    """
    Lock every active managing director row and return how many there are.

    Must run inside an atomic unit. A concurrent request touching another
    director blocks until this unit ends, then counts the committed state.
    """
    return len(lock_for_update(
        db.session.query(User).filter(
            User.role == Role.MANAGING_DIRECTOR.value,
            User.is_active.is_(True),
        )
    ).all())


def _is_active_director(user: User) -> bool:
    return user.is_active and user.role_enum is Role.MANAGING_DIRECTOR


def _ensure_email_free(email: str, exclude_user_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError("User with this email already exists")


def create_user(
    name: str,
    email: str,
    password: str,
    role=DEFAULT_SIGNUP_ROLE,
    is_active: bool = True,
) -> User:
    """
    Create a staff account.

    Raises ValidationError for bad name/email/role/password and ConflictError
    when the email is already registered.
    """
    patch = validate_payload(
        model=User,
        payload={"name": name, "email": email, "role": str(role) if role else None, "is_active": is_active},
        policy=USER_POLICY,
        partial=False,
    )
    patch["email"] = normalize_email(patch["email"])
    enforce_rules_user(patch)
    password_hash = hash_password(password)

    _ensure_email_free(patch["email"])

    user = User(
        name=patch["name"],
        email=patch["email"],
        password_hash=password_hash,
        role=patch["role"],
        is_active=patch.get("is_active", True),
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Created user %s with role %s", user.id, user.role)
    return user


def register_user(name: str, email: str, password: str) -> User:
    """Public self-registration. New accounts always get the default signup role."""
    return create_user(name=name, email=email, password=password, role=DEFAULT_SIGNUP_ROLE)


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching email + password, or None.

    Updates last_login_at on success.
    """
    user = get_user_by_email(email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_user(user_id: int, payload: dict) -> User:
    """
    Partially update a user. Accepts name, email, role, is_active and password.

    Demoting or deactivating the last active managing director raises
    ConflictError. Deactivation revokes the user's sessions.
    """
    payload = dict(payload or {})
    password = payload.pop("password", None)

    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
    if "email" in patch:
        patch["email"] = normalize_email(patch["email"])
    enforce_rules_user(patch)

    password_hash = hash_password(password) if password else None

    with atomic():
        user = get_user(user_id)

        if _is_active_director(user):
            demoted = "role" in patch and patch["role"] != Role.MANAGING_DIRECTOR.value
            deactivated = patch.get("is_active") is False
            if (demoted or deactivated) and _lock_active_directors() <= 1:
                raise ConflictError(LAST_DIRECTOR_DEMOTE if demoted else LAST_DIRECTOR_DEACTIVATE)

        if "email" in patch:
            _ensure_email_free(patch["email"], exclude_user_id=user.id)

        for key, value in patch.items():
            setattr(user, key, value)
        if password_hash:
            user.password_hash = password_hash

        if patch.get("is_active") is False:
            session_service.revoke_all_user_sessions(user.id, reason="User deactivated", commit=False)

    current_app.logger.info("Updated user %s (%s)", user.id, ", ".join(sorted(patch)) or "password")
    return user


def set_active(user_id: int, active: bool) -> User:
    """
    Activate or deactivate a user.

    Deactivating the last active managing director raises ConflictError.
    """
    with atomic():
        user = get_user(user_id)
        if not active and _is_active_director(user) and _lock_active_directors() <= 1:
            raise ConflictError(LAST_DIRECTOR_DEACTIVATE)

        user.is_active = bool(active)
        if not active:
            session_service.revoke_all_user_sessions(user.id, reason="User deactivated", commit=False)

    current_app.logger.info("User %s %s", user.id, "activated" if active else "deactivated")
    return user


def toggle_active(user_id: int) -> User:
    """Flip is_active. Same last-director rule as set_active()."""
    user = get_user(user_id)
    return set_active(user_id, not user.is_active)


def delete_user(user_id: int) -> None:
    """
    Delete a user and their sessions.

    The last active managing director cannot be deleted. Users who recorded
    sales are kept for attribution and must be deactivated instead.
    """
    with atomic():
        user = get_user(user_id)
        if _is_active_director(user) and _lock_active_directors() <= 1:
            raise ConflictError(LAST_DIRECTOR_DELETE)

        has_sales = db.session.query(Sale.id).filter(Sale.created_by_id == user.id).first()
        if has_sales:
            raise ConflictError("User has recorded sales; deactivate the account instead")

        db.session.delete(user)

    current_app.logger.info("Deleted user %s", user_id)


def coerce_role(value) -> Role:
    """Role from a CLI/admin value; ValidationError when unknown."""
    role = parse_role(value)
    if role is None:
        raise ValidationError("Invalid request data", details={"role": "Unknown role"})
    return role

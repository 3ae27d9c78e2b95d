# Overview: Canonical staff roles and conversion of role strings at system boundaries.

"""
Roles are stored and exchanged as their UPPER_CASE names. Older clients and
hand-written data use lower-case names ("admin", "managing_director"), so every
value coming from outside goes through parse_role() before it is compared.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    MANAGING_DIRECTOR = "MANAGING_DIRECTOR"
    ADMIN = "ADMIN"
    INVENTORY_MANAGER = "INVENTORY_MANAGER"
    CASHIER = "CASHIER"
    REPORT_VIEWER = "REPORT_VIEWER"

    def __str__(self) -> str:
        return self.value


ALL_ROLES = frozenset(Role)

# Role given to accounts created through public self-registration
DEFAULT_SIGNUP_ROLE = Role.REPORT_VIEWER


def parse_role(value) -> Role | None:
    """Return the Role for a role name in any casing, or None if unknown."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return Role(normalized)
    except ValueError:
        return None


def role_names(roles) -> list[str]:
    """Stable, table-ordered list of role names for messages and payloads."""
    return [role.value for role in Role if role in roles]

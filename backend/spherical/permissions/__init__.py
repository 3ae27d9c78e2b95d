# Overview: Role and permission package.
# Re-exports all public APIs so callers import from one place.

from .categories import PermissionCategory
from .roles import Role, ALL_ROLES, DEFAULT_SIGNUP_ROLE, parse_role, role_names
from .definitions import (
    ACTION_DEFINITIONS,
    ACTION_ROLES,
    DASHBOARD_ACTIONS,
    INVENTORY_ACTIONS,
    CATALOG_ACTIONS,
    SALES_ACTIONS,
    REPORT_ACTIONS,
    USER_ACTIONS,
)
from .helpers import (
    get_all_action_codes,
    get_actions_by_category,
    get_action_definition,
    validate_action_code,
    allowed_roles,
    has_permission,
    get_role_actions,
)

__all__ = [
    "PermissionCategory",
    "Role",
    "ALL_ROLES",
    "DEFAULT_SIGNUP_ROLE",
    "parse_role",
    "role_names",
    "ACTION_DEFINITIONS",
    "ACTION_ROLES",
    "DASHBOARD_ACTIONS",
    "INVENTORY_ACTIONS",
    "CATALOG_ACTIONS",
    "SALES_ACTIONS",
    "REPORT_ACTIONS",
    "USER_ACTIONS",
    "get_all_action_codes",
    "get_actions_by_category",
    "get_action_definition",
    "validate_action_code",
    "allowed_roles",
    "has_permission",
    "get_role_actions",
]

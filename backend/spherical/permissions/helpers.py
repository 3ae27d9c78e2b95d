# Overview: Utility functions for action lookups and role checks.

from .definitions import ACTION_DEFINITIONS, ACTION_ROLES
from .roles import Role, parse_role


def get_all_action_codes():
    """Get list of all action codes."""
    return [action[0] for action in ACTION_DEFINITIONS]


def get_actions_by_category(category):
    """Get all actions in a category."""
    return [action for action in ACTION_DEFINITIONS if action[3] == category]


def get_action_definition(code):
    """Get full definition for an action code."""
    for action in ACTION_DEFINITIONS:
        if action[0] == code:
            return {
                "code": action[0],
                "name": action[1],
                "description": action[2],
                "category": action[3],
                "roles": [role.value for role in Role if role in ACTION_ROLES.get(code, ())],
            }
    return None


def validate_action_code(code):
    """Check if an action code is valid."""
    return code in ACTION_ROLES


def allowed_roles(action: str) -> frozenset:
    return ACTION_ROLES.get(action, frozenset())


def has_permission(role, action: str) -> bool:
    """
    Whether `role` may perform `action`.

    Accepts a Role or a role name in any casing. Unknown roles and unknown
    actions are denied.
    """
    resolved = parse_role(role)
    if resolved is None:
        return False
    return resolved in ACTION_ROLES.get(action, frozenset())


def get_role_actions(role) -> list[str]:
    """All action codes granted to a role, in definition order."""
    resolved = parse_role(role)
    if resolved is None:
        return []
    return [code for code in get_all_action_codes() if resolved in ACTION_ROLES[code]]

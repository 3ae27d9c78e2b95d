# Overview: All action definitions and the role table that governs them.
# Each action is defined as: (code, name, description, category)

from .categories import PermissionCategory
from .roles import Role, ALL_ROLES


# -- DASHBOARD --

DASHBOARD_ACTIONS = [
    (
        "VIEW_DASHBOARD",
        "View Dashboard",
        "Open the back-office dashboard",
        PermissionCategory.DASHBOARD,
    ),
]


# -- INVENTORY --

INVENTORY_ACTIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and low-stock alerts",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Record stock per location and minimum stock levels",
        PermissionCategory.INVENTORY,
    ),
]


# -- CATALOG --

CATALOG_ACTIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View products and categories in the back office",
        PermissionCategory.CATALOG,
    ),
    (
        "EDIT_CATALOG",
        "Edit Catalog",
        "Create and update products and categories",
        PermissionCategory.CATALOG,
    ),
    (
        "DELETE_CATALOG",
        "Delete Catalog Entries",
        "Delete products and categories",
        PermissionCategory.CATALOG,
    ),
]


# -- SALES --

SALES_ACTIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View recorded sales",
        PermissionCategory.SALES,
    ),
    (
        "PROCESS_SALES",
        "Process Sales",
        "Record sales and decrement stock",
        PermissionCategory.SALES,
    ),
]


# -- REPORTS --

REPORT_ACTIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "Access sales summaries and reports",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_ACTIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View staff accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit, deactivate and delete staff accounts",
        PermissionCategory.USERS,
    ),
]


ACTION_DEFINITIONS = (
    DASHBOARD_ACTIONS
    + INVENTORY_ACTIONS
    + CATALOG_ACTIONS
    + SALES_ACTIONS
    + REPORT_ACTIONS
    + USER_ACTIONS
)


_MD = Role.MANAGING_DIRECTOR
_ADMIN = Role.ADMIN
_INVENTORY = Role.INVENTORY_MANAGER
_CASHIER = Role.CASHIER
_REPORTS = Role.REPORT_VIEWER

# Action code -> roles allowed to perform it. Anything absent is denied.
ACTION_ROLES: dict[str, frozenset[Role]] = {
    "VIEW_DASHBOARD": ALL_ROLES,
    "VIEW_INVENTORY": frozenset({_MD, _ADMIN, _INVENTORY, _CASHIER}),
    "MANAGE_INVENTORY": frozenset({_MD, _ADMIN, _INVENTORY}),
    "VIEW_PRODUCTS": frozenset({_MD, _ADMIN, _INVENTORY}),
    "EDIT_CATALOG": frozenset({_MD, _ADMIN, _INVENTORY}),
    "DELETE_CATALOG": frozenset({_MD, _ADMIN}),
    "VIEW_SALES": frozenset({_MD, _ADMIN, _CASHIER, _REPORTS}),
    "PROCESS_SALES": frozenset({_MD, _ADMIN, _CASHIER}),
    "VIEW_REPORTS": frozenset({_MD, _ADMIN, _REPORTS}),
    "VIEW_USERS": frozenset({_MD, _ADMIN}),
    "MANAGE_USERS": frozenset({_MD, _ADMIN}),
}

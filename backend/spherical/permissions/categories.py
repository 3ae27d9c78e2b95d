# Overview: Permission category constants for grouping related actions.


class PermissionCategory:
    """Action categories for organization and UI display."""
    DASHBOARD = "DASHBOARD"
    INVENTORY = "INVENTORY"
    CATALOG = "CATALOG"
    SALES = "SALES"
    REPORTS = "REPORTS"
    USERS = "USERS"

"""
Capability definitions and role mappings.

Every service checks one of these codes through
permission_service.authorize(); routes gate on the same codes with
@require_permission. Roles are fixed: "admin" holds everything,
"user" can look around and submit scans.
"""

from .records import ROLE_ADMIN, ROLE_USER


class PermissionCategory:
    """Permission categories for grouping in listings."""
    ZONES = "ZONES"
    PRODUCTS = "PRODUCTS"
    SCANS = "SCANS"
    REPORTS = "REPORTS"
    USERS = "USERS"


# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    (
        "VIEW_ZONES",
        "View Zones",
        "List zones and print zone labels",
        PermissionCategory.ZONES,
    ),
    (
        "MANAGE_ZONES",
        "Manage Zones",
        "Create, rename, delete and bulk-build zones",
        PermissionCategory.ZONES,
    ),
    (
        "VIEW_PRODUCTS",
        "View Products",
        "Look up product master rows",
        PermissionCategory.PRODUCTS,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Import and delete the product master",
        PermissionCategory.PRODUCTS,
    ),
    (
        "SUBMIT_SCANS",
        "Submit Scans",
        "Upload staged scan batches and serial batches",
        PermissionCategory.SCANS,
    ),
    (
        "VIEW_SCANS",
        "View Scans",
        "List scans and scan history",
        PermissionCategory.SCANS,
    ),
    (
        "DELETE_SCANS",
        "Delete Scans",
        "Delete single scans, every scan of a code, or all scans",
        PermissionCategory.SCANS,
    ),
    (
        "VIEW_REPORTS",
        "View Reports",
        "Read counts, SKU and zone summaries and export them",
        PermissionCategory.REPORTS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit and delete users of the company",
        PermissionCategory.USERS,
    ),
]


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == code:
            return {
                "code": perm[0],
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None


def validate_permission_code(code):
    return code in get_all_permission_codes()


DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: set(get_all_permission_codes()),
    ROLE_USER: {
        "VIEW_ZONES",
        "VIEW_PRODUCTS",
        "VIEW_SCANS",
        "VIEW_REPORTS",
        "SUBMIT_SCANS",
    },
}

"""Permission catalog for the Hail Solutions CRM.

Permissions are flat capability names (no resource/action split and no
wildcards). Each one belongs to exactly one category used to group the
admin UI listing.

Categories:
  - financial: estimates, invoices, payments
  - data: export, deletion, lead tags
  - operations: technician assignment, loaner vehicles
  - analytics: dashboards and cross-agent visibility
  - administration: user, role and permission management
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Union


CATALOG_VERSION = "2024.11"


class PermissionName(str, Enum):
    """Every permission a guard can check."""

    # Financial
    VIEW_FINANCIAL_DATA = "view_financial_data"
    EDIT_FINANCIAL_DATA = "edit_financial_data"
    APPROVE_PAYMENTS = "approve_payments"
    MANAGE_INVOICES = "manage_invoices"

    # Data management
    EXPORT_DATA = "export_data"
    DELETE_RECORDS = "delete_records"
    MANAGE_TAGS = "manage_tags"

    # Operations
    ASSIGN_TECHNICIANS = "assign_technicians"
    MANAGE_LOANER_VEHICLES = "manage_loaner_vehicles"

    # Analytics
    VIEW_ANALYTICS = "view_analytics"
    VIEW_ALL_AGENTS_DATA = "view_all_agents_data"

    # Administration
    MANAGE_USERS = "manage_users"

    def __str__(self) -> str:
        return self.value


PERMISSION_DESCRIPTIONS: Dict[str, str] = {
    PermissionName.VIEW_FINANCIAL_DATA.value: "View estimates, invoices, and pricing information",
    PermissionName.EDIT_FINANCIAL_DATA.value: "Create and edit estimates and pricing",
    PermissionName.APPROVE_PAYMENTS.value: "Approve payment processing and transactions",
    PermissionName.MANAGE_INVOICES.value: "Create, edit, and manage invoices",
    PermissionName.EXPORT_DATA.value: "Export data to CSV, Excel, or other formats",
    PermissionName.DELETE_RECORDS.value: "Delete leads, customers, and other records",
    PermissionName.MANAGE_TAGS.value: "Create, edit, and delete lead tags",
    PermissionName.ASSIGN_TECHNICIANS.value: "Assign technicians to repair jobs",
    PermissionName.MANAGE_LOANER_VEHICLES.value: "Manage loaner vehicle inventory and assignments",
    PermissionName.VIEW_ANALYTICS.value: "Access analytics dashboard and reports",
    PermissionName.VIEW_ALL_AGENTS_DATA.value: "View data from all agents (not just own)",
    PermissionName.MANAGE_USERS.value: "Manage user accounts, roles, and permissions",
}


# Category -> permissions, in display order
PERMISSION_CATEGORIES: Dict[str, FrozenSet[PermissionName]] = {
    "financial": frozenset([
        PermissionName.VIEW_FINANCIAL_DATA,
        PermissionName.EDIT_FINANCIAL_DATA,
        PermissionName.APPROVE_PAYMENTS,
        PermissionName.MANAGE_INVOICES,
    ]),
    "data": frozenset([
        PermissionName.EXPORT_DATA,
        PermissionName.DELETE_RECORDS,
        PermissionName.MANAGE_TAGS,
    ]),
    "operations": frozenset([
        PermissionName.ASSIGN_TECHNICIANS,
        PermissionName.MANAGE_LOANER_VEHICLES,
    ]),
    "analytics": frozenset([
        PermissionName.VIEW_ANALYTICS,
        PermissionName.VIEW_ALL_AGENTS_DATA,
    ]),
    "administration": frozenset([
        PermissionName.MANAGE_USERS,
    ]),
}

DEFAULT_CATEGORY = "other"


def _generate_category_index() -> Dict[str, str]:
    """Invert the category table: permission name -> category."""
    index = {}
    for category, permissions in PERMISSION_CATEGORIES.items():
        for permission in permissions:
            index[permission.value] = category
    return index


_CATEGORY_INDEX = _generate_category_index()


def permission_key(permission: Union[str, PermissionName]) -> str:
    """Normalize an enum member or plain string into the stored name."""
    if isinstance(permission, Enum):
        return str(permission.value)
    return str(permission)


def is_valid_permission(permission: Union[str, PermissionName]) -> bool:
    """Check if a permission name is in the catalog."""
    return permission_key(permission) in PERMISSION_DESCRIPTIONS


def get_permission_category(permission: Union[str, PermissionName]) -> str:
    """Get the UI category of a permission, ``other`` if uncategorized."""
    return _CATEGORY_INDEX.get(permission_key(permission), DEFAULT_CATEGORY)


def get_permission_description(permission: Union[str, PermissionName]) -> str:
    return PERMISSION_DESCRIPTIONS.get(permission_key(permission), "")


def get_all_permissions() -> List[str]:
    """Get all permission names in catalog order."""
    return [p.value for p in PermissionName]

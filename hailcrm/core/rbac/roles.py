"""Default role definitions for the Hail Solutions CRM.

Defines the 7 standard roles with their permission sets:
1. System Admin - Full access, including user management
2. Admin - Complete business management (owner/founder), no user management
3. Sales - Field operations with view-only financial access
4. Appraiser - Damage assessment and estimate viewing
5. Estimator - Estimates, invoices and payment approval
6. Marketing - Analytics, lead sources and campaign tags
7. Repair Tech - Shop operations only

These mappings seed the ``role_permissions`` table; the hot authorization
path reads the store, not this module.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Union

from .permissions import PermissionName, permission_key


class RoleName(str, Enum):
    """Every role a user can be assigned."""

    SYSTEM_ADMIN = "system_admin"
    ADMIN = "admin"
    SALES = "sales"
    APPRAISER = "appraiser"
    ESTIMATOR = "estimator"
    MARKETING = "marketing"
    REPAIR_TECH = "repair_tech"

    def __str__(self) -> str:
        return self.value


# Holding either of these makes a user an administrator
PRIVILEGED_ROLES: FrozenSet[str] = frozenset([
    RoleName.ADMIN.value,
    RoleName.SYSTEM_ADMIN.value,
])


def _build_permissions(*perms: PermissionName) -> List[str]:
    return [p.value for p in perms]


SYSTEM_ADMIN_PERMISSIONS = _build_permissions(*PermissionName)

# Everything except user management
ADMIN_PERMISSIONS = _build_permissions(
    PermissionName.VIEW_FINANCIAL_DATA,
    PermissionName.EDIT_FINANCIAL_DATA,
    PermissionName.APPROVE_PAYMENTS,
    PermissionName.MANAGE_INVOICES,
    PermissionName.EXPORT_DATA,
    PermissionName.DELETE_RECORDS,
    PermissionName.MANAGE_TAGS,
    PermissionName.ASSIGN_TECHNICIANS,
    PermissionName.MANAGE_LOANER_VEHICLES,
    PermissionName.VIEW_ANALYTICS,
    PermissionName.VIEW_ALL_AGENTS_DATA,
)

# Sales: can see estimates but not edit them; other agents' data needs a direct grant
SALES_PERMISSIONS = _build_permissions(
    PermissionName.VIEW_FINANCIAL_DATA,
    PermissionName.EXPORT_DATA,
    PermissionName.VIEW_ANALYTICS,
)

APPRAISER_PERMISSIONS = _build_permissions(
    PermissionName.VIEW_FINANCIAL_DATA,
    PermissionName.ASSIGN_TECHNICIANS,
    PermissionName.VIEW_ANALYTICS,
)

ESTIMATOR_PERMISSIONS = _build_permissions(
    PermissionName.VIEW_FINANCIAL_DATA,
    PermissionName.EDIT_FINANCIAL_DATA,
    PermissionName.MANAGE_INVOICES,
    PermissionName.APPROVE_PAYMENTS,
    PermissionName.EXPORT_DATA,
    PermissionName.VIEW_ANALYTICS,
)

# Marketing: no financial data
MARKETING_PERMISSIONS = _build_permissions(
    PermissionName.VIEW_ANALYTICS,
    PermissionName.EXPORT_DATA,
    PermissionName.MANAGE_TAGS,
    PermissionName.VIEW_ALL_AGENTS_DATA,
)

REPAIR_TECH_PERMISSIONS = _build_permissions(
    PermissionName.ASSIGN_TECHNICIANS,
    PermissionName.MANAGE_LOANER_VEHICLES,
)


DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    RoleName.SYSTEM_ADMIN.value: SYSTEM_ADMIN_PERMISSIONS,
    RoleName.ADMIN.value: ADMIN_PERMISSIONS,
    RoleName.SALES.value: SALES_PERMISSIONS,
    RoleName.APPRAISER.value: APPRAISER_PERMISSIONS,
    RoleName.ESTIMATOR.value: ESTIMATOR_PERMISSIONS,
    RoleName.MARKETING.value: MARKETING_PERMISSIONS,
    RoleName.REPAIR_TECH.value: REPAIR_TECH_PERMISSIONS,
}

ROLE_DESCRIPTIONS: Dict[str, str] = {
    RoleName.SYSTEM_ADMIN.value: "Full system access for advanced troubleshooting and configuration",
    RoleName.ADMIN.value: "Complete business management access (owner/founder)",
    RoleName.SALES.value: "Lead creation, customer management, and field operations",
    RoleName.APPRAISER.value: "Damage assessment, inspection forms, and estimate viewing",
    RoleName.ESTIMATOR.value: "Estimate creation, invoice management, and pricing control",
    RoleName.MARKETING.value: "Analytics, lead source tracking, and campaign management",
    RoleName.REPAIR_TECH.value: "Shop operations, parts tracking, and repair status updates",
}


def role_key(role: Union[str, RoleName]) -> str:
    """Normalize an enum member or plain string into the stored role name."""
    if isinstance(role, Enum):
        return str(role.value)
    return str(role)


def is_valid_role(role: Union[str, RoleName]) -> bool:
    return role_key(role) in DEFAULT_ROLE_PERMISSIONS


def get_role_permissions(role: Union[str, RoleName]) -> List[str]:
    """Get the default permission names for a role; unknown roles have none."""
    return list(DEFAULT_ROLE_PERMISSIONS.get(role_key(role), []))


def role_has_permission(role: Union[str, RoleName], permission: Union[str, PermissionName]) -> bool:
    """Check if a role's default set includes ``permission``."""
    return permission_key(permission) in DEFAULT_ROLE_PERMISSIONS.get(role_key(role), [])


def get_role_description(role: Union[str, RoleName]) -> str:
    return ROLE_DESCRIPTIONS.get(role_key(role), "")


def get_all_roles() -> List[str]:
    """Get all role names in catalog order."""
    return [r.value for r in RoleName]

"""RBAC (Role-Based Access Control) module for the Hail Solutions CRM.

This module defines the permission catalog, role definitions, the per-user
cache, the resolver and the guard functions.
"""

from .permissions import PermissionName, PERMISSION_CATEGORIES, PERMISSION_DESCRIPTIONS
from .roles import RoleName, DEFAULT_ROLE_PERMISSIONS, PRIVILEGED_ROLES, ROLE_DESCRIPTIONS
from .cache import PermissionCache, clear_all_caches, clear_user_cache, get_permission_cache
from .resolver import get_user_permissions, get_user_roles
from .checker import (
    AccessSummary,
    PermissionChecker,
    get_user_access_summary,
    has_all_permissions,
    has_any_permission,
    has_permission,
    has_role,
    is_admin,
    require_admin,
    require_permission,
    require_role,
)

__all__ = [
    "PermissionName",
    "PERMISSION_CATEGORIES",
    "PERMISSION_DESCRIPTIONS",
    "RoleName",
    "DEFAULT_ROLE_PERMISSIONS",
    "PRIVILEGED_ROLES",
    "ROLE_DESCRIPTIONS",
    "PermissionCache",
    "clear_all_caches",
    "clear_user_cache",
    "get_permission_cache",
    "get_user_permissions",
    "get_user_roles",
    "AccessSummary",
    "PermissionChecker",
    "get_user_access_summary",
    "has_all_permissions",
    "has_any_permission",
    "has_permission",
    "has_role",
    "is_admin",
    "require_admin",
    "require_permission",
    "require_role",
]

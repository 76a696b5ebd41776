"""Database models for the CRM authorization engine."""

from hailcrm.db.models.user import User
from hailcrm.db.models.role import (
    Role,
    Permission,
    UserRole,
    UserPermission,
    RolePermission,
)

__all__ = [
    "User",
    "Role",
    "Permission",
    "UserRole",
    "UserPermission",
    "RolePermission",
]

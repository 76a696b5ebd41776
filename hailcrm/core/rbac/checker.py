"""Permission checking utilities for the CRM authorization engine.

Boolean guards answer "may this user proceed?"; the ``require_*`` variants
raise :class:`ForbiddenError` instead of returning False. Nothing here
mutates state.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.core.exceptions import ForbiddenError

from .cache import PermissionCache
from .permissions import PermissionName, permission_key
from .resolver import get_user_permissions, get_user_roles
from .roles import PRIVILEGED_ROLES, RoleName, role_key

logger = logging.getLogger(__name__)

PermissionLike = Union[str, PermissionName]
RoleLike = Union[str, RoleName]


class PermissionChecker:
    """Checks membership against an already-resolved permission set."""

    def __init__(self, user_permissions: Iterable[str]):
        """
        Initialize with a user's effective permissions.

        Args:
            user_permissions: Permission names from roles and direct grants
        """
        self.permissions = frozenset(user_permissions)

    def has_permission(self, permission: PermissionLike) -> bool:
        """Check if the set contains a specific permission."""
        return permission_key(permission) in self.permissions

    def has_any_permission(self, permissions: Iterable[PermissionLike]) -> bool:
        """Check if the set contains any of the given permissions."""
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: Iterable[PermissionLike]) -> bool:
        """Check if the set contains all of the given permissions."""
        return all(self.has_permission(p) for p in permissions)


@dataclass(frozen=True)
class AccessSummary:
    """A user's roles and permissions, for UI and debugging."""

    roles: List[str] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    is_admin: bool = False


def _is_privileged(role_names: Iterable[str]) -> bool:
    return not PRIVILEGED_ROLES.isdisjoint(role_names)


async def has_permission(
    session: AsyncSession,
    user_id: int,
    permission: PermissionLike,
    *,
    cache: Optional[PermissionCache] = None,
) -> bool:
    """
    Check if a user has a specific permission.

    Args:
        session: Database session
        user_id: User ID
        permission: Permission name, e.g. ``PermissionName.VIEW_FINANCIAL_DATA``

    Returns:
        True if the permission is in the user's effective set
    """
    permissions = await get_user_permissions(session, user_id, cache=cache)
    return PermissionChecker(permissions).has_permission(permission)


async def has_role(
    session: AsyncSession,
    user_id: int,
    role: RoleLike,
    *,
    cache: Optional[PermissionCache] = None,
) -> bool:
    """Check if a user has a specific role."""
    roles = await get_user_roles(session, user_id, cache=cache)
    return role_key(role) in roles


async def has_any_permission(
    session: AsyncSession,
    user_id: int,
    permissions: Iterable[PermissionLike],
    *,
    cache: Optional[PermissionCache] = None,
) -> bool:
    """True if the user has at least one of ``permissions``."""
    granted = await get_user_permissions(session, user_id, cache=cache)
    return PermissionChecker(granted).has_any_permission(permissions)


async def has_all_permissions(
    session: AsyncSession,
    user_id: int,
    permissions: Iterable[PermissionLike],
    *,
    cache: Optional[PermissionCache] = None,
) -> bool:
    """True if the user has every one of ``permissions``."""
    granted = await get_user_permissions(session, user_id, cache=cache)
    return PermissionChecker(granted).has_all_permissions(permissions)


async def is_admin(
    session: AsyncSession,
    user_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> bool:
    """True if the user holds ``admin`` or ``system_admin``."""
    roles = await get_user_roles(session, user_id, cache=cache)
    return _is_privileged(roles)


async def require_permission(
    session: AsyncSession,
    user_id: int,
    permission: PermissionLike,
    *,
    cache: Optional[PermissionCache] = None,
) -> None:
    """
    Require a specific permission.

    Raises:
        ForbiddenError: if the user does not have the permission
    """
    if await has_permission(session, user_id, permission, cache=cache):
        return

    name = permission_key(permission)
    logger.info(f"Denied user {user_id}: missing permission {name}")
    raise ForbiddenError(
        f"You don't have permission to perform this action. Required permission: {name}",
        kind="permission",
        requirement=name,
    )


async def require_role(
    session: AsyncSession,
    user_id: int,
    role: RoleLike,
    *,
    cache: Optional[PermissionCache] = None,
) -> None:
    """
    Require a specific role.

    Raises:
        ForbiddenError: if the user does not have the role
    """
    if await has_role(session, user_id, role, cache=cache):
        return

    name = role_key(role)
    logger.info(f"Denied user {user_id}: missing role {name}")
    raise ForbiddenError(
        f"You don't have the required role to perform this action. Required role: {name}",
        kind="role",
        requirement=name,
    )


async def require_admin(
    session: AsyncSession,
    user_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> None:
    """
    Require an administrator role.

    Raises:
        ForbiddenError: if the user is neither admin nor system_admin
    """
    if await is_admin(session, user_id, cache=cache):
        return

    logger.info(f"Denied user {user_id}: administrator required")
    raise ForbiddenError(
        "You must be an administrator to perform this action.",
        kind="admin",
        requirement=None,
    )


async def get_user_access_summary(
    session: AsyncSession,
    user_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> AccessSummary:
    """Get a user's roles, permissions and admin flag.

    A single AsyncSession cannot run queries concurrently, so the two
    lookups are awaited in turn and the admin flag reuses the role list.
    """
    roles = await get_user_roles(session, user_id, cache=cache)
    permissions = await get_user_permissions(session, user_id, cache=cache)
    return AccessSummary(roles=roles, permissions=permissions, is_admin=_is_privileged(roles))

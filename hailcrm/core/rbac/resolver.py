"""Resolve a user's role names and effective permission names.

Effective permissions are the union of permissions conferred by any of the
user's roles and the user's direct grants. There is no deny operator: losing
a role only removes permissions no other role or direct grant supplies.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.db.models import Permission, Role, RolePermission, UserPermission, UserRole

from .cache import PermissionCache, get_permission_cache

logger = logging.getLogger(__name__)


async def get_user_roles(
    session: AsyncSession,
    user_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> List[str]:
    """
    Get the names of all roles assigned to a user.

    Args:
        session: Database session
        user_id: User ID
        cache: Cache to consult and populate (process-wide cache by default)

    Returns:
        Sorted role names, e.g. ``["admin", "sales"]``
    """
    cache = cache or get_permission_cache()

    cached = cache.roles.get(user_id)
    if cached is not None:
        return list(cached)

    generation = cache.roles.generation(user_id)

    result = await session.execute(
        select(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .order_by(Role.name)
    )
    role_names = list(result.scalars().all())

    if not cache.roles.set(user_id, role_names, generation=generation):
        logger.debug(f"Discarded stale role lookup for user {user_id}")

    return list(role_names)


async def get_user_permissions(
    session: AsyncSession,
    user_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> List[str]:
    """
    Get all permission names for a user (from roles + direct grants).

    Args:
        session: Database session
        user_id: User ID
        cache: Cache to consult and populate (process-wide cache by default)

    Returns:
        Sorted, de-duplicated permission names
    """
    cache = cache or get_permission_cache()

    cached = cache.permissions.get(user_id)
    if cached is not None:
        return list(cached)

    generation = cache.permissions.generation(user_id)

    role_ids = (
        await session.execute(select(UserRole.role_id).where(UserRole.user_id == user_id))
    ).scalars().all()

    role_permission_names: List[str] = []
    if role_ids:
        result = await session.execute(
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id.in_(role_ids))
        )
        role_permission_names = list(result.scalars().all())

    result = await session.execute(
        select(Permission.name)
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .where(UserPermission.user_id == user_id)
    )
    direct_permission_names = list(result.scalars().all())

    permission_names = sorted(set(role_permission_names) | set(direct_permission_names))

    if not cache.permissions.set(user_id, permission_names, generation=generation):
        logger.debug(f"Discarded stale permission lookup for user {user_id}")

    return list(permission_names)

"""Administrative reads and grant mutations.

Every successful mutation commits and then invalidates the affected user's
cache entries, so the next guard check for that user reads the new state.
Duplicate grants are detected by the database unique constraints rather than
by a lookup before insert; the losing writer of a race gets the same
:class:`DuplicateGrantError` as a plain repeat call.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, union
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.core.exceptions import DuplicateGrantError, NotFoundError
from hailcrm.db.models import Permission, Role, RolePermission, User, UserPermission, UserRole

from .cache import PermissionCache, get_permission_cache
from .permissions import DEFAULT_CATEGORY, PERMISSION_CATEGORIES, get_permission_description
from .resolver import get_user_permissions
from .roles import get_role_description

logger = logging.getLogger(__name__)


async def _get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User not found: {user_id}")
    return user


async def _get_role(session: AsyncSession, role_id: int) -> Role:
    role = await session.get(Role, role_id)
    if role is None:
        raise NotFoundError(f"Role not found: {role_id}")
    return role


async def _get_permission(session: AsyncSession, permission_id: int) -> Permission:
    permission = await session.get(Permission, permission_id)
    if permission is None:
        raise NotFoundError(f"Permission not found: {permission_id}")
    return permission


def _violation(exc: IntegrityError) -> str:
    """Classify an integrity failure as ``unique``, ``foreign_key`` or ``other``.

    Drivers word these differently: SQLite says "UNIQUE constraint failed" and
    "FOREIGN KEY constraint failed", PostgreSQL names the violated constraint.
    """
    message = str(exc.orig).lower()
    if "unique" in message or "uq_" in message or "duplicate key" in message:
        return "unique"
    if "foreign key" in message or "fk_" in message:
        return "foreign_key"
    return "other"


async def _insert_grant(
    session: AsyncSession, grant, duplicate_message: str, missing_message: str
) -> None:
    session.add(grant)
    try:
        await session.flush()
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        kind = _violation(exc)
        if kind == "unique":
            raise DuplicateGrantError(duplicate_message) from exc
        # A referenced row was deleted after the existence checks
        if kind == "foreign_key":
            raise NotFoundError(missing_message) from exc
        raise


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def assign_role(
    session: AsyncSession,
    user_id: int,
    role_id: int,
    actor_id: Optional[int],
    *,
    cache: Optional[PermissionCache] = None,
) -> UserRole:
    """
    Assign a role to a user.

    Raises:
        NotFoundError: user or role does not exist
        DuplicateGrantError: the user already has this role
    """
    await _get_user(session, user_id)
    role = await _get_role(session, role_id)

    grant = UserRole(user_id=user_id, role_id=role_id, assigned_by=actor_id)
    await _insert_grant(session, grant, "User already has this role", "User or role not found")

    (cache or get_permission_cache()).invalidate(user_id)
    logger.info(f"User {actor_id} assigned role {role.name} to user {user_id}")
    return grant


async def remove_role(
    session: AsyncSession,
    user_id: int,
    role_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> None:
    """
    Remove a role from a user.

    Raises:
        NotFoundError: the user does not have this role
    """
    result = await session.execute(
        delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotFoundError("User does not have this role")
    await session.commit()

    (cache or get_permission_cache()).invalidate(user_id)
    logger.info(f"Removed role {role_id} from user {user_id}")


async def grant_permission(
    session: AsyncSession,
    user_id: int,
    permission_id: int,
    actor_id: Optional[int],
    *,
    cache: Optional[PermissionCache] = None,
) -> UserPermission:
    """
    Grant a permission directly to a user.

    Raises:
        NotFoundError: user or permission does not exist
        DuplicateGrantError: the user already has this direct permission
    """
    await _get_user(session, user_id)
    permission = await _get_permission(session, permission_id)

    grant = UserPermission(user_id=user_id, permission_id=permission_id, assigned_by=actor_id)
    await _insert_grant(
        session, grant, "User already has this permission", "User or permission not found"
    )

    (cache or get_permission_cache()).invalidate(user_id)
    logger.info(f"User {actor_id} granted permission {permission.name} to user {user_id}")
    return grant


async def revoke_permission(
    session: AsyncSession,
    user_id: int,
    permission_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> None:
    """
    Revoke a direct permission from a user. Role-derived permissions are untouched.

    Raises:
        NotFoundError: the user does not have this direct permission
    """
    result = await session.execute(
        delete(UserPermission).where(
            UserPermission.user_id == user_id,
            UserPermission.permission_id == permission_id,
        )
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotFoundError("User does not have this permission")
    await session.commit()

    (cache or get_permission_cache()).invalidate(user_id)
    logger.info(f"Revoked permission {permission_id} from user {user_id}")


async def bulk_assign_roles(
    session: AsyncSession,
    user_id: int,
    role_ids: Sequence[int],
    actor_id: Optional[int],
    *,
    cache: Optional[PermissionCache] = None,
) -> List[UserRole]:
    """
    Replace all of a user's roles with ``role_ids``.

    The delete and the inserts share one transaction: on any failure the
    previous role set is left intact. An empty ``role_ids`` leaves the user
    with no roles. Repeated ids are collapsed.

    Raises:
        NotFoundError: the user or any of the roles does not exist
    """
    await _get_user(session, user_id)

    wanted = list(dict.fromkeys(role_ids))
    if wanted:
        found = set(
            (await session.execute(select(Role.id).where(Role.id.in_(wanted)))).scalars().all()
        )
        missing = [str(role_id) for role_id in wanted if role_id not in found]
        if missing:
            raise NotFoundError(f"Role not found: {', '.join(missing)}")

    grants = [UserRole(user_id=user_id, role_id=role_id, assigned_by=actor_id) for role_id in wanted]
    try:
        await session.execute(delete(UserRole).where(UserRole.user_id == user_id))
        session.add_all(grants)
        await session.flush()
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise

    (cache or get_permission_cache()).invalidate(user_id)
    logger.info(f"User {actor_id} replaced roles of user {user_id} with {wanted}")
    return grants


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_roles(session: AsyncSession) -> List[Dict[str, Any]]:
    """List all roles with catalog descriptions."""
    roles = (await session.execute(select(Role).order_by(Role.id))).scalars().all()
    return [
        {
            "id": role.id,
            "name": role.name,
            "description": get_role_description(role.name) or role.description or "",
            "created_at": role.created_at,
        }
        for role in roles
    ]


async def list_permissions(session: AsyncSession) -> Dict[str, Any]:
    """List all permissions, flat and grouped by category."""
    permissions = (await session.execute(select(Permission).order_by(Permission.id))).scalars().all()

    detailed = [
        {
            "id": p.id,
            "name": p.name,
            "description": get_permission_description(p.name) or p.description or "",
            "category": p.category or DEFAULT_CATEGORY,
            "created_at": p.created_at,
        }
        for p in permissions
    ]

    # Known categories first, in catalog order
    by_category: Dict[str, List[Dict[str, Any]]] = {
        category: [] for category in PERMISSION_CATEGORIES
    }
    for p in detailed:
        by_category.setdefault(p["category"], []).append(p)
    by_category = {category: members for category, members in by_category.items() if members}

    return {"all": detailed, "by_category": by_category}


async def list_users(session: AsyncSession) -> List[Dict[str, Any]]:
    """List every user with role names and effective permission count.

    Uses three queries regardless of the number of users.
    """
    users = (await session.execute(select(User).order_by(User.id))).scalars().all()

    roles_by_user: Dict[int, List[str]] = defaultdict(list)
    role_rows = await session.execute(
        select(UserRole.user_id, Role.name)
        .join(Role, Role.id == UserRole.role_id)
        .order_by(UserRole.user_id, Role.name)
    )
    for user_id, role_name in role_rows.all():
        roles_by_user[user_id].append(role_name)

    # UNION removes (user, permission) pairs supplied by more than one source
    effective = union(
        select(UserRole.user_id.label("user_id"), RolePermission.permission_id.label("permission_id"))
        .join(RolePermission, RolePermission.role_id == UserRole.role_id),
        select(UserPermission.user_id.label("user_id"), UserPermission.permission_id.label("permission_id")),
    ).subquery()
    count_rows = await session.execute(
        select(effective.c.user_id, func.count()).group_by(effective.c.user_id)
    )
    permission_counts = {user_id: count for user_id, count in count_rows.all()}

    return [
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "roles": roles_by_user.get(user.id, []),
            "permission_count": permission_counts.get(user.id, 0),
            "last_signed_in": user.last_signed_in,
            "created_at": user.created_at,
        }
        for user in users
    ]


async def get_user_details(
    session: AsyncSession,
    user_id: int,
    *,
    cache: Optional[PermissionCache] = None,
) -> Dict[str, Any]:
    """
    Get a user's role grants, direct permission grants and effective permissions.

    Raises:
        NotFoundError: the user does not exist
    """
    user = await _get_user(session, user_id)

    role_rows = await session.execute(
        select(Role.id, Role.name, Role.description, UserRole.assigned_by, UserRole.assigned_at)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .order_by(Role.name)
    )
    roles = [
        {
            "role_id": row.id,
            "role_name": row.name,
            "role_description": get_role_description(row.name) or row.description or "",
            "assigned_by": row.assigned_by,
            "assigned_at": row.assigned_at,
        }
        for row in role_rows.all()
    ]

    permission_rows = await session.execute(
        select(
            Permission.id,
            Permission.name,
            Permission.description,
            Permission.category,
            UserPermission.assigned_by,
            UserPermission.assigned_at,
        )
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .where(UserPermission.user_id == user_id)
        .order_by(Permission.name)
    )
    direct_permissions = [
        {
            "permission_id": row.id,
            "permission_name": row.name,
            "permission_description": get_permission_description(row.name) or row.description or "",
            "permission_category": row.category or DEFAULT_CATEGORY,
            "assigned_by": row.assigned_by,
            "assigned_at": row.assigned_at,
        }
        for row in permission_rows.all()
    ]

    all_permissions = await get_user_permissions(session, user_id, cache=cache)

    return {
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "last_signed_in": user.last_signed_in,
            "created_at": user.created_at,
        },
        "roles": roles,
        "direct_permissions": direct_permissions,
        "all_permissions": all_permissions,
    }

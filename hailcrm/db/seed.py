"""Database seeding for the CRM authorization engine.

Reconciles the ``roles``, ``permissions`` and ``role_permissions`` tables
with the static catalog in :mod:`hailcrm.core.rbac`.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.core.rbac.cache import PermissionCache, get_permission_cache
from hailcrm.core.rbac.permissions import (
    CATALOG_VERSION,
    get_all_permissions,
    get_permission_category,
    get_permission_description,
)
from hailcrm.core.rbac.roles import DEFAULT_ROLE_PERMISSIONS, get_all_roles, get_role_description
from hailcrm.db.models import Permission, Role, RolePermission

logger = logging.getLogger(__name__)


@dataclass
class SeedReport:
    """Outcome of a seed run."""

    permissions_inserted: List[str] = field(default_factory=list)
    roles_inserted: List[str] = field(default_factory=list)
    mappings_created: int = 0
    skipped: List[str] = field(default_factory=list)


async def insert_missing_permissions(session: AsyncSession) -> List[str]:
    """
    Insert catalog permissions that are missing from the store.

    Args:
        session: Database session

    Returns:
        Names of the permissions inserted
    """
    existing = set((await session.execute(select(Permission.name))).scalars().all())
    missing = [name for name in get_all_permissions() if name not in existing]

    for name in missing:
        category = get_permission_category(name)
        session.add(Permission(
            name=name,
            description=get_permission_description(name),
            category=category,
        ))
        logger.info(f"Inserted permission {name} ({category})")

    await session.flush()
    return missing


async def seed_roles(session: AsyncSession) -> List[str]:
    """
    Insert catalog roles missing from the store and refresh existing descriptions.

    Returns:
        Names of the roles inserted
    """
    existing: Dict[str, Role] = {
        role.name: role for role in (await session.execute(select(Role))).scalars().all()
    }

    inserted = []
    for name in get_all_roles():
        description = get_role_description(name)
        role = existing.get(name)
        if role is None:
            session.add(Role(name=name, description=description))
            inserted.append(name)
            logger.info(f"Inserted role {name}")
        elif role.description != description:
            role.description = description

    await session.flush()
    return inserted


async def seed_role_permissions(session: AsyncSession) -> Tuple[int, List[str]]:
    """
    Rebuild role->permission mappings from ``DEFAULT_ROLE_PERMISSIONS``.

    Existing mappings are deleted first. Catalog entries with no matching row
    in the store are skipped with a warning.

    Returns:
        (number of mappings created, skipped "role" / "role:permission" entries)
    """
    role_map = {
        name: role_id for role_id, name in (await session.execute(select(Role.id, Role.name))).all()
    }
    permission_map = {
        name: permission_id
        for permission_id, name in (await session.execute(select(Permission.id, Permission.name))).all()
    }

    await session.execute(delete(RolePermission))

    created = 0
    skipped = []
    for role_name, permission_names in DEFAULT_ROLE_PERMISSIONS.items():
        role_id = role_map.get(role_name)
        if role_id is None:
            logger.warning(f"Role not found: {role_name}")
            skipped.append(role_name)
            continue

        for permission_name in permission_names:
            permission_id = permission_map.get(permission_name)
            if permission_id is None:
                logger.warning(f"Permission not found: {permission_name}")
                skipped.append(f"{role_name}:{permission_name}")
                continue

            session.add(RolePermission(role_id=role_id, permission_id=permission_id))
            created += 1

    await session.flush()
    return created, skipped


async def seed_rbac(session: AsyncSession, cache: Optional[PermissionCache] = None) -> SeedReport:
    """
    Reconcile the store with the catalog and commit.

    Role mappings may change for every user, so the whole cache is cleared
    once the commit succeeds.
    """
    logger.info(f"Seeding RBAC catalog {CATALOG_VERSION}")
    report = SeedReport()
    try:
        report.permissions_inserted = await insert_missing_permissions(session)
        report.roles_inserted = await seed_roles(session)
        report.mappings_created, report.skipped = await seed_role_permissions(session)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    (cache or get_permission_cache()).invalidate_all()
    logger.info(
        f"Seed complete: {len(report.permissions_inserted)} permissions and "
        f"{len(report.roles_inserted)} roles inserted, {report.mappings_created} mappings"
    )
    return report


async def _main() -> None:
    from hailcrm.common.logger import configure_from_settings
    from hailcrm.core.config import get_settings
    from hailcrm.db.session import dispose_engine, get_sessionmaker

    configure_from_settings(get_settings())
    try:
        async with get_sessionmaker()() as session:
            await seed_rbac(session)
        for role_name, permission_names in DEFAULT_ROLE_PERMISSIONS.items():
            logger.info(f"{role_name.upper()}: {len(permission_names)} permissions")
    finally:
        await dispose_engine()


# CLI script for seeding
if __name__ == "__main__":
    asyncio.run(_main())

"""RBAC management API endpoints.

Roles, permissions and per-user grants for the user-management UI.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.api.deps import get_cache, get_current_user_id, get_db
from hailcrm.api.middleware.rbac import admin_procedure
from hailcrm.api.schemas.common import SuccessResponse
from hailcrm.api.schemas.rbac import (
    AccessSummaryResponse,
    BulkRoleAssignment,
    PermissionGrant,
    PermissionListing,
    RoleAssignment,
    RoleInfo,
    UserDetails,
    UserListItem,
)
from hailcrm.core.rbac import admin
from hailcrm.core.rbac.cache import PermissionCache
from hailcrm.core.rbac.checker import get_user_access_summary, require_admin
from hailcrm.core.rbac.resolver import get_user_permissions, get_user_roles

router = APIRouter(prefix="/rbac", tags=["rbac"])


async def _require_self_or_admin(
    db: AsyncSession, current_user_id: int, user_id: int, cache: PermissionCache
) -> None:
    if current_user_id != user_id:
        await require_admin(db, current_user_id, cache=cache)


# Catalog
@router.get("/roles", response_model=List[RoleInfo])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """List all roles."""
    return await admin.list_roles(db)


@router.get("/permissions", response_model=PermissionListing)
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    """List all permissions, flat and grouped by category."""
    return await admin.list_permissions(db)


# Current user
@router.get("/me/permissions", response_model=List[str])
async def get_my_permissions(
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(get_current_user_id),
):
    """Get the current user's effective permissions."""
    return await get_user_permissions(db, current_user_id, cache=cache)


@router.get("/me/access", response_model=AccessSummaryResponse)
async def get_my_access(
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(get_current_user_id),
):
    """Get the current user's roles, permissions and admin flag."""
    summary = await get_user_access_summary(db, current_user_id, cache=cache)
    return AccessSummaryResponse(
        roles=summary.roles,
        permissions=summary.permissions,
        is_admin=summary.is_admin,
    )


# Per-user reads
@router.get("/users", response_model=List[UserListItem])
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user_id: int = Depends(admin_procedure),
):
    """List all users with their roles and permission counts (admin only)."""
    return await admin.list_users(db)


@router.get("/users/{user_id}", response_model=UserDetails)
async def get_user_details(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(admin_procedure),
):
    """Get detailed access information for a user (admin only)."""
    return await admin.get_user_details(db, user_id, cache=cache)


@router.get("/users/{user_id}/roles", response_model=List[str])
async def get_roles_for_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(get_current_user_id),
):
    """Get the roles assigned to a user (self or admin)."""
    await _require_self_or_admin(db, current_user_id, user_id, cache)
    return await get_user_roles(db, user_id, cache=cache)


@router.get("/users/{user_id}/permissions", response_model=List[str])
async def get_permissions_for_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(get_current_user_id),
):
    """Get a user's effective permissions (self or admin)."""
    await _require_self_or_admin(db, current_user_id, user_id, cache)
    return await get_user_permissions(db, user_id, cache=cache)


# Mutations (admin only)
@router.post("/users/{user_id}/roles", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def assign_role(
    user_id: int,
    assignment: RoleAssignment,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(admin_procedure),
):
    """Assign a role to a user."""
    await admin.assign_role(db, user_id, assignment.role_id, current_user_id, cache=cache)
    return SuccessResponse(message="Role assigned")


@router.delete("/users/{user_id}/roles/{role_id}", response_model=SuccessResponse)
async def remove_role(
    user_id: int,
    role_id: int,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(admin_procedure),
):
    """Remove a role from a user."""
    await admin.remove_role(db, user_id, role_id, cache=cache)
    return SuccessResponse(message="Role removed")


@router.put("/users/{user_id}/roles", response_model=SuccessResponse)
async def bulk_assign_roles(
    user_id: int,
    assignment: BulkRoleAssignment,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(admin_procedure),
):
    """Replace all of a user's roles."""
    grants = await admin.bulk_assign_roles(db, user_id, assignment.role_ids, current_user_id, cache=cache)
    return SuccessResponse(message=f"{len(grants)} roles assigned")


@router.post("/users/{user_id}/permissions", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def grant_permission(
    user_id: int,
    grant: PermissionGrant,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(admin_procedure),
):
    """Grant a permission directly to a user."""
    await admin.grant_permission(db, user_id, grant.permission_id, current_user_id, cache=cache)
    return SuccessResponse(message="Permission granted")


@router.delete("/users/{user_id}/permissions/{permission_id}", response_model=SuccessResponse)
async def revoke_permission(
    user_id: int,
    permission_id: int,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_cache),
    current_user_id: int = Depends(admin_procedure),
):
    """Revoke a direct permission from a user."""
    await admin.revoke_permission(db, user_id, permission_id, cache=cache)
    return SuccessResponse(message="Permission revoked")

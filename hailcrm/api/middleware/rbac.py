"""RBAC guard dependencies for FastAPI.

Each guard resolves the caller's id, runs the matching ``require_*`` check
and hands the id on to the endpoint. A failed check raises
:class:`~hailcrm.core.exceptions.ForbiddenError`, which the application turns
into a 403 response.

Usage:
    @router.get("/estimates")
    async def list_estimates(user_id: int = Depends(financial_view)):
        ...

    @router.delete("/leads/{lead_id}", dependencies=[Depends(with_permission(PermissionName.DELETE_RECORDS))])
    async def delete_lead(lead_id: int):
        ...
"""

from typing import Optional, Union

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.api.deps import get_cache, get_current_user_id, get_db
from hailcrm.core.rbac.cache import PermissionCache
from hailcrm.core.rbac.checker import require_admin, require_permission, require_role
from hailcrm.core.rbac.permissions import PermissionName, permission_key
from hailcrm.core.rbac.roles import RoleName, role_key


class RBACDependency:
    """
    FastAPI dependency gating an endpoint on a permission, a role, or admin status.

    Exactly one of ``permission``, ``role`` or ``admin`` must be given.
    """

    def __init__(
        self,
        *,
        permission: Optional[Union[str, PermissionName]] = None,
        role: Optional[Union[str, RoleName]] = None,
        admin: bool = False,
    ):
        if sum([permission is not None, role is not None, admin]) != 1:
            raise ValueError("RBACDependency needs exactly one of permission, role or admin")
        self.permission = permission_key(permission) if permission is not None else None
        self.role = role_key(role) if role is not None else None
        self.admin = admin

    def __repr__(self) -> str:
        if self.permission:
            return f"<RBACDependency permission={self.permission}>"
        if self.role:
            return f"<RBACDependency role={self.role}>"
        return "<RBACDependency admin>"

    async def __call__(
        self,
        user_id: int = Depends(get_current_user_id),
        db: AsyncSession = Depends(get_db),
        cache: PermissionCache = Depends(get_cache),
    ) -> int:
        if self.permission is not None:
            await require_permission(db, user_id, self.permission, cache=cache)
        elif self.role is not None:
            await require_role(db, user_id, self.role, cache=cache)
        else:
            await require_admin(db, user_id, cache=cache)
        return user_id


def with_permission(permission: Union[str, PermissionName]) -> RBACDependency:
    """Guard requiring a specific permission. Usage: ``with_permission(PermissionName.EXPORT_DATA)``"""
    return RBACDependency(permission=permission)


def with_role(role: Union[str, RoleName]) -> RBACDependency:
    """Guard requiring a specific role. Usage: ``with_role(RoleName.ADMIN)``"""
    return RBACDependency(role=role)


# Requires admin or system_admin
admin_procedure = RBACDependency(admin=True)

# Permission guards
financial_view = with_permission(PermissionName.VIEW_FINANCIAL_DATA)
financial_edit = with_permission(PermissionName.EDIT_FINANCIAL_DATA)
payment_approve = with_permission(PermissionName.APPROVE_PAYMENTS)
invoice_manage = with_permission(PermissionName.MANAGE_INVOICES)
export_data = with_permission(PermissionName.EXPORT_DATA)
delete_records = with_permission(PermissionName.DELETE_RECORDS)
manage_tags = with_permission(PermissionName.MANAGE_TAGS)
assign_technicians = with_permission(PermissionName.ASSIGN_TECHNICIANS)
manage_loaners = with_permission(PermissionName.MANAGE_LOANER_VEHICLES)
analytics = with_permission(PermissionName.VIEW_ANALYTICS)
view_all_agents = with_permission(PermissionName.VIEW_ALL_AGENTS_DATA)
manage_users = with_permission(PermissionName.MANAGE_USERS)

# Role guards
system_admin = with_role(RoleName.SYSTEM_ADMIN)
sales = with_role(RoleName.SALES)
appraiser = with_role(RoleName.APPRAISER)
estimator = with_role(RoleName.ESTIMATOR)
marketing = with_role(RoleName.MARKETING)
repair_tech = with_role(RoleName.REPAIR_TECH)

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RoleInfo(BaseModel):
    id: int
    name: str
    description: str = ""
    created_at: Optional[datetime] = None


class PermissionInfo(BaseModel):
    id: int
    name: str
    description: str = ""
    category: str
    created_at: Optional[datetime] = None


class PermissionListing(BaseModel):
    all: List[PermissionInfo]
    by_category: Dict[str, List[PermissionInfo]]


class RoleAssignment(BaseModel):
    role_id: int


class PermissionGrant(BaseModel):
    permission_id: int


class BulkRoleAssignment(BaseModel):
    role_ids: List[int] = Field(default_factory=list)


class AccessSummaryResponse(BaseModel):
    roles: List[str]
    permissions: List[str]
    is_admin: bool


class UserListItem(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str]
    permission_count: int
    last_signed_in: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserInfo(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    last_signed_in: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserRoleDetail(BaseModel):
    role_id: int
    role_name: str
    role_description: str = ""
    assigned_by: Optional[int] = None
    assigned_at: Optional[datetime] = None


class UserPermissionDetail(BaseModel):
    permission_id: int
    permission_name: str
    permission_description: str = ""
    permission_category: str
    assigned_by: Optional[int] = None
    assigned_at: Optional[datetime] = None


class UserDetails(BaseModel):
    user: UserInfo
    roles: List[UserRoleDetail]
    direct_permissions: List[UserPermissionDetail]
    all_permissions: List[str]

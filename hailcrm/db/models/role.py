"""RBAC tables: roles, permissions and the three grant edge tables.

Uniqueness of every edge is enforced by the database so that two writers
racing past an application-level check still cannot create a duplicate.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from hailcrm.db.base import Base


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    permission_grants = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    user_grants = relationship("UserRole", back_populates="role", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)  # admin UI grouping
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    role_grants = relationship("RolePermission", back_populates="permission", cascade="all, delete-orphan")
    user_grants = relationship("UserPermission", back_populates="permission", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Permission {self.name} ({self.category})>"


class UserRole(Base):
    """Role granted to a user."""

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_id_role_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)

    # Who assigned this role
    assigned_by = Column(Integer, nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="role_grants", foreign_keys=[user_id])
    role = relationship("Role", back_populates="user_grants")

    def __repr__(self) -> str:
        return f"<UserRole user={self.user_id} role={self.role_id}>"


class UserPermission(Base):
    """Permission granted directly to a user, independent of roles."""

    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", name="uq_user_permissions_user_id_permission_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)

    assigned_by = Column(Integer, nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="permission_grants", foreign_keys=[user_id])
    permission = relationship("Permission", back_populates="user_grants")

    def __repr__(self) -> str:
        return f"<UserPermission user={self.user_id} permission={self.permission_id}>"


class RolePermission(Base):
    """Permission conferred by a role. Maintained by the seed process."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_role_id_permission_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    role = relationship("Role", back_populates="permission_grants")
    permission = relationship("Permission", back_populates="role_grants")

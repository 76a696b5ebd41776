from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from hailcrm.db.base import Base


class User(Base):
    """CRM account. Only the columns the admin listings need live here."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255))
    email = Column(String(320), unique=True, nullable=True, index=True)
    last_signed_in = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    role_grants = relationship(
        "UserRole", back_populates="user", cascade="all, delete-orphan", foreign_keys="UserRole.user_id"
    )
    permission_grants = relationship(
        "UserPermission", back_populates="user", cascade="all, delete-orphan", foreign_keys="UserPermission.user_id"
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"

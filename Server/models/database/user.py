"""
RouteWarden Server - User Database Model

User model for authentication and authorization.
Users hold roles and, optionally, direct permission grants.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from models.database.base import Base


class User(Base):
    """
    Users table - stores user credentials and authentication info
    """
    __tablename__ = "users"
    # Never reuse the id of a deleted user: tokens and cached permissions are keyed by it
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    last_login = Column(DateTime, nullable=True)

    # Relationship to roles through junction table
    roles = relationship("Role", secondary="user_roles", back_populates="users")
    # Direct permission grants
    permission_grants = relationship("UserPermission", back_populates="user", cascade="all, delete-orphan")

    def ToDict(self) -> dict:
        """Serialize for JSON responses (never includes the password hash)"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

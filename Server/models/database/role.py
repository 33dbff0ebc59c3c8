"""
RouteWarden Server - Role Database Model

Role model for RBAC (Role-Based Access Control).
Stores role definitions and their relationships with users and permissions.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from models.database.base import Base


class Role(Base):
    """
    Roles table - stores role definitions for RBAC
    """
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    display_name = Column(String, nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    is_system_role = Column(Boolean, default=False)  # True for default roles that cannot be deleted

    # Relationship to users through junction table
    users = relationship("User", secondary="user_roles", back_populates="roles")
    # Grant rows for this role
    permission_grants = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    # Field-level overlay rows for this role
    field_permissions = relationship("FieldPermission", back_populates="role", cascade="all, delete-orphan")

    def ToDict(self) -> dict:
        """Serialize for JSON responses"""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "is_system_role": self.is_system_role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

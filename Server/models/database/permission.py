"""
RouteWarden Server - Permission Database Model

Permission model for RBAC.
API route permissions are created and refreshed by the permission synchronizer;
the name ("resource.action") is the natural key used for upserts.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index
from sqlalchemy.orm import relationship

from models.database.base import Base


class Permission(Base):
    """
    Permissions table - stores available permissions
    """
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)  # e.g. "user.index"
    display_name = Column(String, nullable=True)
    description = Column(String, nullable=True)
    resource = Column(String, nullable=True)
    action = Column(String, nullable=True)
    uri = Column(String, nullable=True)
    method = Column(String, nullable=True)
    route_name = Column(String, nullable=True)
    is_api_route = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    deactivated_at = Column(DateTime, nullable=True)  # Set by cleanup, cleared on reactivation
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Grant rows (granted flag lives on the junction tables)
    role_grants = relationship("RolePermission", back_populates="permission", cascade="all, delete-orphan")
    user_grants = relationship("UserPermission", back_populates="permission", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_permissions_resource_action_active', 'resource', 'action', 'is_active'),
        Index('idx_permissions_api_active', 'is_api_route', 'is_active'),
        Index('idx_permissions_uri_method', 'uri', 'method'),
    )

    def ToDict(self) -> dict:
        """Serialize for JSON responses"""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "resource": self.resource,
            "action": self.action,
            "uri": self.uri,
            "method": self.method,
            "route_name": self.route_name,
            "is_api_route": self.is_api_route,
            "is_active": self.is_active,
        }

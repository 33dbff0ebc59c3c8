"""
RouteWarden Server - RolePermission Database Model

Junction table between roles and permissions.
A row with granted=True is a grant; granted=False records an explicit revocation.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.database.base import Base


class RolePermission(Base):
    """
    RolePermission junction table - maps roles to permissions (many-to-many)
    """
    __tablename__ = "role_permission"

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)
    granted = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    role = relationship("Role", back_populates="permission_grants")
    permission = relationship("Permission", back_populates="role_grants")

"""
RouteWarden Server - UserPermission Database Model

Direct user grants that bypass roles. Same granted flag semantics as role_permission.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.database.base import Base


class UserPermission(Base):
    """
    UserPermission junction table - maps users to permissions directly
    """
    __tablename__ = "user_permission"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)
    granted = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="permission_grants")
    permission = relationship("Permission", back_populates="user_grants")

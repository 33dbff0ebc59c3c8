"""
RouteWarden Server - UserRole Database Model

Junction table for many-to-many relationship between users and roles.
"""

from sqlalchemy import Column, Integer, ForeignKey

from models.database.base import Base


class UserRole(Base):
    """
    UserRoles junction table - maps users to roles (many-to-many)
    """
    __tablename__ = "user_roles"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)

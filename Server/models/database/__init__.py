"""
RouteWarden Server - Database Models Package

This package contains all SQLAlchemy database model definitions.
All models share a common declarative base for proper table relationships.
"""

# Import Base first
from models.database.base import Base

# Import all models
from models.database.role import Role
from models.database.permission import Permission
from models.database.role_permission import RolePermission
from models.database.user import User
from models.database.user_role import UserRole
from models.database.user_permission import UserPermission
from models.database.field_permission import FieldPermission
from models.database.setting import Setting

# Export all models and Base
__all__ = [
    'Base',
    'Role',
    'Permission',
    'RolePermission',
    'User',
    'UserRole',
    'UserPermission',
    'FieldPermission',
    'Setting',
]

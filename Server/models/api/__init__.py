"""
RouteWarden Server - API Models Package

This package contains Pydantic models for all API endpoints.
"""

from models.api.permission_management import (
    UpdateRolePermissionRequest,
    BulkUpdateRoleRequest,
    BulkUpdateResourceRequest,
    UpdateUserPermissionRequest,
    PurgePermissionsRequest
)
from models.api.field_permissions import SetFieldPermissionRequest
from models.api.role_management import (
    CreateRoleRequest,
    UpdateRoleRequest,
    AssignUserRolesRequest
)
from models.api.user_management import (
    CreateUserRequest,
    UpdateUserRequest,
    BatchCreateUsersRequest,
    BatchDeleteUsersRequest
)
from models.api.settings import SettingsUpdateRequest

__all__ = [
    'UpdateRolePermissionRequest',
    'BulkUpdateRoleRequest',
    'BulkUpdateResourceRequest',
    'UpdateUserPermissionRequest',
    'PurgePermissionsRequest',
    'SetFieldPermissionRequest',
    'CreateRoleRequest',
    'UpdateRoleRequest',
    'AssignUserRolesRequest',
    'CreateUserRequest',
    'UpdateUserRequest',
    'BatchCreateUsersRequest',
    'BatchDeleteUsersRequest',
    'SettingsUpdateRequest',
]

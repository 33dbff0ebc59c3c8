"""
RouteWarden Server - Permission Management API Models

Pydantic models for the route permission admin endpoints.
"""

from typing import List, Optional
from pydantic import BaseModel


class UpdateRolePermissionRequest(BaseModel):
    """Request model for granting or revoking one permission for one role"""
    role_id: int
    permission_id: int
    granted: bool


class BulkUpdateRoleRequest(BaseModel):
    """Request model for granting or revoking a list of permissions for one role"""
    role_id: int
    permission_ids: List[int]
    grant_all: bool


class BulkUpdateResourceRequest(BaseModel):
    """Request model for granting or revoking every permission of a resource for all roles"""
    resource: str
    grant_all: bool


class UpdateUserPermissionRequest(BaseModel):
    """Request model for a direct user grant"""
    user_id: int
    permission_id: int
    granted: bool


class PurgePermissionsRequest(BaseModel):
    """Request model for purging inactive permissions (defaults to the configured window)"""
    retention_days: Optional[int] = None

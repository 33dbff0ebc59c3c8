"""
RouteWarden Server - Role Management API Models

Pydantic models for role management admin endpoints.
"""

from typing import Optional, List
from pydantic import BaseModel


class CreateRoleRequest(BaseModel):
    """Request model for creating a new role"""
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    permission_ids: List[int] = []


class UpdateRoleRequest(BaseModel):
    """Request model for updating a role"""
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None


class AssignUserRolesRequest(BaseModel):
    """Request model for replacing the roles of a user"""
    role_ids: List[int]

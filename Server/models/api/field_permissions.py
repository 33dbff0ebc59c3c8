"""
RouteWarden Server - Field Permission API Models

Pydantic models for the field-level access overlay admin endpoints.
"""

from pydantic import BaseModel


class SetFieldPermissionRequest(BaseModel):
    """Request model for setting read/write flags of one field for one role"""
    role_id: int
    table_name: str
    field_name: str
    can_read: bool = False
    can_write: bool = False

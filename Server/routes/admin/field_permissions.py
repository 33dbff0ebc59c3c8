"""
RouteWarden Server - Admin Field Permission Endpoints
"""

import logging
from fastapi import APIRouter, Depends

from models.database import User
from models.api import SetFieldPermissionRequest
from auth import RequireAdmin
from field_permissions import FieldPermissionOverlay

# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


def GetOverlay() -> FieldPermissionOverlay:
    from database import db_manager
    return FieldPermissionOverlay(db_manager)


# ==================== Admin - Field Permissions ====================

@router.post("/admin/api/field-permissions", tags=["Admin"])
async def admin_set_field_permission(
    request_data: SetFieldPermissionRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Set read/write flags of one field of one table for one role

    Returns:
        dict: success flag and the stored flags
    """
    flags = GetOverlay().SetFieldPermission(
        request_data.role_id,
        request_data.table_name,
        request_data.field_name,
        request_data.can_read,
        request_data.can_write
    )

    logger.info(
        f"Admin '{current_user.email}' set field permission "
        f"{request_data.table_name}.{request_data.field_name} for role {request_data.role_id}"
    )

    return {"success": True, **flags}


@router.get("/admin/api/field-permissions/tables", tags=["Admin"])
async def admin_list_managed_tables(current_user: User = Depends(RequireAdmin)):
    """
    List application tables and their columns

    Returns:
        dict: tables mapping table name to column names
    """
    return {"tables": GetOverlay().ListManagedTables()}


@router.get("/admin/api/field-permissions/grid/{table_name}", tags=["Admin"])
async def admin_field_permission_grid(
    table_name: str,
    current_user: User = Depends(RequireAdmin)
):
    """
    Every role against every column of a table
    """
    return GetOverlay().PermissionGrid(table_name)


@router.get("/admin/api/field-permissions/{role_id}/{table_name}", tags=["Admin"])
async def admin_get_field_permissions(
    role_id: int,
    table_name: str,
    current_user: User = Depends(RequireAdmin)
):
    """
    Explicit field flags of one role on one table

    Returns:
        dict: role_id, table_name and field_name -> {can_read, can_write}
    """
    return {
        "role_id": role_id,
        "table_name": table_name,
        "fields": GetOverlay().PermissionsFor(role_id, table_name)
    }

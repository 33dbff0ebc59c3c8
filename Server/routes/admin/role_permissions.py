"""
RouteWarden Server - Admin Role Permission Endpoints

Grant matrix management: single grants, bulk grants per role and per
resource, matrix read-out, export, and direct user grants.
"""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException

from models.database import User, Role, Permission
from models.api import (
    UpdateRolePermissionRequest, BulkUpdateRoleRequest,
    BulkUpdateResourceRequest, UpdateUserPermissionRequest
)
from auth import RequireAdmin, GetRolePermissionMatrix
from exceptions import RouteWardenError

# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


def _DisplayName(item) -> str:
    return item.display_name or item.name


# ==================== Admin - Role Permission Matrix ====================

@router.get("/admin/api/role-permissions/matrix", tags=["Admin"])
async def admin_get_matrix(current_user: User = Depends(RequireAdmin)):
    """
    Get every role with the ids of the active API permissions it holds

    Returns:
        dict: roles list and role_id -> [permission_id] matrix
    """
    from database import db_manager

    matrix = GetRolePermissionMatrix().Matrix()

    db_session = db_manager.GetSession()
    try:
        roles = db_manager.GetAllRoles(db_session)
        return {
            "roles": [role.ToDict() for role in roles],
            "matrix": {str(role_id): sorted(ids) for role_id, ids in matrix.items()}
        }
    finally:
        db_session.close()


@router.post("/admin/api/role-permissions", tags=["Admin"])
async def admin_update_role_permission(
    request_data: UpdateRolePermissionRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Grant or revoke one permission for one role

    Args:
        request_data: role_id, permission_id, granted
        current_user: Admin user from dependency

    Returns:
        Success message
    """
    from database import db_manager

    matrix = GetRolePermissionMatrix()
    if request_data.granted:
        matrix.Grant(request_data.role_id, request_data.permission_id)
        action = "granted"
    else:
        matrix.Revoke(request_data.role_id, request_data.permission_id)
        action = "revoked"

    db_session = db_manager.GetSession()
    try:
        role = db_session.query(Role).filter(Role.id == request_data.role_id).first()
        permission = db_session.query(Permission).filter(Permission.id == request_data.permission_id).first()
        message = f'Permission "{_DisplayName(permission)}" {action} for role "{_DisplayName(role)}"'
    finally:
        db_session.close()

    logger.info(f"Admin '{current_user.email}': {message}")

    return {
        "success": True,
        "message": message
    }


@router.post("/admin/api/role-permissions/bulk-role", tags=["Admin"])
async def admin_bulk_update_role(
    request_data: BulkUpdateRoleRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Grant or revoke a list of permissions for one role

    Args:
        request_data: role_id, permission_ids, grant_all
        current_user: Admin user from dependency

    Returns:
        Success message
    """
    from database import db_manager

    if not request_data.permission_ids:
        raise HTTPException(status_code=400, detail="permission_ids must not be empty")

    count = GetRolePermissionMatrix().BulkSetForRole(
        request_data.role_id, request_data.permission_ids, request_data.grant_all
    )

    db_session = db_manager.GetSession()
    try:
        role = db_session.query(Role).filter(Role.id == request_data.role_id).first()
        action = "Granted" if request_data.grant_all else "Revoked"
        message = f'{action} {count} permissions for role "{_DisplayName(role)}"'
    finally:
        db_session.close()

    logger.info(f"Admin '{current_user.email}': {message}")

    return {
        "success": True,
        "message": message
    }


@router.post("/admin/api/role-permissions/bulk-resource", tags=["Admin"])
async def admin_bulk_update_resource(
    request_data: BulkUpdateResourceRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Grant or revoke every permission of a resource for every role

    Args:
        request_data: resource, grant_all
        current_user: Admin user from dependency

    Returns:
        Success message with the number of roles updated
    """
    updated = GetRolePermissionMatrix().BulkSetForResource(request_data.resource, request_data.grant_all)

    action = "Granted" if request_data.grant_all else "Revoked"
    message = f"{action} all {request_data.resource} permissions for {updated} roles"

    logger.info(f"Admin '{current_user.email}': {message}")

    return {
        "success": True,
        "message": message,
        "roles_updated": updated
    }


@router.get("/admin/api/role-permissions/export", tags=["Admin"])
async def admin_export_role_permissions(current_user: User = Depends(RequireAdmin)):
    """
    Export roles with their granted API permissions, all active API permissions,
    and the grouped listing as one JSON document

    Returns:
        dict: exported_at, roles, permissions, groups
    """
    from database import db_manager, permission_catalog

    matrix = GetRolePermissionMatrix().Matrix()
    permissions = permission_catalog.ActivePermissions()
    permissions_by_id = {permission["id"]: permission for permission in permissions}

    db_session = db_manager.GetSession()
    try:
        roles_data = []
        for role in db_manager.GetAllRoles(db_session):
            role_data = role.ToDict()
            role_data["permissions"] = [
                permissions_by_id[permission_id]
                for permission_id in sorted(matrix.get(role.id, set()))
                if permission_id in permissions_by_id
            ]
            roles_data.append(role_data)
    finally:
        db_session.close()

    logger.info(f"Admin '{current_user.email}' exported role permissions")

    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "roles": roles_data,
        "permissions": permissions,
        "groups": permission_catalog.GroupedByResource()
    }


# ==================== Admin - Direct User Permissions ====================

@router.post("/admin/api/user-permissions", tags=["Admin"])
async def admin_update_user_permission(
    request_data: UpdateUserPermissionRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Grant or revoke one permission directly for a user

    Direct grants add to what the user's roles give; revoking a direct grant
    never removes a permission the user also holds through a role.

    Args:
        request_data: user_id, permission_id, granted
        current_user: Admin user from dependency

    Returns:
        Success message
    """
    from database import db_manager

    try:
        GetRolePermissionMatrix().SetUserPermission(
            request_data.user_id, request_data.permission_id, request_data.granted
        )
    except RouteWardenError:
        raise
    except Exception as e:
        logger.error(f"Error updating user permission: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update user permission")

    db_session = db_manager.GetSession()
    try:
        user = db_session.query(User).filter(User.id == request_data.user_id).first()
        permission = db_session.query(Permission).filter(Permission.id == request_data.permission_id).first()
        action = "granted" if request_data.granted else "revoked"
        message = f'Permission "{_DisplayName(permission)}" {action} for user "{user.email}"'
    finally:
        db_session.close()

    logger.info(f"Admin '{current_user.email}': {message}")

    return {
        "success": True,
        "message": message
    }

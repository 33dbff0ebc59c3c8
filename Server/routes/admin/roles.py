"""
RouteWarden Server - Admin Roles Endpoints
"""

import logging
import re
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException

from models.database import Role, Permission, RolePermission, User, UserRole
from models.api import CreateRoleRequest, UpdateRoleRequest, AssignUserRolesRequest
from auth import RequireAdmin, GetRolePermissionMatrix

# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()

ROLE_NAME_PATTERN = r'^[a-zA-Z0-9_\-]{3,50}$'


def _InvalidatePermissionCache() -> None:
    from database import permission_catalog
    if permission_catalog is not None:
        permission_catalog.Invalidate()


# ==================== Admin - Role Management ====================

@router.get("/admin/api/roles", tags=["Admin"])
async def admin_list_roles(current_user: User = Depends(RequireAdmin)):
    """
    List all roles with their granted API permissions

    Args:
        current_user: Admin user from dependency

    Returns:
        List of roles with permission ids and user counts
    """
    from database import db_manager

    matrix = GetRolePermissionMatrix().Matrix()
    db_session = db_manager.GetSession()

    try:
        roles_data = []
        for role in db_manager.GetAllRoles(db_session):
            role_data = role.ToDict()
            role_data["permission_ids"] = sorted(matrix.get(role.id, set()))
            role_data["user_count"] = len(db_manager.GetUsersWithRole(db_session, role_id=role.id))
            roles_data.append(role_data)

        return {
            "success": True,
            "roles": roles_data
        }

    except Exception as e:
        logger.error(f"Error listing roles: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list roles")
    finally:
        db_session.close()


@router.post("/admin/api/roles", tags=["Admin"])
async def admin_create_role(
    request_data: CreateRoleRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Create a new role, optionally granting it permissions

    Args:
        request_data: Role creation data (name, display_name, description, permission_ids)
        current_user: Admin user from dependency

    Returns:
        Success message with role details
    """
    from database import db_manager
    db_session = db_manager.GetSession()

    try:
        if not re.match(ROLE_NAME_PATTERN, request_data.name):
            raise HTTPException(
                status_code=400,
                detail="Role name must be 3-50 characters and contain only letters, numbers, hyphens, and underscores"
            )

        existing_role = db_session.query(Role).filter(Role.name == request_data.name).first()
        if existing_role:
            raise HTTPException(status_code=400, detail=f"Role '{request_data.name}' already exists")

        permission_ids = list(dict.fromkeys(request_data.permission_ids))
        if permission_ids:
            found = {pid for (pid,) in db_session.query(Permission.id).filter(Permission.id.in_(permission_ids)).all()}
            for permission_id in permission_ids:
                if permission_id not in found:
                    raise HTTPException(status_code=400, detail=f"Permission {permission_id} does not exist")

        new_role = Role(
            name=request_data.name,
            display_name=request_data.display_name or request_data.name.replace('-', ' ').title(),
            description=request_data.description,
            created_at=datetime.now(timezone.utc),
            is_system_role=False
        )
        db_session.add(new_role)
        db_session.flush()  # Get the role id

        for permission_id in permission_ids:
            db_session.add(RolePermission(role_id=new_role.id, permission_id=permission_id, granted=True))

        db_session.commit()

        logger.info(f"Admin '{current_user.email}' created role '{new_role.name}' with {len(permission_ids)} permissions")

        return {
            "success": True,
            "role": new_role.ToDict(),
            "message": f"Role '{new_role.name}' created successfully"
        }

    except HTTPException:
        db_session.rollback()
        raise
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error creating role: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create role")
    finally:
        db_session.close()


@router.put("/admin/api/roles/{role_id}", tags=["Admin"])
async def admin_update_role(
    role_id: int,
    request_data: UpdateRoleRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Update a role's name, display name and/or description

    System roles keep their name but their display name and description can change.
    """
    from database import db_manager
    db_session = db_manager.GetSession()

    try:
        role = db_session.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise HTTPException(status_code=404, detail=f"Role with ID {role_id} not found")

        old_name = role.name

        if request_data.name is not None and request_data.name != role.name:
            if role.is_system_role:
                raise HTTPException(status_code=403, detail="Cannot rename system roles")

            if not re.match(ROLE_NAME_PATTERN, request_data.name):
                raise HTTPException(
                    status_code=400,
                    detail="Role name must be 3-50 characters and contain only letters, numbers, hyphens, and underscores"
                )

            existing_role = db_session.query(Role).filter(
                Role.name == request_data.name,
                Role.id != role_id
            ).first()
            if existing_role:
                raise HTTPException(status_code=400, detail=f"Role '{request_data.name}' already exists")

            role.name = request_data.name

        if request_data.display_name is not None:
            role.display_name = request_data.display_name

        if request_data.description is not None:
            role.description = request_data.description

        db_session.commit()

        logger.info(f"Admin '{current_user.email}' updated role '{old_name}' (ID: {role_id})")

        return {
            "success": True,
            "role": role.ToDict(),
            "message": "Role updated successfully"
        }

    except HTTPException:
        db_session.rollback()
        raise
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error updating role: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update role")
    finally:
        db_session.close()


@router.delete("/admin/api/roles/{role_id}", tags=["Admin"])
async def admin_delete_role(
    role_id: int,
    current_user: User = Depends(RequireAdmin)
):
    """
    Delete a role (only if no users are assigned to it)

    Grant rows and field permission rows of the role are deleted with it.
    """
    from database import db_manager
    db_session = db_manager.GetSession()

    try:
        role = db_session.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise HTTPException(status_code=404, detail=f"Role with ID {role_id} not found")

        if role.is_system_role:
            raise HTTPException(status_code=403, detail="Cannot delete system roles")

        users_with_role = db_manager.GetUsersWithRole(db_session, role_id=role_id)
        if users_with_role:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot delete role: {len(users_with_role)} user(s) are assigned to this role"
            )

        role_name = role.name
        db_session.delete(role)
        db_session.commit()

        _InvalidatePermissionCache()
        logger.info(f"Admin '{current_user.email}' deleted role '{role_name}' (ID: {role_id})")

        return {
            "success": True,
            "message": f"Role '{role_name}' deleted successfully"
        }

    except HTTPException:
        db_session.rollback()
        raise
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error deleting role: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete role")
    finally:
        db_session.close()


# ==================== Admin - User Role Assignment ====================

@router.put("/admin/api/users/{user_id}/roles", tags=["Admin"])
async def admin_assign_user_roles(
    user_id: int,
    request_data: AssignUserRolesRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Replace the roles of a user

    Args:
        user_id: User ID
        request_data: role_ids the user should hold
        current_user: Admin user from dependency

    Returns:
        Success message with the assigned role names
    """
    from database import db_manager
    db_session = db_manager.GetSession()

    try:
        user = db_session.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")

        role_ids = list(dict.fromkeys(request_data.role_ids))
        roles = db_session.query(Role).filter(Role.id.in_(role_ids)).all() if role_ids else []
        found = {role.id for role in roles}
        for role_id in role_ids:
            if role_id not in found:
                raise HTTPException(status_code=404, detail=f"Role with ID {role_id} not found")

        db_session.query(UserRole).filter(UserRole.user_id == user_id).delete(synchronize_session=False)
        for role_id in role_ids:
            db_session.add(UserRole(user_id=user_id, role_id=role_id))

        db_session.commit()

        _InvalidatePermissionCache()
        role_names = sorted(role.name for role in roles)
        logger.info(f"Admin '{current_user.email}' set roles of user '{user.email}' to {role_names}")

        return {
            "success": True,
            "roles": role_names,
            "message": f"Roles updated for user '{user.email}'"
        }

    except HTTPException:
        db_session.rollback()
        raise
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error assigning roles: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to assign roles")
    finally:
        db_session.close()

"""
RouteWarden Server - Admin Permission Sync Endpoints

Sync, cleanup and purge of API route permissions, and the grouped permission
listing. Maintenance operations hold the maintenance lock while they run.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status

from models.database import User
from models.api import PurgePermissionsRequest
from models.infrastructure import RouteManifest
from auth import RequireAdmin
from exceptions import RouteWardenError
from maintenance_lock import AcquireLock, ReleaseLock
from permission_sync import PermissionSynchronizer
from route_classifier import ClassifierFromSettings
from route_inventory import RoutesFromApp, BuildRouteManifest, LoadRouteManifest

# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


def CurrentRouteManifest(app, db_manager) -> RouteManifest:
    """
    Manifest used by sync and cleanup

    Reads the file named by the route_manifest_path setting, or builds a fresh
    manifest from the running application when the setting is empty.
    """
    session = db_manager.GetSession()
    try:
        manifest_path = db_manager.GetSetting(session, "route_manifest_path")
    finally:
        session.close()

    if manifest_path:
        return LoadRouteManifest(manifest_path)

    return BuildRouteManifest(RoutesFromApp(app), ClassifierFromSettings(db_manager))


def AcquireMaintenanceLock(db_manager, holder: str, operation_type: str) -> None:
    """
    Acquire the maintenance lock or fail with 409 Conflict

    Raises:
        HTTPException: If another maintenance operation is running
    """
    session = db_manager.GetSession()
    try:
        timeout_seconds = db_manager.GetIntSetting(session, "maintenance_lock_timeout_seconds")
    finally:
        session.close()

    success, error_msg = AcquireLock(holder, operation_type, timeout_seconds)
    if not success:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error_msg)


# ==================== Admin - Permission Sync ====================

@router.post("/admin/api/permissions/sync", tags=["Admin"])
async def admin_sync_permissions(
    request: Request,
    cleanup: bool = False,
    current_user: User = Depends(RequireAdmin)
):
    """
    Sync API route permissions from the route manifest

    Args:
        request: FastAPI request (gives access to the running app)
        cleanup: Also deactivate permissions whose routes disappeared
        current_user: Admin user from dependency

    Returns:
        Success message with synced (and inactive) counts
    """
    from database import db_manager, permission_catalog

    operation_type = "cleanup" if cleanup else "sync"
    AcquireMaintenanceLock(db_manager, current_user.email, operation_type)

    try:
        manifest = CurrentRouteManifest(request.app, db_manager)
        synchronizer = PermissionSynchronizer(db_manager, permission_catalog)

        if cleanup:
            inactive_count = synchronizer.CleanupInactivePermissions(manifest.routes)
            synced_count = len(manifest.routes)
            logger.info(
                f"Admin '{current_user.email}' ran permission cleanup: "
                f"{synced_count} synced, {inactive_count} inactive"
            )
            return {
                "success": True,
                "message": (
                    f"Successfully synced {synced_count} API route permissions, "
                    f"{inactive_count} inactive"
                ),
                "synced_count": synced_count,
                "inactive_count": inactive_count
            }

        synced_count = synchronizer.SyncRoutes(manifest.routes)
        logger.info(f"Admin '{current_user.email}' synced {synced_count} API route permissions")

        return {
            "success": True,
            "message": f"Successfully synced {synced_count} API route permissions",
            "synced_count": synced_count
        }

    except (HTTPException, RouteWardenError):
        raise
    except Exception as e:
        logger.error(f"Error syncing permissions: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to sync permissions: {str(e)}")
    finally:
        ReleaseLock(current_user.email)


@router.post("/admin/api/permissions/purge", tags=["Admin"])
async def admin_purge_permissions(
    request_data: PurgePermissionsRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Delete API permissions that have been inactive longer than the retention window

    Args:
        request_data: Optional retention_days (defaults to the configured window)
        current_user: Admin user from dependency

    Returns:
        Success message with purged count
    """
    from database import db_manager, permission_catalog

    retention_days = request_data.retention_days
    if retention_days is None:
        session = db_manager.GetSession()
        try:
            retention_days = db_manager.GetIntSetting(session, "inactive_permission_retention_days")
        finally:
            session.close()

    if retention_days < 0:
        raise HTTPException(status_code=400, detail="retention_days must be 0 or greater")

    AcquireMaintenanceLock(db_manager, current_user.email, "purge")

    try:
        purged_count = PermissionSynchronizer(db_manager, permission_catalog).PurgeInactivePermissions(retention_days)

        logger.info(
            f"Admin '{current_user.email}' purged {purged_count} inactive permissions "
            f"(retention {retention_days} days)"
        )

        return {
            "success": True,
            "message": f"Purged {purged_count} inactive permissions",
            "purged_count": purged_count
        }

    except (HTTPException, RouteWardenError):
        raise
    except Exception as e:
        logger.error(f"Error purging permissions: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to purge permissions: {str(e)}")
    finally:
        ReleaseLock(current_user.email)


@router.get("/admin/api/permissions", tags=["Admin"])
async def admin_list_permissions(current_user: User = Depends(RequireAdmin)):
    """
    List active API permissions grouped by resource

    Returns:
        List of {resource, display_name, permissions[]} groups
    """
    from database import permission_catalog

    return permission_catalog.GroupedByResource()

"""
RouteWarden Server - Admin Settings Endpoints
"""

import logging
import re
from fastapi import APIRouter, Depends, HTTPException

from models.database import Setting, User
from models.api import SettingsUpdateRequest
from auth import RequireAdmin

# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()

INT_SETTINGS = [
    'jwt_expiration_hours', 'permission_cache_ttl_seconds',
    'inactive_permission_retention_days', 'maintenance_lock_timeout_seconds'
]
BOOL_SETTINGS = ['field_permissions_enabled']


# ==================== Admin Settings Management ====================

@router.get("/admin/api/settings", tags=["Admin"])
async def admin_get_settings(current_user: User = Depends(RequireAdmin)):
    """
    Get current server settings

    Returns:
        Dictionary of all server settings
    """
    try:
        from database import db_manager
        db_session = db_manager.GetSession()
        try:
            settings_records = db_session.query(Setting).all()

            # Convert to appropriate type (all stored as strings in DB)
            settings = {}
            for setting in settings_records:
                if setting.key in INT_SETTINGS:
                    settings[setting.key] = int(setting.value)
                elif setting.key in BOOL_SETTINGS:
                    settings[setting.key] = setting.value.strip().lower() in ("true", "1", "yes")
                else:
                    settings[setting.key] = setting.value

            return settings
        finally:
            db_session.close()
    except Exception as e:
        logger.error(f"Error fetching settings: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch settings")


@router.post("/admin/api/settings", tags=["Admin"])
async def admin_update_settings(
    request: SettingsUpdateRequest,
    current_user: User = Depends(RequireAdmin)
):
    """
    Update server settings

    Args:
        request: Settings update request
        current_user: Admin user from dependency

    Returns:
        Success message
    """
    try:
        # Validate settings values
        if not re.match(r'^[a-zA-Z0-9_\-/]*$', request.api_prefix):
            raise HTTPException(status_code=400, detail="api_prefix may only contain letters, numbers, '-', '_' and '/'")

        if request.jwt_expiration_hours < 1 or request.jwt_expiration_hours > 168:
            raise HTTPException(status_code=400, detail="jwt_expiration_hours must be between 1 and 168")

        if request.permission_cache_ttl_seconds < 0 or request.permission_cache_ttl_seconds > 86400:
            raise HTTPException(status_code=400, detail="permission_cache_ttl_seconds must be between 0 and 86400")

        if request.inactive_permission_retention_days < 0 or request.inactive_permission_retention_days > 3650:
            raise HTTPException(status_code=400, detail="inactive_permission_retention_days must be between 0 and 3650")

        if request.maintenance_lock_timeout_seconds < 60 or request.maintenance_lock_timeout_seconds > 3600:
            raise HTTPException(status_code=400, detail="maintenance_lock_timeout_seconds must be between 60 and 3600")

        from database import db_manager, permission_catalog
        db_session = db_manager.GetSession()
        try:
            settings_to_update = {
                'api_prefix': request.api_prefix.strip('/'),
                'jwt_expiration_hours': str(request.jwt_expiration_hours),
                'permission_cache_ttl_seconds': str(request.permission_cache_ttl_seconds),
                'inactive_permission_retention_days': str(request.inactive_permission_retention_days),
                'field_permissions_enabled': "true" if request.field_permissions_enabled else "false",
                'route_manifest_path': request.route_manifest_path.strip(),
                'maintenance_lock_timeout_seconds': str(request.maintenance_lock_timeout_seconds)
            }

            for key, value in settings_to_update.items():
                setting_record = db_session.query(Setting).filter(Setting.key == key).first()
                if setting_record:
                    setting_record.value = value
                else:
                    # Create if doesn't exist
                    db_session.add(Setting(key=key, value=value))

            db_session.commit()
        finally:
            db_session.close()

        # Cache lifetime applies from the next cached entry on
        permission_catalog.cache.ttl_seconds = request.permission_cache_ttl_seconds
        permission_catalog.Invalidate()

        logger.info(f"Admin '{current_user.email}' updated server settings")

        return {
            "success": True,
            "message": "Settings updated successfully"
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating settings: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update settings: {str(e)}")

"""
RouteWarden Server - Status Endpoints

This module contains the health check and the permission maintenance status.
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends

from models.database import User
from auth import RequireAdmin
from maintenance_lock import GetCurrentLock


# Create router instance
router = APIRouter()


# ==================== Health Check Endpoint ====================

@router.get("/health", tags=["Status"])
async def health_check():
    """
    Health check endpoint to verify server is running

    Returns:
        dict: Server status information
    """
    return {
        "status": "healthy",
        "service": "RouteWarden Server",
        "version": "1.0.0",
        "timestamp_utc": datetime.now(timezone.utc).isoformat()
    }


# ==================== Status Endpoints ====================

@router.get("/admin/api/status/lock", tags=["Status"])
async def get_lock_status(current_user: User = Depends(RequireAdmin)):
    """
    Get current permission maintenance lock status

    Returns:
        Lock information or indication that no maintenance is running
    """
    lock = GetCurrentLock()

    if lock is None:
        return {
            "locked": False,
            "holder": None,
            "operation": None,
            "started_ago_seconds": None
        }

    return {
        "locked": True,
        "holder": lock.holder,
        "operation": lock.operation_type,
        "started_ago_seconds": lock.ElapsedSeconds()
    }

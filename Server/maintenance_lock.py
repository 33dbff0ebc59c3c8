"""
RouteWarden Server - Maintenance Lock

Exclusive in-process lock held while permissions are synced, cleaned up or
purged, so a cleanup (which deactivates) never interleaves with a sync (which
reactivates). Locks expire after their timeout in case a holder never releases.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from models.infrastructure import MaintenanceLock

logger = logging.getLogger(__name__)

_current_lock: Optional[MaintenanceLock] = None


def GetCurrentLock() -> Optional[MaintenanceLock]:
    """Get the current active lock, if any (checking for expiration)"""
    global _current_lock

    if _current_lock is None:
        return None

    if _current_lock.IsExpired():
        logger.info(f"Maintenance lock of '{_current_lock.holder}' expired after {_current_lock.timeout_seconds}s")
        _current_lock = None
        return None

    return _current_lock


def AcquireLock(holder: str, operation_type: str, timeout_seconds: int) -> tuple[bool, Optional[str]]:
    """
    Attempt to acquire the maintenance lock

    Returns:
        (success: bool, error_message: Optional[str])
    """
    global _current_lock

    current_lock = GetCurrentLock()
    if current_lock is not None:
        error_msg = (
            f"Permission maintenance in progress - {current_lock.holder} started a "
            f"{current_lock.operation_type} {current_lock.ElapsedSeconds()} seconds ago"
        )
        return False, error_msg

    _current_lock = MaintenanceLock(
        holder=holder,
        operation_type=operation_type,
        locked_at_utc=datetime.now(timezone.utc),
        timeout_seconds=timeout_seconds
    )

    logger.info(f"Maintenance lock acquired by '{holder}' for {operation_type} (timeout: {timeout_seconds}s)")
    return True, None


def ReleaseLock(holder: str) -> bool:
    """
    Release the maintenance lock if held by holder

    Returns:
        bool: True if the lock was released
    """
    global _current_lock

    if _current_lock is None or _current_lock.holder != holder:
        return False

    logger.info(f"Maintenance lock released by '{holder}'")
    _current_lock = None
    return True

"""
RouteWarden Server - Maintenance Lock Model

Dataclass for the exclusive lock held while permissions are synced, cleaned up or purged.
"""

from datetime import datetime, timezone
from dataclasses import dataclass


@dataclass
class MaintenanceLock:
    """
    Represents an exclusive maintenance lock on the permission store
    """
    holder: str  # Username or email of the administrator
    operation_type: str  # 'sync', 'cleanup' or 'purge'
    locked_at_utc: datetime
    timeout_seconds: int

    def IsExpired(self) -> bool:
        """Check if lock has expired based on timeout"""
        now = datetime.now(timezone.utc)
        elapsed = (now - self.locked_at_utc).total_seconds()
        return elapsed >= self.timeout_seconds

    def ElapsedSeconds(self) -> int:
        """Get elapsed time since lock was acquired"""
        now = datetime.now(timezone.utc)
        return int((now - self.locked_at_utc).total_seconds())

"""
RouteWarden Server - Cache Entry Model

Dataclass for one value held by the permission cache.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """A cached value with its expiry time"""
    value: Any
    expires_at_utc: datetime

    def IsExpired(self) -> bool:
        """Check if entry has expired"""
        return datetime.now(timezone.utc) >= self.expires_at_utc

"""
RouteWarden Server - Permission Catalog

This module provides the read model over route permissions (grouped by
resource for administration) and owns the permission cache. The cache is
never global: whoever holds the catalog holds the cache, and writers call
Invalidate() after every successful change.
"""

import copy
import logging
from datetime import datetime, timezone, timedelta
from typing import Any, Callable, Dict, List, Optional

from models.database import Permission
from models.infrastructure import CacheEntry
from route_classifier import ACTION_ORDER, RouteClassifier

logger = logging.getLogger(__name__)

GROUPED_CACHE_KEY = "grouped"


def ActionPriority(action: str) -> int:
    """Position of an action in the display order; unknown actions sort last"""
    if action in ACTION_ORDER:
        return ACTION_ORDER.index(action)
    return len(ACTION_ORDER)


class PermissionCache:
    """
    In-memory cache with a time-to-live per entry
    """

    def __init__(self, ttl_seconds: int = 300):
        """
        Initialize permission cache

        Args:
            ttl_seconds: Lifetime of each entry (0 disables caching)
        """
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, CacheEntry] = {}

    def Get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None if missing or expired"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.IsExpired():
            del self._entries[key]
            return None
        return entry.value

    def Set(self, key: str, value: Any) -> None:
        """Store a value for ttl_seconds"""
        if self.ttl_seconds <= 0:
            return
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        self._entries[key] = CacheEntry(value=value, expires_at_utc=expires_at)

    def GetOrLoad(self, key: str, loader: Callable[[], Any]) -> Any:
        """Get a cached value, calling loader and caching its result on a miss"""
        value = self.Get(key)
        if value is None:
            value = loader()
            self.Set(key, value)
        return value

    def Invalidate(self) -> None:
        """Drop every entry"""
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Permission cache invalidated ({count} entries dropped)")

    def __len__(self) -> int:
        return len(self._entries)


class PermissionCatalog:
    """
    Read model over the permissions table
    """

    def __init__(self, db_manager, ttl_seconds: int = 300):
        """
        Initialize permission catalog

        Args:
            db_manager: DatabaseManager instance
            ttl_seconds: Cache lifetime in seconds
        """
        self.db_manager = db_manager
        self.cache = PermissionCache(ttl_seconds)

    def GroupedByResource(self) -> List[dict]:
        """
        Active API permissions grouped by resource

        Groups are ordered by resource; permissions inside a group follow
        index, show, store, update, destroy, search, batch, then any other action.

        Returns:
            List of {resource, display_name, permissions[]} dictionaries (a copy the caller may modify)
        """
        return copy.deepcopy(self.cache.GetOrLoad(GROUPED_CACHE_KEY, self._LoadGroupedByResource))

    def _LoadGroupedByResource(self) -> List[dict]:
        session = self.db_manager.GetSession()
        try:
            permissions = (
                session.query(Permission)
                .filter(Permission.is_api_route.is_(True), Permission.is_active.is_(True))
                .order_by(Permission.resource, Permission.action)
                .all()
            )

            grouped: Dict[str, dict] = {}
            for permission in permissions:
                if permission.resource not in grouped:
                    grouped[permission.resource] = {
                        "resource": permission.resource,
                        "display_name": RouteClassifier.ResourceDisplayName(permission.resource),
                        "permissions": [],
                    }
                grouped[permission.resource]["permissions"].append(permission.ToDict())

            for group in grouped.values():
                group["permissions"].sort(key=lambda p: ActionPriority(p["action"]))

            return list(grouped.values())
        finally:
            session.close()

    def ActivePermissions(self) -> List[dict]:
        """All active API permissions, ordered by resource and action"""
        session = self.db_manager.GetSession()
        try:
            permissions = (
                session.query(Permission)
                .filter(Permission.is_api_route.is_(True), Permission.is_active.is_(True))
                .order_by(Permission.resource, Permission.action)
                .all()
            )
            return [permission.ToDict() for permission in permissions]
        finally:
            session.close()

    def Invalidate(self) -> None:
        """Drop every cached listing and every cached user permission set"""
        self.cache.Invalidate()

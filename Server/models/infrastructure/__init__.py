"""
RouteWarden Server - Infrastructure Models Package

This package contains dataclass models for infrastructure components
like the route manifest, the maintenance lock and the permission cache.
"""

from models.infrastructure.route_info import RouteInfo
from models.infrastructure.route_manifest import ManifestEntry, RouteManifest, MANIFEST_VERSION
from models.infrastructure.maintenance_lock import MaintenanceLock
from models.infrastructure.cache_entry import CacheEntry

__all__ = [
    'RouteInfo',
    'ManifestEntry',
    'RouteManifest',
    'MANIFEST_VERSION',
    'MaintenanceLock',
    'CacheEntry',
]

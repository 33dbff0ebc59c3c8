"""
RouteWarden Server - Settings API Models

Pydantic models for settings management endpoints.
"""

from pydantic import BaseModel


class SettingsUpdateRequest(BaseModel):
    api_prefix: str
    jwt_expiration_hours: int
    permission_cache_ttl_seconds: int
    inactive_permission_retention_days: int
    field_permissions_enabled: bool
    route_manifest_path: str = ""
    maintenance_lock_timeout_seconds: int

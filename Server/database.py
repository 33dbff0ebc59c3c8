"""
RouteWarden Server - Database Module

This module exports the global db_manager and permission_catalog instances
for use across the application.
"""

from managers.database_manager import DatabaseManager
from permission_catalog import PermissionCatalog

# Global database manager instance
# Initialized in server.py lifespan handler
db_manager: DatabaseManager = None

# Global permission catalog (owns the permission cache)
# Initialized in server.py lifespan handler
permission_catalog: PermissionCatalog = None

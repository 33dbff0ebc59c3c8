"""
RouteWarden Server - Permission Synchronization

This module reconciles the classified routes of a route manifest against the
permissions table:
- sync: upsert one permission per manifest entry, keyed by permission name
- cleanup: deactivate every API permission, then sync (live ones come back)
- purge: delete API permissions that stayed inactive past a retention window

Every operation runs in a single transaction; on failure nothing is written.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Iterable

from sqlalchemy import or_

from exceptions import ValidationError
from models.database import Permission
from models.infrastructure import ManifestEntry
from route_classifier import RouteClassifier

logger = logging.getLogger(__name__)


class PermissionSynchronizer:
    """
    Keeps the permissions table in step with the API routes
    """

    def __init__(self, db_manager, catalog=None):
        """
        Initialize permission synchronizer

        Args:
            db_manager: DatabaseManager instance
            catalog: PermissionCatalog whose cache is invalidated after each change (optional)
        """
        self.db_manager = db_manager
        self.catalog = catalog

    def SyncRoutes(self, entries: Iterable[ManifestEntry]) -> int:
        """
        Upsert a permission for every manifest entry

        Args:
            entries: Classified routes from the route manifest

        Returns:
            int: Number of entries processed

        Raises:
            TransactionError: If any write fails (all changes rolled back)
        """
        with self.db_manager.Transaction("sync API route permissions") as session:
            synced_count = self._UpsertAll(session, entries)

        self._InvalidateCatalog()
        logger.info(f"Synced {synced_count} API route permissions")
        return synced_count

    def CleanupInactivePermissions(self, entries: Iterable[ManifestEntry]) -> int:
        """
        Deactivate API permissions whose routes no longer exist

        Marks every API permission inactive, then re-runs the upserts, which
        reactivate every permission still backed by a route. Nothing is deleted.

        Args:
            entries: Classified routes from the route manifest

        Returns:
            int: Number of API permissions left inactive

        Raises:
            ValidationError: If there are no entries (every API permission would be deactivated)
        """
        entries = list(entries)
        if not entries:
            raise ValidationError(
                "Refusing to clean up from an empty route manifest",
                {"routes": ["The route manifest contains no API routes."]}
            )

        now = datetime.now(timezone.utc)

        with self.db_manager.Transaction("clean up inactive permissions") as session:
            session.query(Permission).filter(
                Permission.is_api_route.is_(True),
                Permission.is_active.is_(True)
            ).update({"is_active": False, "deactivated_at": now}, synchronize_session=False)

            self._UpsertAll(session, entries)
            session.flush()

            inactive_count = session.query(Permission).filter(
                Permission.is_api_route.is_(True),
                Permission.is_active.is_(False)
            ).count()

        self._InvalidateCatalog()
        logger.info(f"Cleanup finished: {inactive_count} API route permissions inactive")
        return inactive_count

    def PurgeInactivePermissions(self, retention_days: int) -> int:
        """
        Delete API permissions inactive for longer than the retention window

        Role and user grants of purged permissions are deleted with them.

        Args:
            retention_days: Minimum days a permission must have been inactive (0 purges all inactive)

        Returns:
            int: Number of permissions deleted
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)

        with self.db_manager.Transaction("purge inactive permissions") as session:
            stale_permissions = session.query(Permission).filter(
                Permission.is_api_route.is_(True),
                Permission.is_active.is_(False),
                or_(Permission.deactivated_at.is_(None), Permission.deactivated_at <= cutoff)
            ).all()

            for permission in stale_permissions:
                logger.info(f"Purging inactive permission '{permission.name}'")
                session.delete(permission)

            purged_count = len(stale_permissions)

        self._InvalidateCatalog()
        logger.info(f"Purged {purged_count} inactive permissions (retention {retention_days} days)")
        return purged_count

    def _UpsertAll(self, session, entries: Iterable[ManifestEntry]) -> int:
        count = 0
        for entry in entries:
            self._UpsertPermission(session, entry)
            count += 1
        return count

    @staticmethod
    def _UpsertPermission(session, entry: ManifestEntry) -> Permission:
        """
        Create or refresh the permission named by a manifest entry

        Several entries can share one name (e.g. GET and POST search routes);
        they all land on the same row.
        """
        now = datetime.now(timezone.utc)
        values = {
            "display_name": RouteClassifier.DisplayName(entry.resource, entry.action),
            "description": RouteClassifier.Description(entry.resource, entry.action, entry.method, entry.uri),
            "resource": entry.resource,
            "action": entry.action,
            "uri": entry.uri,
            "method": entry.method,
            "route_name": entry.name,
            "is_api_route": True,
            "is_active": True,
            "deactivated_at": None,
            "updated_at": now,
        }

        permission = session.query(Permission).filter(Permission.name == entry.permission_name).first()
        if permission is None:
            permission = Permission(name=entry.permission_name, created_at=now, **values)
            session.add(permission)
            # Flush so a later entry with the same name finds this row
            session.flush()
            logger.debug(f"Created permission '{entry.permission_name}'")
        else:
            for key, value in values.items():
                setattr(permission, key, value)

        return permission

    def _InvalidateCatalog(self) -> None:
        if self.catalog is not None:
            self.catalog.Invalidate()

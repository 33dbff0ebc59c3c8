"""
RouteWarden Server - Role-Permission Matrix

This module manages which roles (and, directly, which users) hold which
permissions, and resolves a user's effective permissions at request time.

Grants are stored as rows with an explicit granted flag:
- granted=True: the role holds the permission
- granted=False: the permission was granted once and explicitly revoked
- no row: never granted
Only granted=True rows give access.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Set

from exceptions import NotFoundError
from managers.database_manager import ADMIN_PERMISSION
from models.database import Permission, Role, RolePermission, User, UserPermission, UserRole

logger = logging.getLogger(__name__)


class RolePermissionMatrix:
    """
    Grant matrix between roles and permissions, plus direct user grants
    """

    def __init__(self, db_manager, catalog=None):
        """
        Initialize role-permission matrix

        Args:
            db_manager: DatabaseManager instance
            catalog: PermissionCatalog whose cache holds effective permission sets (optional)
        """
        self.db_manager = db_manager
        self.catalog = catalog

    # ==================== Single Grants ====================

    def Grant(self, role_id: int, permission_id: int) -> bool:
        """
        Grant a permission to a role (no-op if already granted)

        Returns:
            bool: True if a row was written
        """
        with self.db_manager.Transaction("grant permission") as session:
            self._RequireRole(session, role_id)
            self._RequirePermissions(session, [permission_id])
            changed = self._GrantInSession(session, role_id, permission_id)

        self._InvalidateCache(changed)
        return changed

    def Revoke(self, role_id: int, permission_id: int) -> bool:
        """
        Revoke a permission from a role (no-op if not granted)

        Returns:
            bool: True if a row was written
        """
        with self.db_manager.Transaction("revoke permission") as session:
            self._RequireRole(session, role_id)
            self._RequirePermissions(session, [permission_id])
            changed = self._RevokeInSession(session, role_id, permission_id)

        self._InvalidateCache(changed)
        return changed

    # ==================== Bulk Grants ====================

    def BulkSetForRole(self, role_id: int, permission_ids: List[int], grant_all: bool) -> int:
        """
        Grant (additive) or revoke (exactly the listed ids) permissions for one role

        Existing grants outside the list are untouched in both modes.

        Args:
            role_id: Role ID
            permission_ids: Permission IDs to grant or revoke
            grant_all: True to grant, False to revoke

        Returns:
            int: Number of listed permissions

        Raises:
            NotFoundError: If the role or any permission does not exist
            TransactionError: If a write fails (matrix left unchanged)
        """
        unique_ids = list(dict.fromkeys(permission_ids))

        with self.db_manager.Transaction("bulk update role permissions") as session:
            self._RequireRole(session, role_id)
            self._RequirePermissions(session, unique_ids)
            self._ApplyToRole(session, role_id, unique_ids, grant_all)

        self._InvalidateCache(True)
        logger.info(f"{'Granted' if grant_all else 'Revoked'} {len(unique_ids)} permissions for role {role_id}")
        return len(unique_ids)

    def BulkSetForResource(self, resource: str, grant_all: bool) -> int:
        """
        Grant or revoke every active API permission of a resource for every role

        Args:
            resource: Resource name, e.g. "users"
            grant_all: True to grant, False to revoke

        Returns:
            int: Number of roles updated

        Raises:
            NotFoundError: If the resource has no active API permissions
            TransactionError: If a write fails (matrix left unchanged)
        """
        with self.db_manager.Transaction("bulk update resource permissions") as session:
            permission_ids = [
                row.id for row in session.query(Permission.id).filter(
                    Permission.resource == resource,
                    Permission.is_api_route.is_(True),
                    Permission.is_active.is_(True)
                ).all()
            ]
            if not permission_ids:
                raise NotFoundError(f"No permissions found for resource '{resource}'")

            updated = 0
            for role in session.query(Role).order_by(Role.id).all():
                self._ApplyToRole(session, role.id, permission_ids, grant_all)
                updated += 1

        self._InvalidateCache(True)
        logger.info(f"{'Granted' if grant_all else 'Revoked'} all '{resource}' permissions for {updated} roles")
        return updated

    def _ApplyToRole(self, session, role_id: int, permission_ids: Iterable[int], grant_all: bool) -> None:
        for permission_id in permission_ids:
            if grant_all:
                self._GrantInSession(session, role_id, permission_id)
            else:
                self._RevokeInSession(session, role_id, permission_id)
        session.flush()

    # ==================== Read Model ====================

    def Matrix(self) -> Dict[int, Set[int]]:
        """
        Full grant matrix over active API permissions

        Returns:
            dict: role_id -> set of granted permission ids (every role present)
        """
        session = self.db_manager.GetSession()
        try:
            matrix: Dict[int, Set[int]] = {role_id: set() for (role_id,) in session.query(Role.id).all()}

            rows = (
                session.query(RolePermission.role_id, RolePermission.permission_id)
                .join(Permission, Permission.id == RolePermission.permission_id)
                .filter(
                    RolePermission.granted.is_(True),
                    Permission.is_api_route.is_(True),
                    Permission.is_active.is_(True)
                )
                .all()
            )
            for role_id, permission_id in rows:
                matrix.setdefault(role_id, set()).add(permission_id)

            return matrix
        finally:
            session.close()

    def RolePermissionIds(self, role_id: int) -> Set[int]:
        """Granted active API permission ids of one role"""
        return self.Matrix().get(role_id, set())

    # ==================== Direct User Grants ====================

    def SetUserPermission(self, user_id: int, permission_id: int, granted: bool) -> bool:
        """
        Grant or revoke a permission directly for a user

        Returns:
            bool: True if a row was written
        """
        with self.db_manager.Transaction("update user permission") as session:
            if session.query(User.id).filter(User.id == user_id).first() is None:
                raise NotFoundError(f"User with ID {user_id} not found")
            self._RequirePermissions(session, [permission_id])

            grant = session.query(UserPermission).filter(
                UserPermission.user_id == user_id,
                UserPermission.permission_id == permission_id
            ).first()

            changed = False
            if granted:
                if grant is None:
                    session.add(UserPermission(user_id=user_id, permission_id=permission_id, granted=True))
                    changed = True
                elif not grant.granted:
                    grant.granted = True
                    grant.updated_at = datetime.now(timezone.utc)
                    changed = True
            elif grant is not None and grant.granted:
                grant.granted = False
                grant.updated_at = datetime.now(timezone.utc)
                changed = True

        self._InvalidateCache(changed)
        return changed

    # ==================== Resolution ====================

    def EffectivePermissionNames(self, user_id: int) -> Set[str]:
        """
        Names of the active permissions a user holds through roles or direct grants

        Direct grants add to role grants; they never remove a role grant.
        """
        if self.catalog is None:
            return self._LoadEffectivePermissionNames(user_id)
        return set(self.catalog.cache.GetOrLoad(
            f"user:{user_id}",
            lambda: self._LoadEffectivePermissionNames(user_id)
        ))

    def _LoadEffectivePermissionNames(self, user_id: int) -> Set[str]:
        session = self.db_manager.GetSession()
        try:
            through_roles = (
                session.query(Permission.name)
                .join(RolePermission, RolePermission.permission_id == Permission.id)
                .join(UserRole, UserRole.role_id == RolePermission.role_id)
                .filter(
                    UserRole.user_id == user_id,
                    RolePermission.granted.is_(True),
                    Permission.is_active.is_(True)
                )
                .all()
            )
            direct = (
                session.query(Permission.name)
                .join(UserPermission, UserPermission.permission_id == Permission.id)
                .filter(
                    UserPermission.user_id == user_id,
                    UserPermission.granted.is_(True),
                    Permission.is_active.is_(True)
                )
                .all()
            )
            return {name for (name,) in through_roles} | {name for (name,) in direct}
        finally:
            session.close()

    def UserHasPermission(self, user_id: int, permission_name: str) -> bool:
        """
        Check if a user holds a permission (the admin permission grants all)
        """
        names = self.EffectivePermissionNames(user_id)
        return ADMIN_PERMISSION in names or permission_name in names

    # ==================== Helpers ====================

    @staticmethod
    def _GrantInSession(session, role_id: int, permission_id: int) -> bool:
        grant = session.query(RolePermission).filter(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == permission_id
        ).first()

        if grant is None:
            session.add(RolePermission(role_id=role_id, permission_id=permission_id, granted=True))
            return True
        if not grant.granted:
            grant.granted = True
            grant.updated_at = datetime.now(timezone.utc)
            return True
        return False

    @staticmethod
    def _RevokeInSession(session, role_id: int, permission_id: int) -> bool:
        grant = session.query(RolePermission).filter(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == permission_id
        ).first()

        if grant is not None and grant.granted:
            grant.granted = False
            grant.updated_at = datetime.now(timezone.utc)
            return True
        return False

    @staticmethod
    def _RequireRole(session, role_id: int) -> None:
        if session.query(Role.id).filter(Role.id == role_id).first() is None:
            raise NotFoundError(f"Role with ID {role_id} not found")

    @staticmethod
    def _RequirePermissions(session, permission_ids: List[int]) -> None:
        if not permission_ids:
            return
        found = {pid for (pid,) in session.query(Permission.id).filter(Permission.id.in_(permission_ids)).all()}
        missing = [pid for pid in permission_ids if pid not in found]
        if missing:
            raise NotFoundError(f"Permission(s) not found: {', '.join(str(pid) for pid in missing)}")

    def _InvalidateCache(self, changed: bool) -> None:
        if changed and self.catalog is not None:
            self.catalog.Invalidate()

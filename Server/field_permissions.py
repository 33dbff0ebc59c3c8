"""
RouteWarden Server - Field-Level Access Overlay

Per-role, per-table, per-field read/write flags, independent of route
permissions. Absence of a row means the field can neither be read nor
written (deny by default); id, created_at and updated_at are always readable.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Union

from sqlalchemy import inspect

from exceptions import NotFoundError, ValidationError
from models.database import FieldPermission, Role, UserRole

logger = logging.getLogger(__name__)

# Fields always returned and never checked on write
SYSTEM_FIELDS = ('id', 'created_at', 'updated_at')

# Request fields that are not record data
REQUEST_META_FIELDS = ('_token', '_method', 'api_token')

# Tables that hold RBAC state rather than application data
SYSTEM_TABLES = (
    'permissions', 'roles', 'role_permission', 'user_permission',
    'user_roles', 'field_permissions', 'settings'
)


def NoAccess() -> Dict[str, bool]:
    """Flags of a field without an explicit row"""
    return {"can_read": False, "can_write": False}


class FieldPermissionOverlay:
    """
    Column-level visibility rules per role
    """

    def __init__(self, db_manager):
        """
        Initialize field permission overlay

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager

    def SetFieldPermission(self, role_id: int, table_name: str, field_name: str,
                           can_read: bool, can_write: bool) -> dict:
        """
        Create or update the flags of one (role, table, field)

        Args:
            role_id: Role ID
            table_name: Table name, e.g. "users"
            field_name: Column name, e.g. "email"
            can_read: Field may be returned to the role
            can_write: Field may be written by the role

        Returns:
            dict: Stored flags

        Raises:
            ValidationError: If table or field name is empty
            NotFoundError: If the role does not exist
        """
        errors = {}
        if not table_name or not table_name.strip():
            errors["table_name"] = ["The table name field is required."]
        if not field_name or not field_name.strip():
            errors["field_name"] = ["The field name field is required."]
        if errors:
            raise ValidationError("The given data was invalid.", errors)

        session = self.db_manager.GetSession()
        try:
            if session.query(Role.id).filter(Role.id == role_id).first() is None:
                raise NotFoundError(f"Role with ID {role_id} not found")

            row = session.query(FieldPermission).filter(
                FieldPermission.role_id == role_id,
                FieldPermission.table_name == table_name,
                FieldPermission.field_name == field_name
            ).first()

            if row is None:
                row = FieldPermission(role_id=role_id, table_name=table_name, field_name=field_name)
                session.add(row)

            row.can_read = bool(can_read)
            row.can_write = bool(can_write)
            row.updated_at = datetime.now(timezone.utc)
            session.commit()

            logger.info(
                f"Field permission set: role {role_id} {table_name}.{field_name} "
                f"read={row.can_read} write={row.can_write}"
            )
            return {"can_read": row.can_read, "can_write": row.can_write}

        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def PermissionsFor(self, role_id: int, table_name: str) -> Dict[str, Dict[str, bool]]:
        """
        Flags of one role on one table

        Every live column of the table is present; columns without a row carry
        the deny default. Rows for fields that are not live columns are kept.

        Returns:
            dict: field_name -> {can_read, can_write}
        """
        columns = self.ListManagedTables().get(table_name, [])
        permissions = {column: NoAccess() for column in columns}

        session = self.db_manager.GetSession()
        try:
            rows = session.query(FieldPermission).filter(
                FieldPermission.role_id == role_id,
                FieldPermission.table_name == table_name
            ).all()
            for row in rows:
                permissions[row.field_name] = {"can_read": row.can_read, "can_write": row.can_write}
            return permissions
        finally:
            session.close()

    def FieldAccess(self, role_id: int, table_name: str, field_name: str) -> Dict[str, bool]:
        """Flags of one field, both false when no row exists"""
        return self.PermissionsFor(role_id, table_name).get(field_name, NoAccess())

    def PermissionsForUser(self, user_id: int, table_name: str) -> Dict[str, Dict[str, bool]]:
        """
        Flags of a user on one table, merged across all of the user's roles

        A field is readable (writable) if ANY of the user's roles allows it.
        """
        session = self.db_manager.GetSession()
        try:
            rows = (
                session.query(FieldPermission)
                .join(UserRole, UserRole.role_id == FieldPermission.role_id)
                .filter(UserRole.user_id == user_id, FieldPermission.table_name == table_name)
                .all()
            )

            merged: Dict[str, Dict[str, bool]] = {}
            for row in rows:
                flags = merged.setdefault(row.field_name, NoAccess())
                flags["can_read"] = flags["can_read"] or row.can_read
                flags["can_write"] = flags["can_write"] or row.can_write
            return merged
        finally:
            session.close()

    @staticmethod
    def FilterReadable(data: Union[dict, list], permissions: Dict[str, Dict[str, bool]]) -> Union[dict, list]:
        """
        Remove unreadable fields from one record or a list of records

        Args:
            data: Record dict or list of record dicts
            permissions: field_name -> {can_read, can_write}

        Returns:
            Filtered copy of data
        """
        if isinstance(data, list):
            return [FieldPermissionOverlay.FilterReadable(item, permissions) for item in data]
        if not isinstance(data, dict):
            return {}

        return {
            field: value for field, value in data.items()
            if field in SYSTEM_FIELDS or permissions.get(field, NoAccess())["can_read"]
        }

    @staticmethod
    def DeniedWriteFields(fields: Iterable[str], permissions: Dict[str, Dict[str, bool]]) -> List[str]:
        """
        Submitted fields the caller may not write

        Args:
            fields: Field names present in the request body
            permissions: field_name -> {can_read, can_write}

        Returns:
            list: Denied field names in submission order
        """
        denied = []
        for field in fields:
            if field in SYSTEM_FIELDS or field in REQUEST_META_FIELDS:
                continue
            if not permissions.get(field, NoAccess())["can_write"]:
                denied.append(field)
        return denied

    @staticmethod
    def FilterWriteResponse(data: Union[dict, list], submitted_fields: Iterable[str]) -> Union[dict, list]:
        """
        Reduce a write response to the record id and the fields that were submitted

        Args:
            data: Record dict or list of record dicts returned by a write
            submitted_fields: Field names present in the request body

        Returns:
            Filtered copy of data
        """
        allowed = {'id'} | set(submitted_fields)
        if isinstance(data, list):
            return [FieldPermissionOverlay.FilterWriteResponse(item, allowed) for item in data]
        if not isinstance(data, dict):
            return {}
        return {field: value for field, value in data.items() if field in allowed}

    def ListManagedTables(self) -> Dict[str, List[str]]:
        """
        Every live application table with its columns

        RBAC tables are excluded so that only data tables can be configured.

        Returns:
            dict: table_name -> [column names]
        """
        inspector = inspect(self.db_manager.engine)
        tables = {}
        for table_name in sorted(inspector.get_table_names()):
            if table_name in SYSTEM_TABLES:
                continue
            tables[table_name] = [column["name"] for column in inspector.get_columns(table_name)]
        return tables

    def PermissionGrid(self, table_name: str) -> dict:
        """
        Every role against every live column of a table

        Columns without an explicit row are reported with both flags false
        and explicit=False, so missing rules are visible to administrators.

        Raises:
            NotFoundError: If the table is unknown or a system table
        """
        tables = self.ListManagedTables()
        if table_name not in tables:
            raise NotFoundError(f"Table '{table_name}' not found")

        fields = tables[table_name]
        session = self.db_manager.GetSession()
        try:
            roles = session.query(Role).order_by(Role.name).all()
            rows = session.query(FieldPermission).filter(FieldPermission.table_name == table_name).all()
            explicit = {(row.role_id, row.field_name): row for row in rows}

            roles_data = []
            for role in roles:
                role_fields = {}
                for field in fields:
                    row = explicit.get((role.id, field))
                    if row is None:
                        role_fields[field] = {**NoAccess(), "explicit": False}
                    else:
                        role_fields[field] = {"can_read": row.can_read, "can_write": row.can_write, "explicit": True}

                roles_data.append({
                    "role_id": role.id,
                    "name": role.name,
                    "display_name": role.display_name,
                    "fields": role_fields,
                })

            return {"table_name": table_name, "fields": fields, "roles": roles_data}
        finally:
            session.close()

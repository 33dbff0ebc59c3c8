"""
RouteWarden Server - Database Manager

This module manages database connection, initialization, transactions and
configuration lookups.
"""

import logging
import secrets
import string
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
import bcrypt

from exceptions import RouteWardenError, TransactionError
from models.database import (
    Base, Role, Permission, RolePermission, User, UserRole, Setting
)

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "database/routewarden.db"

# Name of the permission that passes every permission check
ADMIN_PERMISSION = "admin"
SUPER_ADMIN_ROLE = "super-admin"

DEFAULT_SETTINGS = {
    "api_prefix": "api",
    "jwt_expiration_hours": "24",
    "permission_cache_ttl_seconds": "300",
    "inactive_permission_retention_days": "90",
    "field_permissions_enabled": "false",
    "route_manifest_path": "",
    "maintenance_lock_timeout_seconds": "300",
}


class DatabaseManager:
    """
    Manages database connection, initialization, and operations
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """
        Initialize database manager

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

        # Ensure database directory exists
        db_dir = Path(db_path).parent
        if db_dir and str(db_dir) != '.':
            db_dir.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(f"sqlite:///{db_path}", echo=False)
        event.listen(self.engine, "connect", self._EnableForeignKeys)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    @staticmethod
    def _EnableForeignKeys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    def InitializeDatabase(self) -> Optional[str]:
        """
        Initialize the database with all tables and default data
        Creates tables if they don't exist, populates default settings,
        roles and the admin permission, and creates a default admin user on first run.

        Returns:
            str: Generated admin password if admin user was created, None otherwise
        """
        # Create all tables
        Base.metadata.create_all(bind=self.engine)

        session = self.SessionLocal()
        admin_password = None

        try:
            # Check if this is first run (no users exist)
            is_first_run = session.query(User).count() == 0

            # Populate default roles and permissions (always, even if not first run)
            self.PopulateDefaultRolesAndPermissions(session)

            if is_first_run:
                super_admin = session.query(Role).filter(Role.name == SUPER_ADMIN_ROLE).first()

                admin_password = self.GenerateRandomPassword()
                admin_user = User(
                    name="Administrator",
                    email="admin@localhost",
                    password_hash=self.HashPassword(admin_password),
                    is_active=True
                )
                session.add(admin_user)
                session.flush()
                session.add(UserRole(user_id=admin_user.id, role_id=super_admin.id))
                logger.info("Created default admin user 'admin@localhost'")

            # Populate default settings if not present
            self.PopulateDefaultSettings(session)

            session.commit()

        except Exception as e:
            session.rollback()
            raise e
        finally:
            session.close()

        return admin_password

    def PopulateDefaultRolesAndPermissions(self, session):
        """
        Populate default roles and the built-in admin permission
        Only adds roles and permissions that don't already exist.
        Route permissions are created by the permission synchronizer.

        Args:
            session: SQLAlchemy session
        """
        admin_permission = session.query(Permission).filter(Permission.name == ADMIN_PERMISSION).first()
        if not admin_permission:
            admin_permission = Permission(
                name=ADMIN_PERMISSION,
                display_name="Administrator",
                description="Full administrative access to all server functions",
                is_api_route=False,
                is_active=True
            )
            session.add(admin_permission)
            session.flush()  # Flush to get the permission id
            logger.info(f"Added default permission: {ADMIN_PERMISSION}")

        default_roles = {
            SUPER_ADMIN_ROLE: {
                "display_name": "Super Administrator",
                "description": "Full access to all resources",
                "grant_admin": True
            },
            "admin": {
                "display_name": "Administrator",
                "description": "Full CRUD access to users",
                "grant_admin": False
            },
            "editor": {
                "display_name": "Editor",
                "description": "Can view and update users, but not create or delete",
                "grant_admin": False
            },
            "viewer": {
                "display_name": "Viewer",
                "description": "Read-only access to users",
                "grant_admin": False
            }
        }

        for role_name, role_config in default_roles.items():
            existing_role = session.query(Role).filter(Role.name == role_name).first()
            if existing_role:
                continue

            role = Role(
                name=role_name,
                display_name=role_config["display_name"],
                description=role_config["description"],
                is_system_role=True
            )
            session.add(role)
            session.flush()  # Flush to get the role id
            logger.info(f"Added default role: {role_name}")

            if role_config["grant_admin"]:
                session.add(RolePermission(role_id=role.id, permission_id=admin_permission.id, granted=True))

    def PopulateDefaultSettings(self, session):
        """
        Populate default settings
        Only adds settings that don't already exist

        Args:
            session: SQLAlchemy session
        """
        for key, value in DEFAULT_SETTINGS.items():
            existing = session.query(Setting).filter(Setting.key == key).first()
            if not existing:
                session.add(Setting(key=key, value=value))
                logger.info(f"Added default setting: {key} = {value}")

    @staticmethod
    def GenerateRandomPassword(length: int = 12) -> str:
        """
        Generate a secure random password

        Args:
            length: Password length (default 12)

        Returns:
            str: Generated password
        """
        alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    @staticmethod
    def HashPassword(password: str) -> str:
        """
        Hash a password using bcrypt
        Truncates to 72 bytes to comply with bcrypt's maximum password length

        Args:
            password: Plain text password

        Returns:
            str: Hashed password (as string)
        """
        password_bytes = password.encode('utf-8')[:72]
        hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
        return hashed.decode('utf-8')

    @staticmethod
    def VerifyPassword(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against a hash

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored password hash (as string)

        Returns:
            bool: True if password matches, False otherwise
        """
        password_bytes = plain_password.encode('utf-8')[:72]
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))

    def GetSession(self):
        """
        Get a new database session

        Returns:
            Session: SQLAlchemy session
        """
        return self.SessionLocal()

    @contextmanager
    def Transaction(self, description: str = "transaction"):
        """
        Run a block of writes atomically

        Commits when the block completes. On any exception the session is rolled
        back; RouteWarden errors are re-raised unchanged, anything else is
        wrapped in a TransactionError.

        Args:
            description: Short label used in log and error messages

        Yields:
            Session: SQLAlchemy session bound to the transaction
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except RouteWardenError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.error(f"Rolled back {description}: {str(e)}")
            raise TransactionError(f"Failed to {description}: {str(e)}", cause=e) from e
        finally:
            session.close()

    # ==================== Settings ====================

    def GetSetting(self, session, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a setting value as stored (string)

        Args:
            session: SQLAlchemy session
            key: Setting key
            default: Value returned when the key is missing (falls back to DEFAULT_SETTINGS)

        Returns:
            str: Setting value
        """
        setting = session.query(Setting).filter(Setting.key == key).first()
        if setting is not None:
            return setting.value
        if default is not None:
            return default
        return DEFAULT_SETTINGS.get(key)

    def GetIntSetting(self, session, key: str) -> int:
        """Get a setting value converted to int"""
        return int(self.GetSetting(session, key))

    def GetBoolSetting(self, session, key: str) -> bool:
        """Get a setting value converted to bool ("true", "1", "yes" are true)"""
        return str(self.GetSetting(session, key)).strip().lower() in ("true", "1", "yes")

    # ==================== Role Utility Functions ====================

    def GetAllRoles(self, session) -> list:
        """
        Get all roles ordered by name

        Args:
            session: SQLAlchemy session

        Returns:
            list: List of Role objects
        """
        return session.query(Role).order_by(Role.name).all()

    def GetUsersWithRole(self, session, role_id: int) -> list:
        """
        Get all users holding a role

        Args:
            session: SQLAlchemy session
            role_id: Role ID

        Returns:
            list: List of User objects
        """
        return (
            session.query(User)
            .join(UserRole, UserRole.user_id == User.id)
            .filter(UserRole.role_id == role_id)
            .all()
        )

"""
Shared fixtures for RouteWarden Server tests

Every test gets its own SQLite database under pytest's tmp_path. The FastAPI
app is exercised through TestClient without running the lifespan; the global
db_manager and permission_catalog are pointed at the test instances instead.
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import database
import maintenance_lock
from auth import CreateAccessToken
from managers.database_manager import DatabaseManager
from models.database import Role, User, UserRole
from models.infrastructure import ManifestEntry
from permission_catalog import PermissionCatalog


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(str(tmp_path / "routewarden-test.db"))
    manager.InitializeDatabase()
    return manager


@pytest.fixture
def catalog(db_manager):
    return PermissionCatalog(db_manager, ttl_seconds=300)


@pytest.fixture(autouse=True)
def release_maintenance_lock():
    maintenance_lock._current_lock = None
    yield
    maintenance_lock._current_lock = None


@pytest.fixture
def app_globals(db_manager, catalog, monkeypatch):
    monkeypatch.setattr(database, "db_manager", db_manager)
    monkeypatch.setattr(database, "permission_catalog", catalog)


@pytest.fixture
def client(app_globals):
    from fastapi.testclient import TestClient
    from server import app

    # No "with" block: the lifespan would replace the test database
    return TestClient(app)


def CreateUser(db_manager, email: str, role_names=(), name: str = "Test User", password: str = "Secret-pass1") -> int:
    """Create an active user holding the named roles and return its id"""
    session = db_manager.GetSession()
    try:
        user = User(name=name, email=email, password_hash=db_manager.HashPassword(password), is_active=True)
        session.add(user)
        session.flush()
        for role_name in role_names:
            role = session.query(Role).filter(Role.name == role_name).one()
            session.add(UserRole(user_id=user.id, role_id=role.id))
        session.commit()
        return user.id
    finally:
        session.close()


def RoleId(db_manager, role_name: str) -> int:
    session = db_manager.GetSession()
    try:
        return session.query(Role).filter(Role.name == role_name).one().id
    finally:
        session.close()


def AuthHeaders(db_manager, user_id: int, email: str) -> dict:
    token = CreateAccessToken({"user_id": user_id, "email": email}, db_manager)
    return {"Authorization": f"Bearer {token}"}


def Entry(uri: str, method: str, resource: str, action: str, permission_name: str, name=None) -> ManifestEntry:
    return ManifestEntry(
        uri=uri, method=method, name=name,
        resource=resource, action=action, permission_name=permission_name
    )


@pytest.fixture
def admin_headers(db_manager):
    session = db_manager.GetSession()
    try:
        admin = session.query(User).filter(User.email == "admin@localhost").one()
        admin_id = admin.id
    finally:
        session.close()
    return AuthHeaders(db_manager, admin_id, "admin@localhost")


@pytest.fixture
def user_entries():
    """Manifest entries of a small users resource"""
    return [
        Entry("api/users", "GET", "users", "index", "user.index", "users.index"),
        Entry("api/users/{user_id}", "GET", "users", "show", "user.show", "users.show"),
        Entry("api/users", "POST", "users", "store", "user.store", "users.store"),
        Entry("api/users/{user_id}", "DELETE", "users", "destroy", "user.destroy", "users.destroy"),
    ]

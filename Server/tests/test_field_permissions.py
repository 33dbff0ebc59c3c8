"""
Tests for the field-level access overlay in RouteWarden Server

Tests deny-by-default, response filtering, write checks and table discovery.
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import CreateUser, RoleId
from exceptions import NotFoundError, ValidationError
from field_permissions import FieldPermissionOverlay


def test_deny_by_default(db_manager):
    overlay = FieldPermissionOverlay(db_manager)
    viewer_id = RoleId(db_manager, "viewer")

    permissions = overlay.PermissionsFor(viewer_id, "users")

    assert {"id", "name", "email", "password_hash"} <= set(permissions)
    assert all(flags == {"can_read": False, "can_write": False} for flags in permissions.values())
    assert permissions["email"] == {"can_read": False, "can_write": False}
    assert overlay.FieldAccess(viewer_id, "users", "email") == {"can_read": False, "can_write": False}
    # Tables that do not exist have no columns to report
    assert overlay.PermissionsFor(viewer_id, "no_such_table") == {}


def test_set_field_permission_upserts(db_manager):
    overlay = FieldPermissionOverlay(db_manager)
    viewer_id = RoleId(db_manager, "viewer")

    assert overlay.SetFieldPermission(viewer_id, "users", "email", True, False) == {"can_read": True, "can_write": False}
    assert overlay.SetFieldPermission(viewer_id, "users", "email", True, True) == {"can_read": True, "can_write": True}

    permissions = overlay.PermissionsFor(viewer_id, "users")
    assert permissions["email"] == {"can_read": True, "can_write": True}
    assert permissions["name"] == {"can_read": False, "can_write": False}


def test_set_field_permission_validation(db_manager):
    overlay = FieldPermissionOverlay(db_manager)

    with pytest.raises(ValidationError) as exc_info:
        overlay.SetFieldPermission(RoleId(db_manager, "viewer"), " ", "", True, True)
    assert set(exc_info.value.errors) == {"table_name", "field_name"}

    with pytest.raises(NotFoundError):
        overlay.SetFieldPermission(9999, "users", "email", True, True)


def test_user_permissions_merge_across_roles(db_manager):
    overlay = FieldPermissionOverlay(db_manager)
    viewer_id = RoleId(db_manager, "viewer")
    editor_id = RoleId(db_manager, "editor")
    user_id = CreateUser(db_manager, "both@example.com", ["viewer", "editor"])

    overlay.SetFieldPermission(viewer_id, "users", "name", True, False)
    overlay.SetFieldPermission(editor_id, "users", "name", False, True)
    overlay.SetFieldPermission(editor_id, "users", "email", True, False)

    assert overlay.PermissionsForUser(user_id, "users") == {
        "name": {"can_read": True, "can_write": True},
        "email": {"can_read": True, "can_write": False},
    }
    # Other tables are unaffected
    assert overlay.PermissionsForUser(user_id, "posts") == {}


def test_filter_readable():
    permissions = {
        "name": {"can_read": True, "can_write": False},
        "email": {"can_read": False, "can_write": True},
    }
    record = {"id": 1, "name": "Ann", "email": "ann@example.com", "is_active": True, "created_at": "x"}

    assert FieldPermissionOverlay.FilterReadable(record, permissions) == {"id": 1, "name": "Ann", "created_at": "x"}
    assert FieldPermissionOverlay.FilterReadable([record, record], permissions) == [
        {"id": 1, "name": "Ann", "created_at": "x"},
    ] * 2
    # Nothing configured: only system fields remain
    assert FieldPermissionOverlay.FilterReadable(record, {}) == {"id": 1, "created_at": "x"}


def test_denied_write_fields():
    permissions = {"name": {"can_read": True, "can_write": True}}

    denied = FieldPermissionOverlay.DeniedWriteFields(
        ["name", "email", "id", "_token", "password"], permissions
    )

    assert denied == ["email", "password"]


def test_filter_write_response():
    record = {"id": 3, "name": "Ann", "email": "ann@example.com", "is_active": True}
    assert FieldPermissionOverlay.FilterWriteResponse(record, ["name"]) == {"id": 3, "name": "Ann"}


def test_list_managed_tables_excludes_rbac_tables(db_manager):
    tables = FieldPermissionOverlay(db_manager).ListManagedTables()

    assert "users" in tables
    assert "email" in tables["users"]
    assert "password_hash" in tables["users"]
    for rbac_table in ("permissions", "roles", "role_permission", "field_permissions", "settings"):
        assert rbac_table not in tables


def test_permission_grid(db_manager):
    overlay = FieldPermissionOverlay(db_manager)
    viewer_id = RoleId(db_manager, "viewer")
    overlay.SetFieldPermission(viewer_id, "users", "email", True, False)

    grid = overlay.PermissionGrid("users")

    assert grid["table_name"] == "users"
    assert "email" in grid["fields"]
    roles = {role["name"]: role for role in grid["roles"]}
    assert set(roles) == {"super-admin", "admin", "editor", "viewer"}
    assert roles["viewer"]["fields"]["email"] == {"can_read": True, "can_write": False, "explicit": True}
    assert roles["viewer"]["fields"]["name"] == {"can_read": False, "can_write": False, "explicit": False}
    assert roles["editor"]["fields"]["email"]["explicit"] is False

    with pytest.raises(NotFoundError):
        overlay.PermissionGrid("permissions")
    with pytest.raises(NotFoundError):
        overlay.PermissionGrid("no_such_table")


def test_deleting_role_removes_field_permissions(db_manager):
    from models.database import FieldPermission, Role

    overlay = FieldPermissionOverlay(db_manager)
    session = db_manager.GetSession()
    try:
        role = Role(name="auditor", display_name="Auditor")
        session.add(role)
        session.commit()
        role_id = role.id
    finally:
        session.close()

    overlay.SetFieldPermission(role_id, "users", "email", True, False)

    session = db_manager.GetSession()
    try:
        session.delete(session.query(Role).filter(Role.id == role_id).one())
        session.commit()
        assert session.query(FieldPermission).filter(FieldPermission.role_id == role_id).count() == 0
    finally:
        session.close()

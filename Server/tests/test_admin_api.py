"""
Tests for the RouteWarden Server admin API

Tests login, permission sync endpoints, the maintenance lock, grant
endpoints, field permission endpoints, roles and settings.
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import AuthHeaders, CreateUser, RoleId
from maintenance_lock import AcquireLock
from models.database import Setting
from models.infrastructure import ManifestEntry
from route_inventory import BuildRouteManifest, SaveRouteManifest
from route_classifier import RouteClassifier

# Routes of the users API: 8 (route, method) pairs, 7 permission names
USER_ROUTE_COUNT = 8


def _SetSetting(db_manager, key, value):
    session = db_manager.GetSession()
    try:
        session.query(Setting).filter(Setting.key == key).one().value = value
        session.commit()
    finally:
        session.close()


def _Sync(client, admin_headers, cleanup=False):
    response = client.post(
        "/admin/api/permissions/sync", params={"cleanup": str(cleanup).lower()}, headers=admin_headers
    )
    assert response.status_code == 200, response.text
    return response.json()


def _PermissionIds(client, admin_headers) -> dict:
    groups = client.get("/admin/api/permissions", headers=admin_headers).json()
    return {p["name"]: p["id"] for group in groups for p in group["permissions"]}


# ==================== Auth and Status ====================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_login(client, db_manager):
    CreateUser(db_manager, "ann@example.com", ["viewer"], password="Secret-pass1")

    response = client.post("/auth/login", json={"email": "ann@example.com", "password": "Secret-pass1"})
    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["expires_in"] == 24 * 3600

    response = client.post("/auth/login", json={"email": "ann@example.com", "password": "wrong"})
    assert response.status_code == 401


def test_admin_endpoints_require_admin(client, db_manager):
    assert client.get("/admin/api/permissions").status_code in (401, 403)

    user_id = CreateUser(db_manager, "viewer@example.com", ["viewer"])
    headers = AuthHeaders(db_manager, user_id, "viewer@example.com")

    response = client.post("/admin/api/permissions/sync", headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Permission denied. Required permission: admin"


def test_invalid_token_is_rejected(client):
    response = client.get("/admin/api/permissions", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


# ==================== Permission Sync ====================

def test_sync_from_running_app(client, admin_headers):
    body = _Sync(client, admin_headers)

    assert body["success"]
    assert body["synced_count"] == USER_ROUTE_COUNT
    assert body["message"] == f"Successfully synced {USER_ROUTE_COUNT} API route permissions"

    groups = client.get("/admin/api/permissions", headers=admin_headers).json()
    assert [group["resource"] for group in groups] == ["users"]
    assert [p["name"] for p in groups[0]["permissions"]] == [
        "user.index", "user.show", "user.store", "user.update", "user.destroy", "user.search", "user.batch"
    ]

    # Running it again is a no-op
    assert _Sync(client, admin_headers)["synced_count"] == USER_ROUTE_COUNT
    assert len(client.get("/admin/api/permissions", headers=admin_headers).json()[0]["permissions"]) == 7


def test_sync_with_cleanup(client, admin_headers):
    body = _Sync(client, admin_headers, cleanup=True)

    assert body["synced_count"] == USER_ROUTE_COUNT
    assert body["inactive_count"] == 0


def test_sync_from_manifest_file(client, db_manager, admin_headers, tmp_path):
    manifest = BuildRouteManifest([], RouteClassifier("api"))
    manifest.routes.append(ManifestEntry(
        uri="api/posts", method="GET", name="posts.index",
        resource="posts", action="index", permission_name="post.index"
    ))
    path = tmp_path / "routes.json"
    SaveRouteManifest(manifest, str(path))
    _SetSetting(db_manager, "route_manifest_path", str(path))

    body = _Sync(client, admin_headers, cleanup=True)

    assert body["synced_count"] == 1
    assert list(_PermissionIds(client, admin_headers)) == ["post.index"]


def test_cleanup_from_empty_manifest_is_rejected(client, db_manager, admin_headers, tmp_path):
    """Test that cleanup with no routes keeps every synced permission active"""
    _Sync(client, admin_headers)
    path = tmp_path / "routes.json"
    SaveRouteManifest(BuildRouteManifest([], RouteClassifier("api")), str(path))
    _SetSetting(db_manager, "route_manifest_path", str(path))

    response = client.post("/admin/api/permissions/sync", params={"cleanup": "true"}, headers=admin_headers)

    assert response.status_code == 422
    assert len(_PermissionIds(client, admin_headers)) == 7
    assert client.get("/admin/api/status/lock", headers=admin_headers).json()["locked"] is False


def test_sync_rejects_tampered_manifest(client, db_manager, admin_headers, tmp_path):
    path = tmp_path / "routes.json"
    SaveRouteManifest(BuildRouteManifest([], RouteClassifier("api")), str(path))
    path.write_text(path.read_text(encoding="utf-8").replace('"routes": []', '"routes": [{"uri": "x"}]'),
                    encoding="utf-8")
    _SetSetting(db_manager, "route_manifest_path", str(path))

    response = client.post("/admin/api/permissions/sync", headers=admin_headers)

    assert response.status_code == 422
    assert response.json()["success"] is False


def test_sync_conflicts_with_running_maintenance(client, admin_headers):
    """Test that a held maintenance lock turns a sync into 409 Conflict"""
    success, _ = AcquireLock("other@example.com", "cleanup", 300)
    assert success

    response = client.post("/admin/api/permissions/sync", headers=admin_headers)

    assert response.status_code == 409
    assert "other@example.com" in response.json()["detail"]

    status = client.get("/admin/api/status/lock", headers=admin_headers).json()
    assert status["locked"]
    assert status["operation"] == "cleanup"


def test_lock_is_released_after_sync(client, admin_headers):
    _Sync(client, admin_headers)
    _Sync(client, admin_headers)

    assert client.get("/admin/api/status/lock", headers=admin_headers).json()["locked"] is False


def test_purge(client, db_manager, admin_headers, tmp_path):
    _Sync(client, admin_headers)

    # Shrink the route table to one route and clean up
    manifest = BuildRouteManifest([], RouteClassifier("api"))
    manifest.routes.append(ManifestEntry(
        uri="api/users", method="GET", name="users.index",
        resource="users", action="index", permission_name="user.index"
    ))
    path = tmp_path / "routes.json"
    SaveRouteManifest(manifest, str(path))
    _SetSetting(db_manager, "route_manifest_path", str(path))
    assert _Sync(client, admin_headers, cleanup=True)["inactive_count"] == 6

    # Default retention keeps them
    response = client.post("/admin/api/permissions/purge", json={}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["purged_count"] == 0

    response = client.post("/admin/api/permissions/purge", json={"retention_days": 0}, headers=admin_headers)
    assert response.json()["purged_count"] == 6

    response = client.post("/admin/api/permissions/purge", json={"retention_days": -1}, headers=admin_headers)
    assert response.status_code == 400


# ==================== Role Permissions ====================

def test_single_grant_and_revoke(client, db_manager, admin_headers):
    _Sync(client, admin_headers)
    index_id = _PermissionIds(client, admin_headers)["user.index"]
    viewer_id = RoleId(db_manager, "viewer")

    response = client.post(
        "/admin/api/role-permissions",
        json={"role_id": viewer_id, "permission_id": index_id, "granted": True},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["message"] == 'Permission "View All Users" granted for role "Viewer"'

    matrix = client.get("/admin/api/role-permissions/matrix", headers=admin_headers).json()
    assert matrix["matrix"][str(viewer_id)] == [index_id]
    assert {role["name"] for role in matrix["roles"]} == {"super-admin", "admin", "editor", "viewer"}

    response = client.post(
        "/admin/api/role-permissions",
        json={"role_id": viewer_id, "permission_id": index_id, "granted": False},
        headers=admin_headers
    )
    assert response.json()["message"] == 'Permission "View All Users" revoked for role "Viewer"'
    matrix = client.get("/admin/api/role-permissions/matrix", headers=admin_headers).json()
    assert matrix["matrix"][str(viewer_id)] == []


def test_grant_unknown_role_is_404(client, admin_headers):
    _Sync(client, admin_headers)
    index_id = _PermissionIds(client, admin_headers)["user.index"]

    response = client.post(
        "/admin/api/role-permissions",
        json={"role_id": 9999, "permission_id": index_id, "granted": True},
        headers=admin_headers
    )

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Role with ID 9999 not found"}


def test_bulk_role_and_bulk_resource(client, db_manager, admin_headers):
    _Sync(client, admin_headers)
    ids = _PermissionIds(client, admin_headers)
    editor_id = RoleId(db_manager, "editor")

    response = client.post(
        "/admin/api/role-permissions/bulk-role",
        json={"role_id": editor_id, "permission_ids": [ids["user.index"], ids["user.show"]], "grant_all": True},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["message"] == 'Granted 2 permissions for role "Editor"'

    response = client.post(
        "/admin/api/role-permissions/bulk-resource",
        json={"resource": "users", "grant_all": True},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Granted all users permissions for 4 roles"
    assert response.json()["roles_updated"] == 4

    response = client.post(
        "/admin/api/role-permissions/bulk-resource",
        json={"resource": "posts", "grant_all": True},
        headers=admin_headers
    )
    assert response.status_code == 404
    assert response.json()["message"] == "No permissions found for resource 'posts'"


def test_export(client, db_manager, admin_headers):
    _Sync(client, admin_headers)
    ids = _PermissionIds(client, admin_headers)
    client.post(
        "/admin/api/role-permissions",
        json={"role_id": RoleId(db_manager, "viewer"), "permission_id": ids["user.show"], "granted": True},
        headers=admin_headers
    )

    body = client.get("/admin/api/role-permissions/export", headers=admin_headers).json()

    assert set(body) == {"exported_at", "roles", "permissions", "groups"}
    assert len(body["permissions"]) == 7
    viewer = next(role for role in body["roles"] if role["name"] == "viewer")
    assert [p["name"] for p in viewer["permissions"]] == ["user.show"]
    assert body["groups"][0]["resource"] == "users"


def test_direct_user_permission(client, db_manager, admin_headers):
    _Sync(client, admin_headers)
    ids = _PermissionIds(client, admin_headers)
    user_id = CreateUser(db_manager, "direct@example.com")

    response = client.post(
        "/admin/api/user-permissions",
        json={"user_id": user_id, "permission_id": ids["user.index"], "granted": True},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["message"] == 'Permission "View All Users" granted for user "direct@example.com"'

    headers = AuthHeaders(db_manager, user_id, "direct@example.com")
    assert client.get("/api/users", headers=headers).status_code == 200


# ==================== Field Permissions ====================

def test_field_permission_endpoints(client, db_manager, admin_headers):
    viewer_id = RoleId(db_manager, "viewer")

    response = client.post(
        "/admin/api/field-permissions",
        json={"role_id": viewer_id, "table_name": "users", "field_name": "email", "can_read": True},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "can_read": True, "can_write": False}

    body = client.get(f"/admin/api/field-permissions/{viewer_id}/users", headers=admin_headers).json()
    assert body["fields"]["email"] == {"can_read": True, "can_write": False}
    assert body["fields"]["name"] == {"can_read": False, "can_write": False}

    tables = client.get("/admin/api/field-permissions/tables", headers=admin_headers).json()["tables"]
    assert "users" in tables
    assert "roles" not in tables

    grid = client.get("/admin/api/field-permissions/grid/users", headers=admin_headers).json()
    viewer = next(role for role in grid["roles"] if role["role_id"] == viewer_id)
    assert viewer["fields"]["email"]["explicit"] is True

    assert client.get("/admin/api/field-permissions/grid/nothing", headers=admin_headers).status_code == 404


def test_field_permission_validation(client, db_manager, admin_headers):
    response = client.post(
        "/admin/api/field-permissions",
        json={"role_id": RoleId(db_manager, "viewer"), "table_name": "", "field_name": "email"},
        headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json()["errors"] == {"table_name": ["The table name field is required."]}


# ==================== Roles ====================

def test_role_crud(client, db_manager, admin_headers):
    _Sync(client, admin_headers)
    ids = _PermissionIds(client, admin_headers)

    response = client.post(
        "/admin/api/roles",
        json={"name": "auditor", "description": "Reads everything", "permission_ids": [ids["user.index"]]},
        headers=admin_headers
    )
    assert response.status_code == 200
    role_id = response.json()["role"]["id"]
    assert response.json()["role"]["display_name"] == "Auditor"

    roles = client.get("/admin/api/roles", headers=admin_headers).json()["roles"]
    auditor = next(role for role in roles if role["id"] == role_id)
    assert auditor["permission_ids"] == [ids["user.index"]]
    assert auditor["user_count"] == 0

    response = client.put(f"/admin/api/roles/{role_id}", json={"display_name": "Auditors"}, headers=admin_headers)
    assert response.json()["role"]["display_name"] == "Auditors"

    assert client.post("/admin/api/roles", json={"name": "auditor"}, headers=admin_headers).status_code == 400
    assert client.post("/admin/api/roles", json={"name": "a b"}, headers=admin_headers).status_code == 400

    response = client.delete(f"/admin/api/roles/{role_id}", headers=admin_headers)
    assert response.status_code == 200
    assert client.delete(f"/admin/api/roles/{role_id}", headers=admin_headers).status_code == 404


def test_system_roles_are_protected(client, db_manager, admin_headers):
    viewer_id = RoleId(db_manager, "viewer")

    assert client.delete(f"/admin/api/roles/{viewer_id}", headers=admin_headers).status_code == 403
    assert client.put(f"/admin/api/roles/{viewer_id}", json={"name": "watcher"}, headers=admin_headers).status_code == 403


def test_assign_user_roles(client, db_manager, admin_headers):
    user_id = CreateUser(db_manager, "roles@example.com", ["viewer"])

    response = client.put(
        f"/admin/api/users/{user_id}/roles",
        json={"role_ids": [RoleId(db_manager, "editor"), RoleId(db_manager, "admin")]},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["roles"] == ["admin", "editor"]

    response = client.put(f"/admin/api/users/{user_id}/roles", json={"role_ids": [9999]}, headers=admin_headers)
    assert response.status_code == 404


# ==================== Settings ====================

def test_settings(client, catalog, admin_headers):
    settings = client.get("/admin/api/settings", headers=admin_headers).json()
    assert settings["api_prefix"] == "api"
    assert settings["permission_cache_ttl_seconds"] == 300
    assert settings["field_permissions_enabled"] is False

    settings.update({"permission_cache_ttl_seconds": 60, "field_permissions_enabled": True})
    response = client.post("/admin/api/settings", json=settings, headers=admin_headers)
    assert response.status_code == 200

    settings = client.get("/admin/api/settings", headers=admin_headers).json()
    assert settings["permission_cache_ttl_seconds"] == 60
    assert settings["field_permissions_enabled"] is True
    assert catalog.cache.ttl_seconds == 60

    settings["jwt_expiration_hours"] = 0
    assert client.post("/admin/api/settings", json=settings, headers=admin_headers).status_code == 400

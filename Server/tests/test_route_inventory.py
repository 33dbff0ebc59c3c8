"""
Tests for the route inventory and route manifest in RouteWarden Server

Tests route enumeration, manifest building, and manifest file validation.
"""

import json
import sys
from pathlib import Path

import pytest
from fastapi import APIRouter, FastAPI

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from exceptions import ValidationError
from models.infrastructure import RouteInfo
from route_classifier import RouteClassifier
from route_inventory import (
    RoutesFromApp, BuildRouteManifest, ManifestFromDict,
    SaveRouteManifest, LoadRouteManifest
)


def _SampleApp() -> FastAPI:
    app = FastAPI()

    @app.get("/api/posts", name="posts.index")
    async def posts_index():
        return []

    @app.post("/api/posts/batch", name="posts.batch")
    async def posts_batch():
        return []

    @app.get("/health")
    async def health():
        return {}

    return app


def test_routes_from_app():
    """Test that only API routes of the app are listed, with their names"""
    routes = RoutesFromApp(_SampleApp())
    by_uri = {route.uri: route for route in routes}

    assert by_uri["/api/posts"].methods == ["GET"]
    assert by_uri["/api/posts"].name == "posts.index"
    assert by_uri["/api/posts/batch"].methods == ["POST"]
    assert "/health" in by_uri
    # OpenAPI and docs routes are not APIRoutes
    assert "/openapi.json" not in by_uri


def test_build_route_manifest_skips_unclassified():
    routes = [
        RouteInfo(uri="/api/users/{user_id}", methods=["GET", "DELETE"], name=None),
        RouteInfo(uri="/auth/login", methods=["POST"], name="login"),
        RouteInfo(uri="/api/media", methods=["GET", "HEAD"], name=None),
    ]
    manifest = BuildRouteManifest(routes, RouteClassifier("api"))

    pairs = [(entry.method, entry.uri, entry.permission_name) for entry in manifest.routes]
    assert pairs == [
        ("DELETE", "api/users/{user_id}", "user.destroy"),
        ("GET", "api/users/{user_id}", "user.show"),
        ("GET", "api/media", "media.index"),
    ]
    assert manifest.version == 1


def test_checksum_ignores_generation_time():
    routes = [RouteInfo(uri="/api/users", methods=["GET"], name="users.index")]
    first = BuildRouteManifest(routes, RouteClassifier("api"))
    second = BuildRouteManifest(routes, RouteClassifier("api"))

    assert first.Checksum() == second.Checksum()


def test_manifest_round_trip_through_file(tmp_path):
    manifest = BuildRouteManifest(RoutesFromApp(_SampleApp()), RouteClassifier("api"))
    path = tmp_path / "build" / "routes.json"

    SaveRouteManifest(manifest, str(path))
    loaded = LoadRouteManifest(str(path))

    assert loaded.routes == manifest.routes
    assert loaded.Checksum() == manifest.Checksum()


def test_tampered_manifest_is_rejected(tmp_path):
    """Test checksum validation on load"""
    manifest = BuildRouteManifest(RoutesFromApp(_SampleApp()), RouteClassifier("api"))
    data = manifest.ToDict()
    data["routes"][0]["permission_name"] = "post.destroy"

    with pytest.raises(ValidationError) as exc_info:
        ManifestFromDict(data)
    assert "checksum" in exc_info.value.errors


def test_unsupported_manifest_version_is_rejected():
    manifest = BuildRouteManifest([], RouteClassifier("api"))
    data = manifest.ToDict()
    data["version"] = 2

    with pytest.raises(ValidationError) as exc_info:
        ManifestFromDict(data)
    assert "version" in exc_info.value.errors


def test_malformed_manifest_is_rejected():
    manifest = BuildRouteManifest([], RouteClassifier("api"))
    data = manifest.ToDict()
    data["routes"] = [{"uri": "api/users"}]

    with pytest.raises(ValidationError):
        ManifestFromDict(data)


def test_missing_or_invalid_manifest_file(tmp_path):
    with pytest.raises(ValidationError):
        LoadRouteManifest(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValidationError):
        LoadRouteManifest(str(broken))

    # Valid JSON written by hand with a wrong checksum
    forged = tmp_path / "forged.json"
    forged.write_text(json.dumps({
        "version": 1,
        "generated_at": "2025-01-01T00:00:00+00:00",
        "checksum": "0" * 64,
        "routes": []
    }), encoding="utf-8")
    with pytest.raises(ValidationError):
        LoadRouteManifest(str(forged))


def test_routes_from_server_app_include_router_endpoints():
    """Test that endpoints added through include_router are enumerated"""
    from server import app

    pairs = {
        (method, route.uri)
        for route in RoutesFromApp(app)
        for method in route.methods
        if route.uri.startswith("/api/users")
    }

    assert pairs == {
        ("GET", "/api/users"),
        ("GET", "/api/users/search"),
        ("POST", "/api/users/batch"),
        ("DELETE", "/api/users/batch"),
        ("GET", "/api/users/{user_id}"),
        ("POST", "/api/users"),
        ("PUT", "/api/users/{user_id}"),
        ("DELETE", "/api/users/{user_id}"),
    }

    uris = {route.uri for route in RoutesFromApp(app)}
    assert "/admin/api/permissions/sync" in uris
    assert "/auth/login" in uris


def test_routes_from_nested_routers():
    app = FastAPI()
    outer = APIRouter()
    inner = APIRouter()

    @inner.get("/api/tags", name="tags.index")
    async def tags_index():
        return []

    outer.include_router(inner)
    app.include_router(outer)

    routes = RoutesFromApp(app)

    assert [(route.uri, route.name) for route in routes] == [("/api/tags", "tags.index")]
    manifest = BuildRouteManifest(routes, RouteClassifier("api"))
    assert [entry.permission_name for entry in manifest.routes] == ["tag.index"]

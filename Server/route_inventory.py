"""
RouteWarden Server - Route Inventory

This module enumerates the endpoints registered on the FastAPI application and
freezes them into a versioned route manifest. The permission synchronizer only
ever consumes a manifest, never the live route table.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Tuple

from fastapi import FastAPI
from fastapi.routing import APIRoute

from exceptions import ValidationError
from models.infrastructure import RouteInfo, ManifestEntry, RouteManifest, MANIFEST_VERSION
from route_classifier import RouteClassifier

logger = logging.getLogger(__name__)


def RoutesFromApp(app: FastAPI) -> List[RouteInfo]:
    """
    Enumerate the HTTP endpoints of a FastAPI application

    Routers added with include_router are walked recursively (newer FastAPI
    releases keep them as wrapper entries in app.routes instead of copying
    their routes). Mounts, websocket routes and other non-API routes are ignored.

    Args:
        app: FastAPI application

    Returns:
        List of RouteInfo (path template, methods, route name)
    """
    routes = [
        RouteInfo(uri=path, methods=sorted(route.methods), name=route.name)
        for path, route in _WalkApiRoutes(app.routes)
    ]
    logger.debug(f"Route inventory found {len(routes)} API routes")
    return routes


def _WalkApiRoutes(routes, prefix: str = "") -> Iterator[Tuple[str, APIRoute]]:
    for route in routes:
        if isinstance(route, APIRoute):
            path = route.path
            if prefix and not path.startswith(prefix):
                path = prefix + path
            yield path, route
            continue

        included_router = getattr(route, "original_router", None)
        if included_router is not None:
            nested_prefix = prefix + (getattr(route, "prefix", "") or "")
            yield from _WalkApiRoutes(included_router.routes, nested_prefix)


def BuildRouteManifest(routes: Iterable[RouteInfo], classifier: RouteClassifier) -> RouteManifest:
    """
    Classify every (route, method) pair and keep the ones that map to a permission

    Args:
        routes: Endpoints from the route inventory
        classifier: Route classifier configured with the API prefix

    Returns:
        RouteManifest with one entry per classified (route, method)
    """
    entries = []
    skipped = 0

    for route in routes:
        for method in sorted(m.upper() for m in route.methods):
            classified = classifier.Classify(route.uri, method, route.name)
            if classified is None:
                skipped += 1
                continue

            resource, action = classified
            entries.append(ManifestEntry(
                uri=route.uri.lstrip('/'),
                method=method,
                name=route.name,
                resource=resource,
                action=action,
                permission_name=classifier.PermissionName(resource, action)
            ))

    logger.info(f"Built route manifest: {len(entries)} classified, {skipped} skipped")

    return RouteManifest(generated_at=datetime.now(timezone.utc), routes=entries)


def ManifestFromDict(data: dict) -> RouteManifest:
    """
    Rebuild a manifest from its JSON form, validating version and checksum

    Args:
        data: Parsed manifest JSON

    Returns:
        RouteManifest

    Raises:
        ValidationError: If the manifest is malformed, of another version, or tampered with
    """
    version = data.get("version")
    if version != MANIFEST_VERSION:
        raise ValidationError(
            f"Unsupported route manifest version: {version}",
            {"version": [f"expected {MANIFEST_VERSION}"]}
        )

    try:
        entries = [
            ManifestEntry(
                uri=item["uri"],
                method=item["method"],
                name=item.get("name"),
                resource=item["resource"],
                action=item["action"],
                permission_name=item["permission_name"]
            )
            for item in data.get("routes", [])
        ]
        generated_at = datetime.fromisoformat(data["generated_at"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed route manifest: {str(e)}", {"routes": [str(e)]})

    manifest = RouteManifest(generated_at=generated_at, routes=entries, version=version)

    if data.get("checksum") != manifest.Checksum():
        raise ValidationError("Route manifest checksum mismatch", {"checksum": ["does not match routes"]})

    return manifest


def SaveRouteManifest(manifest: RouteManifest, path: str) -> None:
    """
    Write a manifest to disk as JSON

    Args:
        manifest: Manifest to write
        path: Destination file path
    """
    manifest_path = Path(path)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    manifest_path.write_text(json.dumps(manifest.ToDict(), indent=2), encoding="utf-8")
    logger.info(f"Wrote route manifest with {len(manifest.routes)} routes to {manifest_path}")


def LoadRouteManifest(path: str) -> RouteManifest:
    """
    Read a manifest written by SaveRouteManifest

    Args:
        path: Manifest file path

    Returns:
        RouteManifest

    Raises:
        ValidationError: If the file is missing or invalid
    """
    manifest_path = Path(path)
    if not manifest_path.is_file():
        raise ValidationError(f"Route manifest not found: {path}", {"route_manifest_path": ["file not found"]})

    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Route manifest is not valid JSON: {str(e)}", {"route_manifest_path": [str(e)]})

    return ManifestFromDict(data)

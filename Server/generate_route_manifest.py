"""
RouteWarden Server - Route Manifest Generator

Builds the versioned route manifest from the routes registered on the server
application and writes it to disk. Point the route_manifest_path setting at
the written file to make permission sync read it instead of the live app.

Usage:
    python generate_route_manifest.py
    python generate_route_manifest.py --output build/routes.json --api-prefix api
"""

import argparse
import sys

from route_classifier import RouteClassifier
from route_inventory import RoutesFromApp, BuildRouteManifest, SaveRouteManifest
from exceptions import RouteWardenError

DEFAULT_OUTPUT = "database/route_manifest.json"


def generate_route_manifest(output_path: str, api_prefix: str) -> int:
    """
    Write the manifest of the server application's routes

    Args:
        output_path: Destination JSON file
        api_prefix: First URI segment of API routes

    Returns:
        int: Number of classified routes written
    """
    # Imported here so that --help works without configuring logging
    from server import app

    manifest = BuildRouteManifest(RoutesFromApp(app), RouteClassifier(api_prefix))
    SaveRouteManifest(manifest, output_path)
    return len(manifest.routes)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate the RouteWarden route manifest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "--output",
        type=str,
        default=DEFAULT_OUTPUT,
        help=f"Manifest file to write (default: {DEFAULT_OUTPUT})"
    )

    parser.add_argument(
        "--api-prefix",
        type=str,
        default="api",
        help="First URI segment of API routes (default: api)"
    )

    args = parser.parse_args()

    print("RouteWarden Server - Route Manifest Generator")
    print("=" * 50)

    try:
        count = generate_route_manifest(args.output, args.api_prefix)
    except (RouteWardenError, OSError) as e:
        print(f"\nERROR: Failed to generate route manifest: {e}")
        sys.exit(1)

    print(f"Wrote {count} classified routes to {args.output}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
resolve_location.py — Run the location + heatmap pipeline once from the shell.

Usage (from the repo root):
    python scripts/resolve_location.py --lat 51.5074 --lng -0.1278
    python scripts/resolve_location.py --lat 51.5074 --lng -0.1278 --geocode
    python scripts/resolve_location.py --deny-permission
    python scripts/resolve_location.py --config-url http://localhost:8000

What it does
────────────
  1. Root bootstrap: resolve the location (fixed position instead of GPS),
     then refresh the feeds configured in .env.
  2. Opens one heatmap session, which fetches the map configuration and
     aggregates the feeds.
  3. Prints the shared location, the config in use and the point count.

Without --lat/--lng the fake device never gets a fix, which exercises the
"Failed to get location" path.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv(ROOT / ".env")

from riskmap.models.location import Coordinate  # noqa: E402
from riskmap.services.device import FixedLocationProvider, NominatimGeocoder  # noqa: E402
from riskmap.services.heatmap_session import HeatmapSession, initialize_app  # noqa: E402
from riskmap.services.location_resolver import LocationResolver  # noqa: E402
from riskmap.services.location_store import location_store  # noqa: E402
from riskmap.services.map_config import MapConfigClient, MapConfigProvider  # noqa: E402


async def run(args: argparse.Namespace) -> dict:
    coordinate = None
    if args.lat is not None and args.lng is not None:
        coordinate = Coordinate(latitude=args.lat, longitude=args.lng)

    provider = FixedLocationProvider(
        coordinate,
        permission="denied" if args.deny_permission else "granted",
        geocoder=NominatimGeocoder() if args.geocode else None,
    )
    client = MapConfigClient(base_url=args.config_url)
    resolver = LocationResolver(provider, location_store, client)

    startup = await initialize_app(resolver)

    session = HeatmapSession(resolver, MapConfigProvider(location_store, client))
    await session.open(refresh_feeds=False)
    try:
        location = location_store.location
        return {
            "location": location.model_dump(by_alias=True),
            "display_name": location.display_name,
            "startup_error": startup.error.value if startup.error else None,
            "advisory": session.advisory,
            "config": session.config.model_dump(by_alias=True, exclude_none=True),
            "points": len(session.points or []),
            "risk_summary": session.risk_summary,
        }
    finally:
        await session.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Resolve location and build the risk heatmap once")
    parser.add_argument("--lat", type=float, help="Device latitude")
    parser.add_argument("--lng", type=float, help="Device longitude")
    parser.add_argument(
        "--deny-permission",
        action="store_true",
        help="Simulate the user refusing location access",
    )
    parser.add_argument(
        "--geocode",
        action="store_true",
        help="Reverse geocode with Nominatim (network)",
    )
    parser.add_argument("--config-url", default=None, help="Map config service base URL")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be given together")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    print(json.dumps(asyncio.run(run(args)), indent=2))

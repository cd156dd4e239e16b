"""
map_config.py — The map configuration service.

Routes:
  GET /map/config                 — default region + tile template
  GET /map/config?lat=..&lng=..   — region centred on the point, plus a
                                    reverse-geocoded `locationName`

This is the endpoint MapConfigClient talks to. Response shape:
  {
    "tileServer": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    "initialRegion": {"latitude": 51.5074, "longitude": -0.1278,
                      "latitudeDelta": 0.0922, "longitudeDelta": 0.0421},
    "locationName": "Westminster, London"     ← omitted when geocoding fails
  }

TESTING YOUR CHANGES
─────────────────────
  pytest tests/test_map_config_routes.py -v
  curl "http://localhost:8000/map/config?lat=51.5074&lng=-0.1278"
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from riskmap.core.config import settings
from riskmap.core.errors import GeocodingError
from riskmap.core.rate_limit import limiter
from riskmap.models.location import Coordinate, MapConfiguration
from riskmap.services.device import NominatimGeocoder
from riskmap.services.location_resolver import compose_place_name
from riskmap.services.map_config import fallback_configuration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/map", tags=["map"])

_geocoder = NominatimGeocoder()


def get_geocoder() -> NominatimGeocoder:
    """FastAPI dependency — overridden in tests with a fake geocoder."""
    return _geocoder


def query_coordinate(
    lat: Optional[float] = Query(default=None, ge=-90, le=90, description="Latitude"),
    lng: Optional[float] = Query(default=None, ge=-180, le=180, description="Longitude"),
) -> Optional[Coordinate]:
    """Both or neither: a lone lat or lng is rejected with 422."""
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise HTTPException(status_code=422, detail="lat and lng must be supplied together")
    return Coordinate(latitude=lat, longitude=lng)


async def build_configuration(
    coordinate: Optional[Coordinate], geocoder: NominatimGeocoder
) -> MapConfiguration:
    """Server-side configuration: configured tiles, region on the point, place name."""
    config = fallback_configuration(coordinate)
    if coordinate is None:
        return config

    try:
        name = compose_place_name(await geocoder.reverse(coordinate))
    except GeocodingError as exc:
        # Non-fatal — the client keeps its own naming fallbacks.
        logger.warning("Config name lookup failed: %s", exc)
        return config

    if name is None:
        return config
    return config.model_copy(update={"location_name": name})


@router.get("/config", response_model=MapConfiguration, response_model_exclude_none=True)
@limiter.limit(settings.config_rate_limit)
async def get_map_config(
    request: Request,
    coordinate: Optional[Coordinate] = Depends(query_coordinate),
    geocoder: NominatimGeocoder = Depends(get_geocoder),
):
    """Return tile server + initial region (+ location name when lat/lng given)."""
    return await build_configuration(coordinate, geocoder)

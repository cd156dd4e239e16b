"""
device.py — Device location capability.

The resolver only talks to the LocationProvider protocol below, mirroring
what a phone exposes: a permission prompt, a current-position query and a
reverse geocoder. Two concrete pieces ship here:

  • NominatimGeocoder     — reverse geocoding over OpenStreetMap Nominatim.
  • FixedLocationProvider — a provider with a known position (CLI runs,
                            server-side use, local dev without GPS).

Tests substitute AsyncMock objects with the same three coroutines.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from riskmap.core.config import settings
from riskmap.core.errors import GeocodingError, PositionUnavailableError
from riskmap.models.location import Address, Coordinate, PermissionStatus

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def request_permission(self) -> PermissionStatus:
        """Ask for foreground location access."""
        ...

    async def current_position(
        self, max_age_seconds: float, timeout_seconds: float
    ) -> Coordinate:
        """High-accuracy fix; may return a cached fix up to max_age_seconds old."""
        ...

    async def reverse_geocode(self, coordinate: Coordinate) -> list[Address]:
        """Candidate addresses for the coordinate, best first. May be empty."""
        ...


class NominatimGeocoder:
    """
    Thin async wrapper around the Nominatim /reverse endpoint.

    Returns at most one Address. An empty list means Nominatim answered but
    had nothing for this point (open ocean, etc.); transport failures raise
    GeocodingError so the caller can fall through to its next naming source.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self.url = url or settings.geocoder_url
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.timeout = timeout if timeout is not None else settings.geocode_timeout_seconds

    async def reverse(self, coordinate: Coordinate) -> list[Address]:
        params = {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "format": "json",
            "addressdetails": 1,
        }
        headers = {"User-Agent": self.user_agent}
        try:
            if self._client is not None:
                response = await self._client.get(
                    self.url, params=params, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GeocodingError(
                f"Geocoder returned HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodingError(f"Geocoder request failed: {exc}") from exc

        if not isinstance(data, dict) or "error" in data:
            return []
        return [parse_nominatim_address(data)]


def parse_nominatim_address(data: dict[str, Any]) -> Address:
    """Map a Nominatim reverse result onto our address components."""
    address = data.get("address") or {}

    city = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("hamlet")
        or address.get("municipality")
    )
    district = (
        address.get("city_district")
        or address.get("suburb")
        or address.get("neighbourhood")
        or address.get("county")
    )

    return Address(
        name=data.get("name") or None,
        street=address.get("road"),
        district=district,
        city=city,
        region=address.get("state"),
    )


class FixedLocationProvider:
    """
    LocationProvider with a preset position.

    `coordinate=None` behaves like a device that cannot get a fix.
    Reverse geocoding is delegated to `geocoder` when one is given.
    """

    def __init__(
        self,
        coordinate: Coordinate | None,
        permission: PermissionStatus = "granted",
        geocoder: NominatimGeocoder | None = None,
    ) -> None:
        self.coordinate = coordinate
        self.permission = permission
        self.geocoder = geocoder

    async def request_permission(self) -> PermissionStatus:
        return self.permission

    async def current_position(
        self, max_age_seconds: float, timeout_seconds: float
    ) -> Coordinate:
        if self.coordinate is None:
            raise PositionUnavailableError("No position fix available")
        return self.coordinate

    async def reverse_geocode(self, coordinate: Coordinate) -> list[Address]:
        if self.geocoder is None:
            return []
        return await self.geocoder.reverse(coordinate)

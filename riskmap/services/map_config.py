"""
map_config.py — Map tile / region configuration.

Two layers:

  MapConfigClient    Raw HTTP call to GET {base}/map/config[?lat=&lng=].
                     Raises ConfigFetchError / MalformedResponseError.
                     Also used directly by LocationResolver for its
                     "name only" fallback.

  MapConfigProvider  What screens call. Caches by coordinate pair, never
                     raises, and substitutes a deterministic public-tiles
                     configuration whenever the service can't be used.

Fallback configuration:
    tileServer     https://tile.openstreetmap.org/{z}/{x}/{y}.png
    initialRegion  requested coordinate (or NYC 40.7128,-74.0060)
                   latitudeDelta 0.0922 / longitudeDelta 0.0421 (~10 km)

Results are cached per coordinate pair, fallbacks included. The
no-coordinate fallback is not cached: the default map retries the service
on every call.

A `locationName` is only written to the store if the store still holds the
requested coordinate when the response arrives.
"""

import asyncio
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from riskmap.core.config import settings
from riskmap.core.errors import ConfigFetchError, MalformedResponseError, RiskMapError
from riskmap.models.location import Coordinate, MapConfiguration, MapRegion
from riskmap.services.location_store import LocationStore, location_store

logger = logging.getLogger(__name__)

CacheKey = Optional[tuple[float, float]]


def fallback_configuration(coordinate: Coordinate | None = None) -> MapConfiguration:
    """Public tiles centred on `coordinate`, or on the default city."""
    if coordinate is not None:
        latitude, longitude = coordinate.latitude, coordinate.longitude
    else:
        latitude, longitude = settings.default_latitude, settings.default_longitude

    return MapConfiguration(
        tile_server=settings.default_tile_server,
        initial_region=MapRegion(
            latitude=latitude,
            longitude=longitude,
            latitude_delta=settings.default_latitude_delta,
            longitude_delta=settings.default_longitude_delta,
        ),
    )


class MapConfigClient:
    """Async client for the map configuration endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.map_config_base_url).rstrip("/")
        self._client = client

    async def fetch(
        self, coordinate: Coordinate | None, timeout: float
    ) -> MapConfiguration:
        params = {}
        if coordinate is not None:
            params = {"lat": coordinate.latitude, "lng": coordinate.longitude}

        try:
            # httpx timeouts are per phase; wait_for bounds the whole exchange.
            response = await asyncio.wait_for(self._get(params, timeout), timeout)
            response.raise_for_status()
        except asyncio.TimeoutError as exc:
            raise ConfigFetchError(f"Map config request timed out after {timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise ConfigFetchError(
                f"Map config service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ConfigFetchError(f"Map config request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Map config response is not JSON") from exc

        try:
            return MapConfiguration.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Map config response has unexpected shape: {exc.error_count()} error(s)"
            ) from exc

    async def _get(self, params: dict, timeout: float) -> httpx.Response:
        url = f"{self.base_url}/map/config"
        if self._client is not None:
            return await self._client.get(url, params=params, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.get(url, params=params)


class MapConfigProvider:
    """
    Cached, failure-proof access to the map configuration.

    Usage:
        provider = MapConfigProvider()
        config = await provider.get_config(Coordinate(latitude=51.5, longitude=-0.12))
        config.tile_server            # always set
        config.initial_region.center  # always set
    """

    def __init__(
        self,
        store: LocationStore | None = None,
        client: MapConfigClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.store = store if store is not None else location_store
        self.client = client or MapConfigClient()
        self.timeout = timeout if timeout is not None else settings.config_timeout_seconds
        self._cache: dict[CacheKey, MapConfiguration] = {}

    def cached(self, coordinate: Coordinate | None = None) -> MapConfiguration | None:
        return self._cache.get(_cache_key(coordinate))

    async def get_config(self, coordinate: Coordinate | None = None) -> MapConfiguration:
        key = _cache_key(coordinate)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Map config cache HIT for %s", key)
            return cached

        try:
            config = await self.client.fetch(coordinate, self.timeout)
        except RiskMapError as exc:
            logger.warning(
                "Map config unavailable (%s): %s — using fallback tiles", exc.kind.value, exc
            )
            config = fallback_configuration(coordinate)
            if coordinate is not None:
                self._cache[key] = config
        else:
            self._cache[key] = config
            logger.info("Map config fetched for %s (tiles: %s)", key, config.tile_server)

        if coordinate is not None and config.location_name:
            self.store.publish_configured_name(coordinate, config.location_name)

        return config

    def clear(self) -> None:
        self._cache.clear()


def _cache_key(coordinate: Coordinate | None) -> CacheKey:
    return coordinate.as_pair() if coordinate is not None else None

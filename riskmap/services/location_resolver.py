"""
location_resolver.py — Best-effort device coordinate + human-readable place name.

The resolver walks two ordered chains of fallible steps. Each step returns a
StepOutcome instead of raising:

  SATISFIED  the chain's goal is met, skip the remaining steps
  CONTINUE   this step couldn't help, try the next one
  ABORT      stop the chain (error recorded on the pass, or pass went stale)

Acquisition chain (goal: a coordinate)
  1. reuse a coordinate already in the LocationStore
  2. request foreground permission          → PermissionDenied on refusal
  3. current position, bounded wait + age   → LocationUnavailable on timeout/error
     (coordinate is published to the store immediately)

Naming chain (goal: a display name; failure here is never fatal)
  4. reverse geocode and compose "name, street, district|city"
  5. ask the map configuration service for `locationName`

Every write to the store carries the pass's generation, so results from a
pass that was overtaken are dropped instead of applied.

USAGE
─────
    resolver = LocationResolver(provider, location_store, MapConfigClient())
    result = await resolver.resolve(position_timeout=3.0)
    if result.advisory:
        show_banner(result.advisory)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from riskmap.core.config import settings
from riskmap.core.errors import ADVISORY_MESSAGES, LocationError, RiskMapError
from riskmap.models.location import Address, Coordinate, NamedLocation
from riskmap.services.device import LocationProvider
from riskmap.services.location_store import LocationStore, location_store
from riskmap.services.map_config import MapConfigClient

logger = logging.getLogger(__name__)


class StepOutcome(Enum):
    SATISFIED = "satisfied"
    CONTINUE = "continue"
    ABORT = "abort"


@dataclass
class ResolutionPass:
    """Mutable scratch state for one resolve() call."""

    generation: int
    position_timeout: float
    coordinate: Optional[Coordinate] = None
    name: Optional[str] = None
    error: Optional[LocationError] = None
    reused_coordinate: bool = False


Step = Callable[[ResolutionPass], Awaitable[StepOutcome]]


@dataclass(frozen=True)
class ResolveResult:
    location: NamedLocation
    error: Optional[LocationError] = None
    # True when a newer pass (or a closed screen) superseded this one;
    # nothing from this pass was applied after that point.
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.stale

    @property
    def advisory(self) -> Optional[str]:
        if self.error is None:
            return None
        return ADVISORY_MESSAGES.get(self.error)


def compose_place_name(addresses: list[Address]) -> Optional[str]:
    """
    Build a display name from the best reverse-geocoding candidate.

    "name, street, district" (district falls back to city), skipping empty
    parts; if none of those exist, the city or region alone.
    """
    if not addresses:
        return None
    address = addresses[0]

    parts = [
        _clean(address.name),
        _clean(address.street),
        _clean(address.district) or _clean(address.city),
    ]
    name = ", ".join(p for p in parts if p)
    if name:
        return name
    return _clean(address.city) or _clean(address.region)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class LocationResolver:
    def __init__(
        self,
        provider: LocationProvider,
        store: LocationStore | None = None,
        config_client: MapConfigClient | None = None,
        *,
        max_age_seconds: float | None = None,
        geocode_timeout: float | None = None,
        name_lookup_timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self.store = store if store is not None else location_store
        self.config_client = config_client
        self.max_age_seconds = (
            max_age_seconds if max_age_seconds is not None else settings.position_max_age_seconds
        )
        self.geocode_timeout = (
            geocode_timeout if geocode_timeout is not None else settings.geocode_timeout_seconds
        )
        self.name_lookup_timeout = (
            name_lookup_timeout
            if name_lookup_timeout is not None
            else settings.name_lookup_timeout_seconds
        )

        self._acquisition_steps: list[Step] = [
            self._reuse_stored_coordinate,
            self._request_permission,
            self._acquire_position,
        ]
        self._naming_steps: list[Step] = [
            self._name_from_geocoder,
            self._name_from_config_service,
        ]

    async def resolve(self, position_timeout: float | None = None) -> ResolveResult:
        """Run one resolution pass. Never raises."""
        current = ResolutionPass(
            generation=self.store.begin_generation(),
            position_timeout=(
                position_timeout
                if position_timeout is not None
                else settings.screen_position_timeout_seconds
            ),
        )

        await self._run_chain(self._acquisition_steps, current)
        if current.error is not None:
            logger.warning("Location acquisition failed: %s", current.error.value)
            return self._result(current)
        if current.coordinate is None or not self.store.is_current(current.generation):
            return self._result(current)

        if current.reused_coordinate and self.store.location.name:
            logger.debug("Location already resolved; skipping lookups")
            return self._result(current)

        outcome = await self._run_chain(self._naming_steps, current)
        if outcome is StepOutcome.CONTINUE:
            logger.info(
                "No place name for (%.4f, %.4f); keeping coordinate only",
                current.coordinate.latitude, current.coordinate.longitude,
            )
        return self._result(current)

    async def _run_chain(self, steps: list[Step], current: ResolutionPass) -> StepOutcome:
        for step in steps:
            if not self.store.is_current(current.generation):
                return StepOutcome.ABORT
            outcome = await step(current)
            if outcome is not StepOutcome.CONTINUE:
                return outcome
        return StepOutcome.CONTINUE

    def _result(self, current: ResolutionPass) -> ResolveResult:
        return ResolveResult(
            location=self.store.location,
            error=current.error,
            stale=not self.store.is_current(current.generation),
        )

    # ── Acquisition steps ────────────────────────────────────────────────────

    async def _reuse_stored_coordinate(self, current: ResolutionPass) -> StepOutcome:
        coordinate = self.store.coordinate
        if coordinate is None:
            return StepOutcome.CONTINUE
        current.coordinate = coordinate
        current.reused_coordinate = True
        return StepOutcome.SATISFIED

    async def _request_permission(self, current: ResolutionPass) -> StepOutcome:
        status = await self.provider.request_permission()
        if status != "granted":
            current.error = LocationError.PERMISSION_DENIED
            return StepOutcome.ABORT
        return StepOutcome.CONTINUE

    async def _acquire_position(self, current: ResolutionPass) -> StepOutcome:
        timeout = current.position_timeout
        try:
            coordinate = await asyncio.wait_for(
                self.provider.current_position(self.max_age_seconds, timeout), timeout
            )
        except asyncio.TimeoutError:
            logger.warning("No position fix within %.1fs", timeout)
            current.error = LocationError.LOCATION_UNAVAILABLE
            return StepOutcome.ABORT
        except RiskMapError as exc:
            logger.warning("Device position error: %s", exc)
            current.error = LocationError.LOCATION_UNAVAILABLE
            return StepOutcome.ABORT

        current.coordinate = coordinate
        if not self.store.publish_coordinate(coordinate, current.generation):
            return StepOutcome.ABORT
        logger.info("Location acquired: (%.4f, %.4f)", coordinate.latitude, coordinate.longitude)
        return StepOutcome.SATISFIED

    # ── Naming steps ─────────────────────────────────────────────────────────

    async def _name_from_geocoder(self, current: ResolutionPass) -> StepOutcome:
        try:
            addresses = await asyncio.wait_for(
                self.provider.reverse_geocode(current.coordinate), self.geocode_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("%s: reverse geocoding timed out", LocationError.GEOCODING_FAILED.value)
            return StepOutcome.CONTINUE
        except RiskMapError as exc:
            logger.warning("%s: %s", LocationError.GEOCODING_FAILED.value, exc)
            return StepOutcome.CONTINUE

        name = compose_place_name(addresses)
        if not name:
            return StepOutcome.CONTINUE
        return self._publish_name(current, name, "geocoding")

    async def _name_from_config_service(self, current: ResolutionPass) -> StepOutcome:
        if self.config_client is None:
            return StepOutcome.CONTINUE
        try:
            config = await self.config_client.fetch(current.coordinate, self.name_lookup_timeout)
        except RiskMapError as exc:
            logger.warning("Could not fetch location name from config service (%s): %s",
                           exc.kind.value, exc)
            return StepOutcome.CONTINUE

        if not config.location_name:
            return StepOutcome.CONTINUE
        return self._publish_name(current, config.location_name, "config service")

    def _publish_name(self, current: ResolutionPass, name: str, source: str) -> StepOutcome:
        if not self.store.publish_name(name, current.generation):
            return StepOutcome.ABORT
        current.name = name
        logger.info("Location name from %s: %s", source, name)
        return StepOutcome.SATISFIED

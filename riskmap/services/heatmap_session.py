"""
heatmap_session.py — Wiring between location, map configuration and the heatmap.

HOW THE DATA FLOWS
──────────────────
1. initialize_app() runs once at process start (the root initializer):
   resolve the location with the short root timeout, then refresh feeds.
2. Each map screen opens a HeatmapSession:
     • reuses the stored coordinate if there is one, otherwise runs its own
       resolution pass (longer screen timeout);
     • fetches the map configuration for that coordinate, or the
       no-coordinate fallback when location failed;
     • refreshes both feeds in parallel with the above.
3. Whenever a feed changes, the configuration changes, or the stored
   coordinate moves, the session re-runs aggregate() and replaces its
   point list wholesale.
4. close() drops the points, unsubscribes, and supersedes any resolution
   pass the session started so its late result is discarded.

`session.points` is None until the first aggregation has run, and a list
(possibly empty) afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Iterable, Optional

from riskmap.core.config import settings
from riskmap.models.heatmap import CommunityReport, DisasterSignal, RiskPoint
from riskmap.models.location import Coordinate, MapConfiguration
from riskmap.services.feeds import FeedStore, report_feed, signal_feed
from riskmap.services.location_resolver import LocationResolver, ResolveResult
from riskmap.services.location_store import LocationStore, LocationUpdate
from riskmap.services.map_config import MapConfigProvider
from riskmap.services.risk_aggregator import aggregate, risk_summary

logger = logging.getLogger(__name__)

PointsListener = Callable[[list[RiskPoint]], None]


async def initialize_app(
    resolver: LocationResolver,
    feeds: Iterable[FeedStore] = (signal_feed, report_feed),
    position_timeout: float | None = None,
) -> ResolveResult:
    """Root-level startup: resolve the location, then refresh both feeds."""
    result = await resolver.resolve(
        position_timeout
        if position_timeout is not None
        else settings.root_position_timeout_seconds
    )
    if result.error is not None:
        logger.info("Startup location unavailable (%s)", result.error.value)
    elif not result.stale:
        logger.info("Location initialized at startup: %s", result.location.display_name)

    await asyncio.gather(*(feed.refresh() for feed in feeds))
    return result


def start_initialization(resolver: LocationResolver, **kwargs) -> asyncio.Task:
    """Fire-and-forget variant of initialize_app()."""
    return asyncio.create_task(initialize_app(resolver, **kwargs), name="riskmap-init")


class HeatmapSession:
    """One open map screen."""

    def __init__(
        self,
        resolver: LocationResolver,
        config_provider: MapConfigProvider,
        signals: FeedStore[DisasterSignal] = signal_feed,
        reports: FeedStore[CommunityReport] = report_feed,
        *,
        rng: random.Random | None = None,
        position_timeout: float | None = None,
        on_points: Optional[PointsListener] = None,
    ) -> None:
        self.resolver = resolver
        self.config_provider = config_provider
        self.signals = signals
        self.reports = reports
        self.rng = rng
        self.position_timeout = (
            position_timeout
            if position_timeout is not None
            else settings.screen_position_timeout_seconds
        )
        self.on_points = on_points

        self.config: Optional[MapConfiguration] = None
        self.points: Optional[list[RiskPoint]] = None
        self.advisory: Optional[str] = None
        self.closed = False

        self._config_coordinate: Optional[Coordinate] = None
        self._resolving = False
        self._unsubscribers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def store(self) -> LocationStore:
        return self.resolver.store

    @property
    def risk_summary(self) -> str:
        return risk_summary(self.points)

    async def open(self, refresh_feeds: bool = True) -> None:
        self._unsubscribers = [
            self.signals.subscribe(self.recompute),
            self.reports.subscribe(self.recompute),
            self.store.subscribe(self._on_location_update),
        ]
        jobs = [self._prepare_map()]
        if refresh_feeds:
            jobs += [self.signals.refresh(), self.reports.refresh()]
        await asyncio.gather(*jobs)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._resolving:
            self.store.supersede()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.points = None
        self.config = None

    def recompute(self) -> None:
        """Rebuild the point set from the current config and feeds."""
        if self.closed or self.config is None:
            return
        self.points = aggregate(
            self.config, self.signals.items, self.reports.items, rng=self.rng
        )
        if self.on_points is not None:
            self.on_points(self.points)

    async def _prepare_map(self) -> None:
        coordinate = self.store.coordinate
        if coordinate is None:
            self._resolving = True
            try:
                result = await self.resolver.resolve(self.position_timeout)
            finally:
                self._resolving = False
            if self.closed:
                logger.debug("Discarding resolution result for closed session")
                return
            if result.stale:
                # Another pass owns the store now; follow whatever it has
                # published, later coordinates arrive via _on_location_update.
                coordinate = self.store.coordinate
            else:
                if result.advisory:
                    self.advisory = result.advisory
                coordinate = result.location.coordinate if result.error is None else None
        else:
            logger.debug("Using pre-initialized location for map")

        await self._load_config(coordinate)

    async def _load_config(self, coordinate: Optional[Coordinate]) -> None:
        self._config_coordinate = coordinate
        config = await self.config_provider.get_config(coordinate)
        if self.closed or coordinate != self._config_coordinate:
            return
        self.config = config
        self.recompute()

        # Updates are ignored until the first config lands; catch up with any
        # coordinate another pass published while this load was pending.
        latest = self.store.coordinate
        if latest is not None and latest != coordinate:
            self._schedule_load(latest)

    def _on_location_update(self, update: LocationUpdate) -> None:
        if update.kind != "coordinate" or self.closed or self.config is None:
            return
        coordinate = update.location.coordinate
        if coordinate is None or coordinate == self._config_coordinate:
            return
        self._schedule_load(coordinate)

    def _schedule_load(self, coordinate: Coordinate) -> None:
        task = asyncio.get_running_loop().create_task(self._load_config(coordinate))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

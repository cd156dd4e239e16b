"""
test_heatmap_session.py — Screen-level wiring: location → config → points.

The resolver runs against an AsyncMock device, the config service against an
httpx.MockTransport handler, and the feeds are private FeedStore instances
fed directly via replace()/extend().
"""

import asyncio
import random

import httpx

from fakes import (
    LONDON,
    LONDON_CONFIG_JSON,
    RecordingHandler,
    failing_handler,
    make_config_client,
    make_provider,
)
from riskmap.models.heatmap import CommunityReport, DisasterSignal, ReportCoordinates
from riskmap.models.location import Coordinate
from riskmap.services.feeds import FeedStore
from riskmap.services.heatmap_session import HeatmapSession, initialize_app
from riskmap.services.location_resolver import LocationResolver
from riskmap.services.map_config import MapConfigProvider

PARIS = Coordinate(latitude=48.8566, longitude=2.3522)


def make_feeds():
    return (
        FeedStore("signals", DisasterSignal),
        FeedStore("reports", CommunityReport),
    )


def make_session(store, provider=None, handler=None, **kwargs):
    handler = handler or RecordingHandler(json=LONDON_CONFIG_JSON)
    config_client = make_config_client(handler)
    resolver = LocationResolver(provider or make_provider(), store, config_client)
    signals, reports = make_feeds()
    session = HeatmapSession(
        resolver,
        MapConfigProvider(store, config_client, timeout=1.0),
        signals,
        reports,
        rng=random.Random(0),
        **kwargs,
    )
    return session, signals, reports


def located_report(lat=51.51, lng=-0.12, verified=False, upvotes=0):
    return CommunityReport(
        coordinates=ReportCoordinates(latitude=lat, longitude=lng),
        verified=verified,
        upvotes=upvotes,
    )


async def settle():
    for _ in range(50):
        await asyncio.sleep(0)


# ── open() ───────────────────────────────────────────────────────────────────

class TestOpen:

    async def test_points_none_before_first_aggregation(self, store):
        session, _, _ = make_session(store)
        assert session.points is None
        assert session.risk_summary == "No data available"

    async def test_open_resolves_and_loads_config(self, store):
        session, _, _ = make_session(store)
        await session.open(refresh_feeds=False)

        assert session.config.tile_server == "https://tiles.example.com/{z}/{x}/{y}.png"
        assert session.points == []
        assert session.advisory is None
        await session.close()

    async def test_open_uses_existing_coordinate(self, store):
        store.publish_coordinate(PARIS, store.begin_generation())
        provider = make_provider()
        handler = RecordingHandler(json=LONDON_CONFIG_JSON)
        session, _, _ = make_session(store, provider, handler)

        await session.open(refresh_feeds=False)

        provider.request_permission.assert_not_awaited()
        assert float(handler.requests[0].url.params["lat"]) == PARIS.latitude
        await session.close()

    async def test_screen_timeout_passed_to_resolver(self, store):
        provider = make_provider()
        session, _, _ = make_session(store, provider, position_timeout=5.0)
        await session.open(refresh_feeds=False)
        provider.current_position.assert_awaited_once_with(10.0, 5.0)
        await session.close()

    async def test_denied_permission_gives_default_map_and_advisory(self, store):
        session, _, _ = make_session(
            store, make_provider(permission="denied"), failing_handler
        )
        await session.open(refresh_feeds=False)

        assert session.advisory == "Permission to access location was denied"
        assert session.config.initial_region.latitude == 40.7128
        assert session.config.initial_region.longitude == -74.0060
        assert session.points == []
        await session.close()

    async def test_failed_config_centres_fallback_on_device(self, store):
        session, _, _ = make_session(store, handler=failing_handler)
        await session.open(refresh_feeds=False)

        region = session.config.initial_region
        assert (region.latitude, region.longitude) == (LONDON.latitude, LONDON.longitude)
        await session.close()


# ── Recompute on input changes ───────────────────────────────────────────────

class TestRecompute:

    async def test_feed_contents_become_points(self, store):
        session, signals, reports = make_session(store)
        signals.replace([DisasterSignal(disaster_confidence=0.5)])
        reports.replace([located_report(verified=True, upvotes=3)])

        await session.open(refresh_feeds=False)

        assert [p.weight for p in session.points] == [50.0, 90.0]
        assert session.risk_summary == "Based on real-time data"
        await session.close()

    async def test_feed_change_replaces_points(self, store):
        session, signals, _ = make_session(store)
        await session.open(refresh_feeds=False)
        before = session.points

        signals.extend([DisasterSignal(disaster_confidence=0.2)])

        assert session.points is not before
        assert len(session.points) == 1
        await session.close()

    async def test_on_points_listener_called(self, store):
        batches = []
        session, _, reports = make_session(store, on_points=batches.append)
        await session.open(refresh_feeds=False)

        reports.replace([located_report()])

        assert [len(batch) for batch in batches] == [0, 1]
        await session.close()

    async def test_signal_points_follow_config_region(self, store):
        session, signals, _ = make_session(store)
        signals.replace([DisasterSignal(disaster_confidence=1.0)] * 20)
        await session.open(refresh_feeds=False)

        region = session.config.initial_region
        for point in session.points:
            assert abs(point.latitude - region.latitude) <= region.latitude_delta / 2
        await session.close()

    async def test_coordinate_move_reloads_config(self, store):
        handler = RecordingHandler(json=LONDON_CONFIG_JSON)
        session, _, _ = make_session(store, handler=handler)
        await session.open(refresh_feeds=False)
        requests_before = len(handler.requests)

        store.publish_coordinate(PARIS, store.begin_generation())
        await settle()

        assert len(handler.requests) == requests_before + 1
        assert float(handler.requests[-1].url.params["lat"]) == PARIS.latitude
        await session.close()


# ── close() ──────────────────────────────────────────────────────────────────

class TestClose:

    async def test_close_drops_points_and_stops_updates(self, store):
        session, signals, _ = make_session(store)
        await session.open(refresh_feeds=False)
        await session.close()

        signals.replace([DisasterSignal(disaster_confidence=0.9)])

        assert session.points is None
        assert session.config is None
        assert session.closed

    async def test_close_twice_is_harmless(self, store):
        session, _, _ = make_session(store)
        await session.open(refresh_feeds=False)
        await session.close()
        await session.close()

    async def test_close_during_resolution_discards_result(self, store):
        release = asyncio.Event()
        provider = make_provider()

        async def slow_fix(*_args):
            await release.wait()
            return LONDON

        provider.current_position.side_effect = slow_fix
        session, _, _ = make_session(store, provider)
        opening = asyncio.create_task(session.open(refresh_feeds=False))
        await settle()

        await session.close()
        release.set()
        await opening

        assert store.coordinate is None
        assert session.config is None
        assert session.points is None


# ── Root initializer vs. screen session ──────────────────────────────────────

class GatedConfigService:
    """Config service that holds every response until `gate` is set.

    Answers with a region centred on the requested point; requests without a
    coordinate fail, so the default map comes from the local fallback.
    """

    def __init__(self):
        self.gate = asyncio.Event()
        self.requests = []

    async def __call__(self, request):
        self.requests.append(request)
        await self.gate.wait()
        params = request.url.params
        if "lat" not in params:
            raise httpx.ConnectError("config service down", request=request)
        return httpx.Response(200, json={
            "tileServer": "https://tiles.example.com/{z}/{x}/{y}.png",
            "initialRegion": {
                "latitude": float(params["lat"]),
                "longitude": float(params["lng"]),
                "latitudeDelta": 0.05,
                "longitudeDelta": 0.04,
            },
            "locationName": f"Near {params['lat']}",
        })


def slow_provider(coordinate):
    provider = make_provider(coordinate=coordinate)
    release = asyncio.Event()

    async def slow_fix(*_args):
        await release.wait()
        return coordinate

    provider.current_position.side_effect = slow_fix
    return provider, release


class TestConcurrentInitializers:

    async def test_session_follows_root_after_its_own_pass_goes_stale(self, store):
        service = GatedConfigService()
        session_provider, session_fix = slow_provider(PARIS)
        session, _, _ = make_session(store, session_provider, service)
        opening = asyncio.create_task(session.open(refresh_feeds=False))
        await settle()

        root_provider, root_fix = slow_provider(LONDON)
        root = asyncio.create_task(initialize_app(LocationResolver(root_provider, store), feeds=[]))
        await settle()

        # The screen's pass was overtaken; it starts loading the default map.
        session_fix.set()
        await settle()
        assert "lat" not in service.requests[-1].url.params

        # The root pass lands while that load is still pending.
        root_fix.set()
        await root
        service.gate.set()
        await opening
        await settle()

        assert store.coordinate == LONDON
        assert session.config.initial_region.center == LONDON
        await session.close()

    async def test_late_config_for_old_coordinate_does_not_rewind_store(self, store):
        store.publish_coordinate(LONDON, store.begin_generation())
        names = []
        store.subscribe(lambda update: names.append(update.location.name) if update.kind == "name" else None)
        service = GatedConfigService()
        session, _, _ = make_session(store, handler=service)
        opening = asyncio.create_task(session.open(refresh_feeds=False))
        await settle()

        # A newer pass moves the location while the LONDON config is in flight.
        store.publish_coordinate(PARIS, store.begin_generation())
        service.gate.set()
        await opening
        await settle()

        assert store.coordinate == PARIS
        assert names == ["Near 48.8566"]
        assert session.config.initial_region.center == PARIS
        await session.close()

    async def test_root_and_screen_started_together_converge(self, store):
        session, _, _ = make_session(store)
        root_resolver = LocationResolver(make_provider(), store)

        await asyncio.gather(
            initialize_app(root_resolver, feeds=[]),
            session.open(refresh_feeds=False),
        )
        await settle()

        assert store.coordinate == LONDON
        assert store.location.name is not None
        assert session.advisory is None
        assert session.config.initial_region.center == LONDON
        await session.close()


# ── initialize_app() ─────────────────────────────────────────────────────────

class TestInitializeApp:

    async def test_root_resolution_then_feeds(self, store):
        provider = make_provider()
        resolver = LocationResolver(provider, store, make_config_client(failing_handler))
        order = []

        class TrackingFeed:
            async def refresh(self):
                order.append(store.coordinate)
                return False

        result = await initialize_app(resolver, feeds=[TrackingFeed()], position_timeout=3.0)

        assert result.ok
        provider.current_position.assert_awaited_once_with(10.0, 3.0)
        assert order == [LONDON]

    async def test_failure_is_reported_not_raised(self, store):
        resolver = LocationResolver(make_provider(permission="denied"), store)
        result = await initialize_app(resolver, feeds=[])
        assert result.advisory == "Permission to access location was denied"

    async def test_session_after_startup_reuses_location(self, store):
        provider = make_provider()
        session, _, _ = make_session(store, provider)
        await initialize_app(session.resolver, feeds=[])
        await session.open(refresh_feeds=False)

        provider.current_position.assert_awaited_once()
        assert session.config is not None
        await session.close()

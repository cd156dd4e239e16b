"""
test_risk_aggregator.py — Weighting, placement and ordering of heat points.

Run:
    pytest tests/test_risk_aggregator.py -v
"""

import random

import pytest

from riskmap.models.heatmap import CommunityReport, DisasterSignal, ReportCoordinates
from riskmap.models.location import MapConfiguration, MapRegion
from riskmap.services import risk_aggregator
from riskmap.services.risk_aggregator import (
    aggregate,
    report_points,
    report_weight,
    risk_band,
    risk_summary,
    signal_points,
    signal_weight,
)

CONFIG = MapConfiguration(
    tile_server="https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    initial_region=MapRegion(
        latitude=34.05, longitude=-118.24, latitude_delta=0.0922, longitude_delta=0.0421,
    ),
)


def report(lat=34.1, lng=-118.3, verified=False, upvotes=0):
    coords = None if lat is None and lng is None else ReportCoordinates(latitude=lat, longitude=lng)
    return CommunityReport(coordinates=coords, verified=verified, upvotes=upvotes)


# ── Signal weighting ──────────────────────────────────────────────────────────

class TestSignalWeight:

    @pytest.mark.parametrize("confidence", [0.0, 0.25, 0.5, 0.873, 1.0])
    def test_weight_is_confidence_times_100(self, confidence):
        assert signal_weight(DisasterSignal(disaster_confidence=confidence)) == confidence * 100

    def test_confidence_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            DisasterSignal(disaster_confidence=1.2)


# ── Report weighting ──────────────────────────────────────────────────────────

class TestReportWeight:

    @pytest.mark.parametrize("verified,upvotes,expected", [
        (True,  3,  90),   # 50 + 25 + 15
        (False, 10, 75),   # 50 + 0 + 25 (bonus saturates)
        (False, 0,  50),
        (False, 1,  55),
        (True,  5,  100),
        (True,  500, 100),
    ])
    def test_additive_formula(self, verified, upvotes, expected):
        assert report_weight(report(verified=verified, upvotes=upvotes)) == expected

    def test_weight_is_not_clamped(self, monkeypatch):
        """Raising the base must carry straight through, even past 100."""
        monkeypatch.setattr(risk_aggregator, "REPORT_BASE_WEIGHT", 80)
        assert report_weight(report(verified=True, upvotes=5)) == 130


# ── Placement + filtering ─────────────────────────────────────────────────────

class TestPlacement:

    def test_signal_points_stay_inside_viewport(self):
        signals = [DisasterSignal(disaster_confidence=0.5)] * 200
        region = CONFIG.initial_region
        for point in signal_points(CONFIG, signals, random.Random(7)):
            assert abs(point.latitude - region.latitude) <= region.latitude_delta / 2
            assert abs(point.longitude - region.longitude) <= region.longitude_delta / 2

    def test_seeded_scatter_is_reproducible(self):
        signals = [DisasterSignal(disaster_confidence=0.3), DisasterSignal(disaster_confidence=0.9)]
        first = signal_points(CONFIG, signals, random.Random(42))
        second = signal_points(CONFIG, signals, random.Random(42))
        assert first == second

    def test_report_keeps_its_own_coordinate(self):
        points = report_points([report(lat=34.2, lng=-118.1)])
        assert (points[0].latitude, points[0].longitude) == (34.2, -118.1)

    def test_report_without_coordinates_skipped(self):
        assert report_points([report(lat=None, lng=None)]) == []

    def test_report_missing_one_axis_skipped(self):
        assert report_points([report(lat=34.2, lng=None)]) == []

    def test_report_on_equator_is_kept(self):
        """0.0 is a real coordinate, not a missing one."""
        assert len(report_points([report(lat=0.0, lng=0.0)])) == 1


# ── aggregate() ───────────────────────────────────────────────────────────────

class TestAggregate:

    def test_empty_inputs_give_empty_list(self):
        points = aggregate(CONFIG, [], [])
        assert points == []
        assert points is not None

    def test_every_signal_is_included(self):
        signals = [DisasterSignal(disaster_confidence=c) for c in (0.1, 0.0, 0.7)]
        assert len(aggregate(CONFIG, signals, [])) == 3

    def test_signals_first_then_reports(self):
        signals = [DisasterSignal(disaster_confidence=0.25), DisasterSignal(disaster_confidence=0.5)]
        reports = [report(verified=True, upvotes=3), report(upvotes=10)]
        points = aggregate(CONFIG, signals, reports, rng=random.Random(1))
        assert [p.weight for p in points] == [25.0, 50.0, 90.0, 75.0]

    def test_invalid_reports_dropped_without_error(self):
        reports = [report(lat=None, lng=None), report(upvotes=2)]
        points = aggregate(CONFIG, [], reports)
        assert [p.weight for p in points] == [60.0]

    def test_each_call_returns_a_new_list(self):
        assert aggregate(CONFIG, [], []) is not aggregate(CONFIG, [], [])


# ── Legend helpers ────────────────────────────────────────────────────────────

class TestLegend:

    @pytest.mark.parametrize("weight,label", [
        (0, "Low"), (25, "Low"), (26, "Moderate"), (50, "Moderate"),
        (51, "High"), (75, "High"), (76, "Extreme"), (100, "Extreme"), (130, "Extreme"),
    ])
    def test_band_boundaries(self, weight, label):
        assert risk_band(weight).label == label

    @pytest.mark.parametrize("weight,label", [
        (25.4, "Low"), (25.6, "Moderate"), (50.2, "Moderate"), (75.6, "Extreme"),
    ])
    def test_fractional_weights_round_to_nearest_band(self, weight, label):
        assert risk_band(weight).label == label

    def test_summary_depends_on_points(self):
        points = aggregate(CONFIG, [DisasterSignal(disaster_confidence=0.5)], [])
        assert risk_summary(points) == "Based on real-time data"
        assert risk_summary([]) == "No data available"
        assert risk_summary(None) == "No data available"

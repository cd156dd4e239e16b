"""
risk_aggregator.py — Fuse disaster signals and community reports into heat points.

USAGE
─────
    from riskmap.services.risk_aggregator import aggregate

    points = aggregate(config, signals, reports)
    # signal-derived points first, then report-derived points

WEIGHTING
─────────
  DisasterSignal   weight = disaster_confidence × 100
                   Signals carry no geolocation, so each point is placed at the
                   region centre plus a uniform offset of at most half the
                   viewport span on each axis. The offset has no positional
                   meaning; pass a seeded random.Random for reproducible output.

  CommunityReport  weight = 50 + (25 if verified) + min(25, upvotes × 5)
                   Reports without both coordinate axes are skipped.
                   The sum is not clamped.

TESTING
────────
    pytest tests/test_risk_aggregator.py -v
"""

from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from riskmap.models.heatmap import (
    CommunityReport,
    DisasterSignal,
    HeatLayerStyle,
    RiskBand,
    RiskPoint,
)
from riskmap.models.location import MapConfiguration

logger = logging.getLogger(__name__)

# ── Weights ───────────────────────────────────────────────────────────────────

SIGNAL_SCALE = 100.0
REPORT_BASE_WEIGHT = 50
VERIFIED_BONUS = 25
UPVOTE_WEIGHT = 5
MAX_UPVOTE_BONUS = 25

# ── Legend + heat layer ───────────────────────────────────────────────────────

EXTREME_COLOR = "#7D0000"

RISK_BANDS: list[RiskBand] = [
    RiskBand(label="Low",      min_weight=0,  max_weight=25,  color="#2E7D32"),
    RiskBand(label="Moderate", min_weight=26, max_weight=50,  color="#F9A825"),
    RiskBand(label="High",     min_weight=51, max_weight=75,  color="#C62828"),
    RiskBand(label="Extreme",  min_weight=76, max_weight=100, color=EXTREME_COLOR),
]

HEAT_LAYER_STYLE = HeatLayerStyle(
    radius=20,
    opacity=0.7,
    colors=[band.color for band in RISK_BANDS],
    start_points=[0, 0.33, 0.66, 1],
)

SUMMARY_WITH_DATA = "Based on real-time data"
SUMMARY_NO_DATA = "No data available"


# ── Pure weighting functions ──────────────────────────────────────────────────

def signal_weight(signal: DisasterSignal) -> float:
    return signal.disaster_confidence * SIGNAL_SCALE


def report_weight(report: CommunityReport) -> float:
    weight = REPORT_BASE_WEIGHT
    if report.verified:
        weight += VERIFIED_BONUS
    weight += min(MAX_UPVOTE_BONUS, report.upvotes * UPVOTE_WEIGHT)
    return float(weight)


def risk_band(weight: float) -> RiskBand:
    """
    Legend bucket for a weight; anything above the scale is Extreme.

    Band bounds are whole numbers, so the weight is rounded first: 25.4 is
    Low, 25.6 is Moderate.
    """
    rounded = round(weight)
    for band in RISK_BANDS:
        if rounded <= band.max_weight:
            return band
    return RISK_BANDS[-1]


def risk_summary(points: Optional[list[RiskPoint]]) -> str:
    """Text for the location card under the map."""
    return SUMMARY_WITH_DATA if points else SUMMARY_NO_DATA


# ── Aggregation ───────────────────────────────────────────────────────────────

def signal_points(
    config: MapConfiguration,
    signals: Iterable[DisasterSignal],
    rng: random.Random | None = None,
) -> list[RiskPoint]:
    rng = rng or random.Random()
    region = config.initial_region
    points = []
    for signal in signals:
        lat_offset = (rng.random() - 0.5) * region.latitude_delta
        lng_offset = (rng.random() - 0.5) * region.longitude_delta
        points.append(RiskPoint(
            latitude=region.latitude + lat_offset,
            longitude=region.longitude + lng_offset,
            weight=signal_weight(signal),
        ))
    return points


def report_points(reports: Iterable[CommunityReport]) -> list[RiskPoint]:
    points = []
    for report in reports:
        coordinate = report.coordinate
        if coordinate is None:
            continue
        points.append(RiskPoint(
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            weight=report_weight(report),
        ))
    return points


def aggregate(
    config: MapConfiguration,
    signals: Iterable[DisasterSignal],
    reports: Iterable[CommunityReport],
    rng: random.Random | None = None,
) -> list[RiskPoint]:
    """
    Build the full heat-layer point set for one pass.

    Returns a new list every call. An empty list is a valid result.
    """
    from_signals = signal_points(config, signals, rng)
    from_reports = report_points(reports)
    points = from_signals + from_reports

    if not points:
        logger.info("No disaster data available for heatmap")
    else:
        logger.debug(
            "Aggregated %d heat points (%d signals, %d reports)",
            len(points), len(from_signals), len(from_reports),
        )
    return points

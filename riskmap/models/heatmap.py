"""
heatmap.py — Pydantic models for the risk heatmap.

Inputs (read-only, owned by the feed stores)
────────────────────────────────────────────
  • DisasterSignal   — social-media post scored by the disaster classifier.
                       Carries a confidence but no usable location.
  • CommunityReport  — user-submitted incident with an explicit coordinate,
                       an optional verification flag and an upvote count.

Output (ephemeral, rebuilt wholesale on every aggregation pass)
───────────────────────────────────────────────────────────────
  • RiskPoint        — {latitude, longitude, weight} sample for the heat layer.

Presentation helpers
────────────────────
  • RiskBand / RISK_BANDS — the four legend buckets shown next to the map.
  • HeatLayerStyle        — radius / opacity / gradient the renderer uses.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from riskmap.models.location import Coordinate, MapConfiguration


class DisasterSignal(BaseModel):
    """A classified tweet. Extra feed fields (text, author, ...) are ignored."""

    disaster_confidence: float = Field(..., ge=0, le=1)


class ReportCoordinates(BaseModel):
    # Either axis may be missing in feed data; such reports are skipped.
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class CommunityReport(BaseModel):
    """A community incident report as served by the report feed."""

    coordinates: Optional[ReportCoordinates] = None
    verified: bool = False
    upvotes: int = Field(default=0, ge=0)

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.coordinates is None:
            return None
        if self.coordinates.latitude is None or self.coordinates.longitude is None:
            return None
        return Coordinate(
            latitude=self.coordinates.latitude,
            longitude=self.coordinates.longitude,
        )


class RiskPoint(BaseModel):
    """One weighted sample for the heat layer."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    # Weights are additive and deliberately not clamped here; the current
    # constants top out at 100.
    weight: float = Field(..., ge=0)


class RiskBand(BaseModel):
    """One legend bucket (inclusive bounds)."""

    label: str
    min_weight: int
    max_weight: int
    color: str


class HeatLayerStyle(BaseModel):
    radius: int = 20
    opacity: float = 0.7
    colors: list[str]
    start_points: list[float]


class HeatmapResponse(BaseModel):
    """Snapshot returned by GET /api/v1/heatmap."""

    points: list[RiskPoint]
    config: MapConfiguration
    legend: list[RiskBand]
    style: HeatLayerStyle
    risk_summary: str
    total_points: int


class SignalBatch(BaseModel):
    """Request body for POST /api/v1/heatmap/signals."""

    signals: list[DisasterSignal] = Field(..., min_length=1, max_length=1000)


class ReportBatch(BaseModel):
    """Request body for POST /api/v1/heatmap/reports."""

    reports: list[CommunityReport] = Field(..., min_length=1, max_length=1000)


class IngestResponse(BaseModel):
    ok: bool
    accepted: int
    total: int

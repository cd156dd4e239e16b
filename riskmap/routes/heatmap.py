"""
heatmap.py — Risk heatmap routes.

Routes:
  GET  /api/v1/heatmap           — aggregated risk points for a region
  GET  /api/v1/heatmap/legend    — risk bands + heat layer style
  POST /api/v1/heatmap/signals   — append classified tweets to the signal feed
  POST /api/v1/heatmap/reports   — append community reports to the report feed

HOW THE DATA FLOWS
──────────────────
1. Scrapers / the report backend push items into the two feed stores
   (or the stores refresh themselves from SIGNAL_FEED_URL / REPORT_FEED_URL).
2. GET /api/v1/heatmap builds the region configuration for ?lat&lng (or the
   default city) and runs aggregate() over the current feed contents.
3. Points are recomputed on every request; nothing is stored.

Tweets have no location, so their points are scattered inside the requested
viewport. Pass ?seed=N for a repeatable scatter.

TESTING YOUR CHANGES
─────────────────────
  pytest tests/test_heatmap_routes.py -v
  curl "http://localhost:8000/api/v1/heatmap?lat=51.5074&lng=-0.1278"
"""

import logging
import random
from typing import Optional

from fastapi import APIRouter, Depends, Query

from riskmap.models.heatmap import (
    HeatLayerStyle,
    HeatmapResponse,
    IngestResponse,
    ReportBatch,
    RiskBand,
    SignalBatch,
)
from riskmap.models.location import Coordinate
from riskmap.routes.map_config import query_coordinate
from riskmap.services.feeds import report_feed, signal_feed
from riskmap.services.map_config import fallback_configuration
from riskmap.services.risk_aggregator import (
    HEAT_LAYER_STYLE,
    RISK_BANDS,
    aggregate,
    risk_summary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/heatmap", tags=["heatmap"])


@router.get("", response_model=HeatmapResponse)
async def get_heatmap(
    coordinate: Optional[Coordinate] = Depends(query_coordinate),
    seed: Optional[int] = Query(default=None, description="Seed for the signal scatter"),
):
    """
    Return the heat-layer snapshot for a viewport.

    Response shape (HeatmapResponse):
      points        : list of {latitude, longitude, weight}
      config        : the MapConfiguration the points were placed in
      legend        : Low / Moderate / High / Extreme bands
      style         : radius, opacity, gradient for the renderer
      risk_summary  : "Based on real-time data" | "No data available"
      total_points  : len(points)
    """
    config = fallback_configuration(coordinate)
    rng = random.Random(seed) if seed is not None else None
    points = aggregate(config, signal_feed.items, report_feed.items, rng=rng)

    return HeatmapResponse(
        points=points,
        config=config,
        legend=RISK_BANDS,
        style=HEAT_LAYER_STYLE,
        risk_summary=risk_summary(points),
        total_points=len(points),
    )


@router.get("/legend")
async def get_legend() -> dict[str, list[RiskBand] | HeatLayerStyle]:
    """Legend bands and heat layer style, for clients that render their own map."""
    return {"bands": RISK_BANDS, "style": HEAT_LAYER_STYLE}


@router.post("/signals", response_model=IngestResponse, status_code=201)
async def add_signals(payload: SignalBatch):
    accepted = signal_feed.extend(payload.signals)
    logger.info("Accepted %d disaster signal(s)", accepted)
    return IngestResponse(ok=True, accepted=accepted, total=len(signal_feed))


@router.post("/reports", response_model=IngestResponse, status_code=201)
async def add_reports(payload: ReportBatch):
    accepted = report_feed.extend(payload.reports)
    logger.info("Accepted %d community report(s)", accepted)
    return IngestResponse(ok=True, accepted=accepted, total=len(report_feed))

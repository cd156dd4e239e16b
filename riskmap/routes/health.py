"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - Load balancers / orchestrators
  - The mobile client, to check API connectivity before fetching config

Reports how many items each feed store currently holds so callers can tell
"API up, feeds empty" apart from "API down".
"""

from fastapi import APIRouter
from pydantic import BaseModel

from riskmap.core.config import settings
from riskmap.services.feeds import report_feed, signal_feed

router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    environment: str
    signals: int
    reports: int


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        environment=settings.environment,
        signals=len(signal_feed),
        reports=len(report_feed),
    )

"""
RiskMap API — Application entry point.

Bootstraps FastAPI, wires up middleware and route groups, and refreshes the
feed stores on startup.

Extension points:
  - Add new route groups with app.include_router() below
  - Add new middleware in the middleware block
  - Change startup behaviour in the lifespan context manager
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from riskmap.core.config import settings
from riskmap.core.rate_limit import limiter
from riskmap.routes.health import router as health_router
from riskmap.routes.heatmap import router as heatmap_router
from riskmap.routes.map_config import router as map_config_router
from riskmap.services.feeds import report_feed, signal_feed

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Code before `yield` runs on startup; code after runs on shutdown.

    Feed refresh is a no-op when SIGNAL_FEED_URL / REPORT_FEED_URL are unset,
    and a failed refresh only logs a warning.
    """
    logger.info("Starting RiskMap API (env: %s)", settings.environment)
    await asyncio.gather(signal_feed.refresh(), report_feed.refresh())
    yield
    logger.info("Shutting down RiskMap API")


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="RiskMap API",
    description=(
        "Map configuration and disaster-risk heatmap backend. "
        "Tweet-derived points are placed approximately, not geocoded."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt-in with @limiter.limit("N/minute") + request: Request parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(map_config_router)
app.include_router(heatmap_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "RiskMap API",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }

"""FastAPI application wiring for the helpdesk lifecycle engine.

This module bootstraps the HTTP API:

- Configures logging, Prometheus metrics and rate limiting.
- Exposes the sweep trigger used by the external cron
  (``/api/cron/check-inactive-chats``), the quality metrics dashboard
  endpoints and rating submission.
- Optionally runs the sweep in-process on a fixed interval when
  ``SWEEP_SCHEDULER_ENABLED`` is true, instead of relying on an external cron.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .config import get_settings
from .conversations.scheduler import SweepScheduler
from .core.deps import get_proactive_sweep
from .core.limits import limiter
from .routers import cron, quality_metrics, ratings

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the in-process sweep scheduler when enabled."""
    settings = get_settings()
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = SweepScheduler(
            get_proactive_sweep(), interval_seconds=settings.sweep_interval_seconds
        )
        scheduler.start()
    app.state.sweep_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown()


app = FastAPI(title="Helpdesk lifecycle engine", version=__version__, lifespan=lifespan)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
# Optional CORS for the dashboard
dashboard_origins = os.getenv("DASHBOARD_ORIGINS")
if dashboard_origins:
    origins = [o.strip() for o in dashboard_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(cron.router)
app.include_router(quality_metrics.router)
app.include_router(ratings.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.get("/api/health")
async def health():
    """Liveness/readiness probe with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }

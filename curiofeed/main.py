"""
CurioFeed API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Connect to Redis (engagement history; degraded if unreachable)
  3. Start the Firecrawl HTTP client, or fall back to the static
     content source when no API key is configured
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from curiofeed.config import settings
from curiofeed.telemetry import setup_tracing, instrument_app
from curiofeed.clients.firecrawl_client import firecrawl_client
from curiofeed.clients.redis_client import init_redis, close_redis
from curiofeed.interests import INTEREST_OPTIONS
from curiofeed.routers import engagement, feed

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting CurioFeed API (env=%s)", settings.environment)

    await init_redis()
    if settings.firecrawl_api_key:
        await firecrawl_client.start()
        logger.info("Content source: Firecrawl at %s", settings.firecrawl_api_url)
    else:
        logger.warning("No Firecrawl API key configured — serving the static content source")

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await firecrawl_client.stop()
    await close_redis()


app = FastAPI(
    title="CurioFeed API",
    description=(
        "Personalised link feed: weighted blending of the current interest, "
        "the most-engaged interest and random discovery."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(feed.router, prefix="/feed", tags=["Feed"])
app.include_router(engagement.router, prefix="/engagement", tags=["Engagement"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/interests", tags=["Feed"])
async def interests():
    return {"interests": list(INTEREST_OPTIONS)}


@app.get("/health", tags=["Health"])
async def health():
    return {
        "status": "ok",
        "service": settings.service_name,
        "contentSource": feed.active_content_source().name,
    }

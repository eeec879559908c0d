"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: feed latency, per-category fetch outcomes,
    retry attempts, fallback usage, unavailable pages, live sessions

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from prometheus_client import Counter, Gauge, Histogram

from curiofeed.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
FEED_LATENCY = Histogram(
    "feed_latency_seconds",
    "End-to-end latency of POST /feed",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 45.0],
)

CATEGORY_FETCH_TOTAL = Counter(
    "feed_category_fetch_total",
    "Per-category fetch outcomes within feed assembly",
    ["role", "outcome"],  # role: current|top_engaged|random; outcome: ok|failed|cancelled
)

FETCH_ATTEMPTS_TOTAL = Counter(
    "feed_fetch_attempts_total",
    "Individual content source calls, including retries",
    ["outcome"],  # 'ok' or 'error'
)

FEED_FALLBACK_TOTAL = Counter(
    "feed_fallback_total",
    "Pages that needed the current-interest-only fallback",
    ["outcome"],  # 'ok' or 'failed'
)

FEED_UNAVAILABLE_TOTAL = Counter(
    "feed_unavailable_total",
    "Pages that failed with FeedUnavailable",
)

FEED_ITEMS_SERVED_TOTAL = Counter(
    "feed_items_served_total",
    "Content items delivered to clients",
)

SESSIONS_ACTIVE = Gauge(
    "feed_sessions_active",
    "Pagination sessions currently held in memory",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    if not settings.tracing_enabled:
        logger.info("OTel tracing disabled by configuration")
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument outbound calls so content-source and Redis spans appear
    HTTPXClientInstrumentor().instrument()
    RedisInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)

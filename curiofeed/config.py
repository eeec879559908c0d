"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.

Feed weights are validated here: a weight set that does not sum to 1.0
fails at import time, so a bad deployment never serves a single page.
"""
from dataclasses import dataclass

from pydantic import model_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class FeedWeights:
    """Fractions of a page drawn from each category."""
    current_interest: float
    top_engaged: float
    random: float

    def total(self) -> float:
        return self.current_interest + self.top_engaged + self.random


class Settings(BaseSettings):
    # ── Content source (Firecrawl search API) ─────────────────────────────
    firecrawl_api_url: str = "https://api.firecrawl.dev"
    firecrawl_api_key: str = ""          # empty → built-in static source
    firecrawl_request_timeout: float = 30.0
    firecrawl_results_per_query: int = 5

    # ── Redis (engagement history, read-only) ─────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    engagement_history_limit: int = 5

    # ── Feed blending ──────────────────────────────────────────────────────
    feed_weight_current: float = 0.6
    feed_weight_top_engaged: float = 0.25
    feed_weight_random: float = 0.15
    feed_weight_tolerance: float = 1e-6
    feed_page_size: int = 10
    feed_overfetch_margin: int = 10
    feed_random_fanout: int = 2          # max random interests per page

    # ── Resilient fetching ─────────────────────────────────────────────────
    fetch_max_attempts: int = 3
    fetch_retry_delay: float = 1.0       # backoff base, seconds
    fetch_category_timeout: float = 30.0
    feed_page_timeout: float = 45.0

    # ── Pagination sessions ────────────────────────────────────────────────
    session_ttl_seconds: float = 1800.0
    session_max_entries: int = 10000

    # ── Observability ──────────────────────────────────────────────────────
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "curiofeed-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def feed_weights(self) -> FeedWeights:
        return FeedWeights(
            current_interest=self.feed_weight_current,
            top_engaged=self.feed_weight_top_engaged,
            random=self.feed_weight_random,
        )

    @model_validator(mode="after")
    def _check_feed_weights(self) -> "Settings":
        weights = self.feed_weights
        if min(weights.current_interest, weights.top_engaged, weights.random) < 0:
            raise ValueError(f"feed weights must be non-negative: {weights}")
        if abs(weights.total() - 1.0) > self.feed_weight_tolerance:
            raise ValueError(
                f"feed weights must sum to 1.0 (got {weights.total():.6f})"
            )
        if self.fetch_max_attempts < 1:
            raise ValueError("fetch_max_attempts must be at least 1")
        return self


settings = Settings()

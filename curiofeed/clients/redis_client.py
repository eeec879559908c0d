"""
Redis client wrapper — engagement history (read-only).

Layout, maintained by the external engagement writer:
  • Engagement totals — HASH keyed by eng:{user_id}
                        {interest}:sum   = sum of engagement scores
                        {interest}:count = number of observations

The feed reads these to pick each user's top-engaged interest. Redis being
unreachable degrades to an empty history: the page is still served, just
without a top-engaged slot.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from curiofeed.config import settings
from curiofeed.feed.ranking import rank_interests
from curiofeed.schemas import InterestEngagementSummary

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    try:
        await _redis.ping()
        logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)
    except (RedisError, OSError) as exc:
        # History is optional for serving a feed; keep the client and retry per call
        logger.warning("Redis not reachable at startup (%s) — engagement history degraded", exc)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Engagement history (HASH) ────────────────────────

def engagement_key(user_id: str) -> str:
    return f"eng:{user_id}"


def parse_engagement_hash(raw: dict[str, str]) -> list[InterestEngagementSummary]:
    """Turn {interest}:sum / {interest}:count fields into summaries."""
    totals: dict[str, dict[str, float]] = {}
    for field, value in raw.items():
        interest, _, kind = field.rpartition(":")
        if not interest or kind not in ("sum", "count"):
            continue
        try:
            totals.setdefault(interest, {})[kind] = float(value)
        except (TypeError, ValueError):
            logger.debug("Skipping malformed engagement field %s=%r", field, value)

    summaries = []
    for interest, t in totals.items():
        count = int(t.get("count", 0))
        if count <= 0 or "sum" not in t:
            continue
        summaries.append(
            InterestEngagementSummary(
                interest_tag=interest,
                average_score=round(t["sum"] / count, 2),
                sample_count=count,
            )
        )
    return rank_interests(summaries)


async def get_top_engaged_interests(
    user_id: str,
    limit: Optional[int] = None,
) -> list[InterestEngagementSummary]:
    """
    Return the user's per-interest engagement averages, highest first.
    Falls back to an empty history on Redis errors (graceful degradation).
    """
    limit = limit or settings.engagement_history_limit
    try:
        raw = await get_redis().hgetall(engagement_key(user_id))
    except (RedisError, OSError, RuntimeError) as exc:
        logger.warning(
            "Engagement history unavailable (user=%s): %s — using empty history",
            user_id,
            exc,
        )
        return []
    return parse_engagement_hash(raw)[:limit]

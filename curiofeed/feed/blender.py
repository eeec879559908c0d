"""
Weighted blender — assembles one feed page from several interest fetches.

  1. fetch_total = page_size + session.offset + overfetch_margin
  2. Pick the top-engaged interest (ranker) and up to `random_fanout`
     random interests from the rest of the catalogue.
  3. Split fetch_total across current / top-engaged / random by the
     configured FeedWeights (half-up rounding). With no top-engaged
     interest its share goes to the current interest.
  4. Fetch every category concurrently through the resilient fetcher,
     bounded by the page timeout. A failed category contributes nothing.
  5. Tag items with their category, drop URLs already in the batch or
     already served by this session, shuffle, and serve the first
     `page_size` unseen items.
  6. If every category failed, try the current interest alone once with
     whatever is left of the page timeout; if that fails too the page is
     FeedUnavailable.

The session is only mutated after a page has been assembled successfully.

hasMore is a heuristic: false only when every category came back short of
its quota and the unseen batch was fully consumed. Upstream rate limiting
can make it wrong in either direction.
"""
import asyncio
import logging
import math
import random
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Sequence

from opentelemetry import trace

from curiofeed.config import FeedWeights, settings
from curiofeed.errors import FeedUnavailable, FetchCancelled, FetchError
from curiofeed.feed.fetcher import RetryPolicy, fetch_with_retry
from curiofeed.feed.ranking import top_engaged
from curiofeed.feed.sessions import PaginationSession
from curiofeed.feed.source import ContentSource
from curiofeed.interests import INTEREST_OPTIONS
from curiofeed.schemas import ContentItem, InterestEngagementSummary
from curiofeed.telemetry import (
    CATEGORY_FETCH_TOTAL,
    FEED_FALLBACK_TOTAL,
    FEED_ITEMS_SERVED_TOTAL,
    FEED_UNAVAILABLE_TOTAL,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ROLE_CURRENT = "current"
ROLE_TOP_ENGAGED = "top_engaged"
ROLE_RANDOM = "random"


@dataclass(frozen=True)
class BlenderConfig:
    weights: FeedWeights = FeedWeights(current_interest=0.6, top_engaged=0.25, random=0.15)
    overfetch_margin: int = 10
    random_fanout: int = 2
    page_timeout: float = 45.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    interests: tuple[str, ...] = INTEREST_OPTIONS

    @classmethod
    def from_settings(cls) -> "BlenderConfig":
        return cls(
            weights=settings.feed_weights,
            overfetch_margin=settings.feed_overfetch_margin,
            random_fanout=settings.feed_random_fanout,
            page_timeout=settings.feed_page_timeout,
            retry=RetryPolicy.from_settings(),
        )


@dataclass(frozen=True)
class Quotas:
    current: int
    top_engaged: int
    random: int

    @property
    def total(self) -> int:
        return self.current + self.top_engaged + self.random


@dataclass(frozen=True)
class CategoryPlan:
    role: str
    interest: str
    count: int


@dataclass
class CategoryResult:
    plan: CategoryPlan
    items: list[ContentItem] = field(default_factory=list)
    error: Optional[Exception] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled

    @property
    def came_back_short(self) -> bool:
        return len(self.items) < self.plan.count


@dataclass(frozen=True)
class FeedPage:
    items: list[ContentItem]
    has_more: bool
    used_fallback: bool = False


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_quotas(total: int, weights: FeedWeights, has_top_engaged: bool) -> Quotas:
    current = round_half_up(total * weights.current_interest)
    top = round_half_up(total * weights.top_engaged)
    rand = round_half_up(total * weights.random)
    if not has_top_engaged:
        current += top
        top = 0
    return Quotas(current=current, top_engaged=top, random=rand)


def plan_categories(
    current_interest: str,
    top_engaged_interest: Optional[str],
    random_interests: Sequence[str],
    quotas: Quotas,
    random_fanout: int = 2,
) -> list[CategoryPlan]:
    """One fetch per category; the random quota is split evenly (rounded up)."""
    plans = []
    if quotas.current > 0:
        plans.append(CategoryPlan(ROLE_CURRENT, current_interest, quotas.current))
    if top_engaged_interest and quotas.top_engaged > 0:
        plans.append(CategoryPlan(ROLE_TOP_ENGAGED, top_engaged_interest, quotas.top_engaged))
    chosen = list(random_interests)[:random_fanout]
    if chosen and quotas.random > 0:
        per_interest = math.ceil(quotas.random / len(chosen))
        plans.extend(CategoryPlan(ROLE_RANDOM, interest, per_interest) for interest in chosen)
    return plans


def _tag(items: Iterable[ContentItem], interest: str) -> list[ContentItem]:
    return [
        item if item.interest_tag == interest else item.model_copy(update={"interest_tag": interest})
        for item in items
    ]


def _unseen(items: Iterable[ContentItem], seen_urls: set[str]) -> list[ContentItem]:
    """Drop items whose URL repeats within the batch or was already served."""
    fresh: list[ContentItem] = []
    batch_urls: set[str] = set()
    for item in items:
        if item.url in seen_urls or item.url in batch_urls:
            continue
        batch_urls.add(item.url)
        fresh.append(item)
    return fresh


class FeedBlender:
    def __init__(
        self,
        source: ContentSource,
        config: Optional[BlenderConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.source = source
        self.config = config or BlenderConfig.from_settings()
        self._rng = rng or random.Random()

    async def assemble_feed(
        self,
        session: PaginationSession,
        user_id: str,
        current_interest: str,
        history: Sequence[InterestEngagementSummary],
        page_size: int,
        cancel: Optional[asyncio.Event] = None,
    ) -> FeedPage:
        """
        Build the next page for `session`.

        Raises FeedUnavailable when no content could be fetched at all and
        FetchCancelled when `cancel` fires; the session is unchanged in
        both cases.
        """
        async with session.lock:
            with tracer.start_as_current_span("assemble_feed") as span:
                span.set_attribute("user.id", user_id)
                span.set_attribute("feed.interest", current_interest)
                span.set_attribute("feed.offset", session.offset)
                page = await self._assemble(session, user_id, current_interest, history, page_size, cancel)
                span.set_attribute("feed.items", len(page.items))
                span.set_attribute("feed.has_more", page.has_more)
                span.set_attribute("feed.fallback", page.used_fallback)

            session.record_page(page.items, page.has_more)
            FEED_ITEMS_SERVED_TOTAL.inc(len(page.items))
            return page

    async def _assemble(
        self,
        session: PaginationSession,
        user_id: str,
        current_interest: str,
        history: Sequence[InterestEngagementSummary],
        page_size: int,
        cancel: Optional[asyncio.Event],
    ) -> FeedPage:
        deadline = asyncio.get_running_loop().time() + self.config.page_timeout
        fetch_total = page_size + session.offset + self.config.overfetch_margin

        top = top_engaged(history, current_interest)
        pool = [i for i in self.config.interests if i not in (current_interest, top)]
        self._rng.shuffle(pool)
        random_interests = pool[: self.config.random_fanout]

        quotas = compute_quotas(fetch_total, self.config.weights, has_top_engaged=top is not None)
        plans = plan_categories(
            current_interest, top, random_interests, quotas, self.config.random_fanout
        )
        logger.info(
            "Assembling feed user=%s interest=%s offset=%d fetch_total=%d top=%s random=%s quotas=%s",
            user_id, current_interest, session.offset, fetch_total, top, random_interests, quotas,
        )

        results = await self._fetch_all(plans, cancel)

        if cancel is not None and cancel.is_set():
            raise FetchCancelled()

        if not any(r.ok for r in results):
            return await self._fallback(session, current_interest, page_size, cancel, deadline)

        with tracer.start_as_current_span("merge"):
            batch: list[ContentItem] = []
            for result in results:
                batch.extend(_tag(result.items, result.plan.interest))
            fresh = _unseen(batch, session.seen_urls)
            self._rng.shuffle(fresh)
            items = fresh[:page_size]

        has_more = len(fresh) > len(items) or not all(r.came_back_short for r in results)
        logger.info(
            "Feed page user=%s interest=%s: %d items (%d fetched, %d unseen) mix=%s has_more=%s",
            user_id, current_interest, len(items), len(batch), len(fresh),
            _mix(items, current_interest, top), has_more,
        )
        return FeedPage(items=items, has_more=has_more)

    async def _fetch_category(
        self,
        plan: CategoryPlan,
        cancel: Optional[asyncio.Event],
    ) -> CategoryResult:
        with tracer.start_as_current_span("category_fetch") as span:
            span.set_attribute("feed.role", plan.role)
            span.set_attribute("feed.interest", plan.interest)
            span.set_attribute("feed.requested", plan.count)
            try:
                items = await fetch_with_retry(
                    self.source, plan.interest, plan.count, self.config.retry, cancel
                )
            except FetchCancelled:
                CATEGORY_FETCH_TOTAL.labels(role=plan.role, outcome="cancelled").inc()
                return CategoryResult(plan, cancelled=True)
            except FetchError as exc:
                logger.warning("Category %s (%s) failed: %s", plan.interest, plan.role, exc)
                CATEGORY_FETCH_TOTAL.labels(role=plan.role, outcome="failed").inc()
                return CategoryResult(plan, error=exc)
            CATEGORY_FETCH_TOTAL.labels(role=plan.role, outcome="ok").inc()
            span.set_attribute("feed.returned", len(items))
            return CategoryResult(plan, items=items)

    async def _fetch_all(
        self,
        plans: list[CategoryPlan],
        cancel: Optional[asyncio.Event],
    ) -> list[CategoryResult]:
        if not plans:
            return []
        tasks = [asyncio.create_task(self._fetch_category(plan, cancel)) for plan in plans]
        try:
            _, pending = await asyncio.wait(tasks, timeout=self.config.page_timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results = []
        for task, plan in zip(tasks, plans):
            if task in pending:
                logger.warning(
                    "Category %s (%s) exceeded the %.1fs page timeout",
                    plan.interest, plan.role, self.config.page_timeout,
                )
                CATEGORY_FETCH_TOTAL.labels(role=plan.role, outcome="failed").inc()
                results.append(
                    CategoryResult(plan, error=FetchError(plan.interest, "page timeout exceeded"))
                )
            else:
                results.append(task.result())
        return results

    async def _fallback(
        self,
        session: PaginationSession,
        current_interest: str,
        page_size: int,
        cancel: Optional[asyncio.Event],
        deadline: float,
    ) -> FeedPage:
        """Fetch the current interest alone, within what is left of the page timeout."""
        count = page_size + self.config.overfetch_margin
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            FEED_FALLBACK_TOTAL.labels(outcome="failed").inc()
            FEED_UNAVAILABLE_TOTAL.inc()
            logger.error("No page time left for a fallback fetch of %s", current_interest)
            raise FeedUnavailable(current_interest, "page timeout exceeded")
        policy = replace(
            self.config.retry,
            category_timeout=min(self.config.retry.category_timeout, remaining),
        )
        logger.warning(
            "All categories failed for %s; falling back to current interest only (count=%d)",
            current_interest, count,
        )
        try:
            fetched = await fetch_with_retry(
                self.source, current_interest, count, policy, cancel
            )
        except FetchError as exc:
            FEED_FALLBACK_TOTAL.labels(outcome="failed").inc()
            FEED_UNAVAILABLE_TOTAL.inc()
            logger.error("Fallback fetch for %s failed: %s", current_interest, exc)
            raise FeedUnavailable(current_interest, exc.message) from exc

        FEED_FALLBACK_TOTAL.labels(outcome="ok").inc()
        fresh = _unseen(_tag(fetched, current_interest), session.seen_urls)
        items = fresh[:page_size]
        has_more = len(fresh) > len(items) or len(fetched) >= count
        return FeedPage(items=items, has_more=has_more, used_fallback=True)


def _mix(items: Iterable[ContentItem], current: str, top: Optional[str]) -> dict[str, int]:
    mix = {ROLE_CURRENT: 0, ROLE_TOP_ENGAGED: 0, ROLE_RANDOM: 0}
    for item in items:
        if item.interest_tag == current:
            mix[ROLE_CURRENT] += 1
        elif top is not None and item.interest_tag == top:
            mix[ROLE_TOP_ENGAGED] += 1
        else:
            mix[ROLE_RANDOM] += 1
    return mix

"""Shared fixtures: a scriptable fake content source and fast engine config."""
import asyncio
import os
import random

# Must be set before curiofeed.config is imported anywhere
os.environ["TRACING_ENABLED"] = "false"
os.environ["FIRECRAWL_API_KEY"] = ""

import pytest

from curiofeed.config import FeedWeights
from curiofeed.errors import FetchError
from curiofeed.feed.blender import BlenderConfig, FeedBlender
from curiofeed.feed.fetcher import RetryPolicy
from curiofeed.feed.sessions import PaginationSession
from curiofeed.schemas import ContentItem, InterestEngagementSummary


def make_item(interest: str, n: int) -> ContentItem:
    host = f"{interest.lower()}.example.com"
    return ContentItem(
        title=f"{interest} story {n}",
        url=f"https://{host}/story/{n}",
        source_domain=host,
        excerpt=f"Excerpt for {interest} story {n}",
        interest_tag=interest,
    )


class FakeSource:
    """
    Deterministic content source: interest X always yields the same items
    X/0, X/1, ... up to `available` of them.

    `fail` lists interests that always fail, `hang` interests that never
    return, and `should_fail(interest, count)` overrides both for finer
    scripting.
    """
    name = "fake"

    def __init__(self, available=50, fail=(), hang=(), should_fail=None, fail_first=0):
        self.available = available
        self.fail = set(fail)
        self.hang = set(hang)
        self.should_fail = should_fail
        self.fail_first = fail_first
        self.calls: list[tuple[str, int]] = []

    def _available(self, interest: str) -> int:
        if isinstance(self.available, dict):
            return self.available.get(interest, 0)
        return self.available

    async def fetch(self, interest: str, count: int) -> list[ContentItem]:
        self.calls.append((interest, count))
        if interest in self.hang:
            await asyncio.sleep(3600)
        if len(self.calls) <= self.fail_first:
            raise FetchError(interest, "transient upstream error")
        if self.should_fail is not None:
            if self.should_fail(interest, count):
                raise FetchError(interest, "scripted failure")
        elif interest in self.fail:
            raise FetchError(interest, "upstream down")
        n = min(count, self._available(interest))
        return [make_item(interest, i) for i in range(n)]

    def counts_for(self, interest: str) -> list[int]:
        return [count for name, count in self.calls if name == interest]


FAST_RETRY = RetryPolicy(max_attempts=3, retry_delay=0.0, category_timeout=5.0)


def make_config(**overrides) -> BlenderConfig:
    values = dict(
        weights=FeedWeights(current_interest=0.6, top_engaged=0.25, random=0.15),
        overfetch_margin=10,
        random_fanout=2,
        page_timeout=5.0,
        retry=FAST_RETRY,
    )
    values.update(overrides)
    return BlenderConfig(**values)


def make_blender(source, seed: int = 7, **overrides) -> FeedBlender:
    return FeedBlender(source, make_config(**overrides), rng=random.Random(seed))


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def blender(source):
    return make_blender(source)


@pytest.fixture
def session():
    return PaginationSession("user-1", "Tech")


@pytest.fixture
def history():
    return [
        InterestEngagementSummary(interest_tag="Design", average_score=85, sample_count=10),
        InterestEngagementSummary(interest_tag="Business", average_score=60, sample_count=5),
        InterestEngagementSummary(interest_tag="Health", average_score=40, sample_count=3),
    ]

"""
Resilient fetcher — bounded retry around a single content source call.

  attempt 1 ──fail──▶ sleep retry_delay × 1 ──▶ attempt 2 ──fail──▶
  sleep retry_delay × 2 ──▶ attempt 3 ──fail──▶ FetchError (last cause)

The whole loop, sleeps included, is capped by `category_timeout`; hitting
the cap is a FetchError like any other failure. The request-wide cancel
event is checked before every attempt and raced against every backoff
sleep, so a cancelled request stops within one backoff interval with
FetchCancelled rather than burning its remaining attempts.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from curiofeed.config import settings
from curiofeed.errors import FetchCancelled, FetchError
from curiofeed.feed.source import ContentSource
from curiofeed.schemas import ContentItem
from curiofeed.telemetry import FETCH_ATTEMPTS_TOTAL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    retry_delay: float = 1.0
    category_timeout: float = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.fetch_max_attempts,
            retry_delay=settings.fetch_retry_delay,
            category_timeout=settings.fetch_category_timeout,
        )


def _cancellable_sleep(interest: str, cancel: Optional[asyncio.Event]):
    async def sleep(seconds: float) -> None:
        if cancel is None:
            await asyncio.sleep(seconds)
            return
        if cancel.is_set():
            raise FetchCancelled(interest)
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise FetchCancelled(interest)

    return sleep


def _log_retry(interest: str):
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Fetch attempt %d for %s failed: %s — retrying in %.1fs",
            retry_state.attempt_number,
            interest,
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    return before_sleep


async def _retry_loop(
    source: ContentSource,
    interest: str,
    count: int,
    policy: RetryPolicy,
    cancel: Optional[asyncio.Event],
) -> list[ContentItem]:
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.retry_delay, min=0),
        # CancelledError is not an Exception: a timeout or task cancel ends the loop
        retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(FetchCancelled),
        sleep=_cancellable_sleep(interest, cancel),
        before_sleep=_log_retry(interest),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                if cancel is not None and cancel.is_set():
                    raise FetchCancelled(interest)
                try:
                    items = await source.fetch(interest, count)
                except FetchCancelled:
                    raise
                except Exception:
                    FETCH_ATTEMPTS_TOTAL.labels(outcome="error").inc()
                    raise
                FETCH_ATTEMPTS_TOTAL.labels(outcome="ok").inc()
                return items
    except FetchCancelled:
        raise
    except FetchError as exc:
        raise FetchError(interest, exc.message, attempts=policy.max_attempts) from exc
    except Exception as exc:
        raise FetchError(interest, repr(exc), attempts=policy.max_attempts) from exc
    # AsyncRetrying always returns or raises inside the loop
    raise FetchError(interest, "retry loop ended without a result", attempts=policy.max_attempts)


async def fetch_with_retry(
    source: ContentSource,
    interest: str,
    count: int,
    policy: Optional[RetryPolicy] = None,
    cancel: Optional[asyncio.Event] = None,
) -> list[ContentItem]:
    """
    Fetch `count` items for `interest`, retrying with exponential backoff.

    Raises FetchError once every attempt failed or the category timeout hit,
    and FetchCancelled if `cancel` is set first.
    """
    policy = policy or RetryPolicy.from_settings()
    try:
        return await asyncio.wait_for(
            _retry_loop(source, interest, count, policy, cancel),
            timeout=policy.category_timeout,
        )
    except asyncio.TimeoutError as exc:
        raise FetchError(
            interest, f"timed out after {policy.category_timeout:.1f}s"
        ) from exc

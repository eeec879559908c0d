"""
Feed endpoints:
  POST   /feed          — next page of the blended feed for (user, interest)
  POST   /feed/reset    — manual refresh: start the feed over
  DELETE /feed/session  — feed view unmounted: drop the session

The server-side pagination session is the authoritative cursor. A request
with offset 0 (or refresh=true) on a session that has already served pages
restarts the feed; any other disagreement with the client's offset is
logged and ignored.

FeedUnavailable is returned as a retryable 503 so the UI can show
"try again" instead of an empty feed.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Sequence

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from opentelemetry import trace

from curiofeed.clients.firecrawl_client import firecrawl_client
from curiofeed.clients.redis_client import get_top_engaged_interests
from curiofeed.config import settings
from curiofeed.errors import FeedUnavailable, FetchCancelled
from curiofeed.feed.blender import BlenderConfig, FeedBlender
from curiofeed.feed.sessions import SessionState, SessionStore
from curiofeed.feed.source import ContentSource, StaticContentSource
from curiofeed.schemas import (
    ErrorResponse,
    FeedRequest,
    FeedResponse,
    InterestEngagementSummary,
    ResetRequest,
)
from curiofeed.telemetry import FEED_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)

HistoryReader = Callable[[str], Awaitable[Sequence[InterestEngagementSummary]]]

DISCONNECT_POLL_SECONDS = 0.5

static_source = StaticContentSource()
session_store = SessionStore(
    ttl_seconds=settings.session_ttl_seconds,
    max_entries=settings.session_max_entries,
)
_blender: FeedBlender | None = None


def active_content_source() -> ContentSource:
    """Firecrawl when an API key is configured, canned links otherwise."""
    if settings.firecrawl_api_key:
        return firecrawl_client
    return static_source


# ── Dependencies (overridden in tests) ────────────────────────────────────

def get_blender() -> FeedBlender:
    global _blender
    if _blender is None:
        _blender = FeedBlender(active_content_source(), BlenderConfig.from_settings())
    return _blender


def get_session_store() -> SessionStore:
    return session_store


def get_history_reader() -> HistoryReader:
    return get_top_engaged_interests


async def _watch_disconnect(request: Request, cancel: asyncio.Event) -> None:
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling feed assembly")
            cancel.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post(
    "",
    response_model=FeedResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
)
async def get_feed(
    body: FeedRequest,
    request: Request,
    blender: FeedBlender = Depends(get_blender),
    store: SessionStore = Depends(get_session_store),
    read_history: HistoryReader = Depends(get_history_reader),
):
    start_time = time.time()
    page_size = body.limit or settings.feed_page_size

    session = store.session_for(body.user_id, body.interest)
    # Held from here on so eviction cannot drop the session mid-request
    with session.in_use():
        if body.refresh or (body.offset == 0 and session.state is not SessionState.FRESH):
            await store.reset(body.user_id, body.interest)
        elif body.offset != session.offset:
            logger.debug(
                "Client offset %d differs from session offset %d (user=%s); using session",
                body.offset, session.offset, body.user_id,
            )

        if body.engagement_data is not None:
            history = body.engagement_data
        else:
            history = await read_history(body.user_id)

        cancel = asyncio.Event()
        watcher = asyncio.create_task(_watch_disconnect(request, cancel))
        try:
            page = await blender.assemble_feed(
                session, body.user_id, body.interest, history, page_size, cancel
            )
        except FeedUnavailable as exc:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=ErrorResponse(
                    error="We couldn't load your feed right now. Please try again.",
                    retryable=exc.retryable,
                ).model_dump(),
            )
        except FetchCancelled:
            # Nobody is listening any more; the session was left untouched
            return Response(status_code=499)
        finally:
            cancel.set()
            watcher.cancel()

    FEED_LATENCY.observe(time.time() - start_time)
    return FeedResponse(
        data=page.items,
        has_more=page.has_more,
        offset=session.offset,
        state=session.state.value,
    )


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_feed(body: ResetRequest, store: SessionStore = Depends(get_session_store)):
    """Manual refresh — previously served links may appear again."""
    await store.reset(body.user_id, body.interest)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def drop_session(
    user_id: str = Query(..., alias="userId"),
    interest: str = Query(...),
    store: SessionStore = Depends(get_session_store),
):
    store.discard(user_id, interest)

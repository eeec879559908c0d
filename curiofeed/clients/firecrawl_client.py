"""
Firecrawl search client — the feed's content source.

One interest maps to a list of search queries (curiofeed.interests). The
client walks them in order against the search endpoint:

  POST {firecrawl_api_url}/v1/search
  Body: { "query": "tech news", "limit": 5 }

Response:
  { "success": true, "data": [ { "url", "title", "description",
                                 "markdown", "metadata": {...} } ] }

(newer API versions nest results under data.web; both are accepted).

Raw results are normalised into ContentItems. Results without a usable URL
are dropped silently — that is a data-quality filter, not a failure. A
query that errors is skipped; the call fails with FetchError only when
every query failed. No retries happen here; see curiofeed.feed.fetcher.
"""
import logging
import re
from typing import Optional
from urllib.parse import urlparse

import httpx

from curiofeed.config import settings
from curiofeed.errors import FetchError
from curiofeed.interests import search_queries
from curiofeed.schemas import ContentItem

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100
MAX_EXCERPT_LENGTH = 200
NO_EXCERPT = "No description available"
_MARKDOWN_NOISE = re.compile(r"[#*`]")


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def _source_domain(url: str) -> Optional[str]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return parsed.hostname.removeprefix("www.")


def normalize_result(raw: dict, interest: str) -> Optional[ContentItem]:
    """Map one provider result onto a ContentItem; None if it has no usable URL."""
    metadata = raw.get("metadata") or {}

    url = raw.get("url") or metadata.get("sourceURL")
    if not url:
        return None
    domain = _source_domain(url)
    if domain is None:
        return None

    title = metadata.get("title") or raw.get("title") or "Untitled"

    excerpt = raw.get("description") or metadata.get("description") or ""
    if not excerpt and raw.get("markdown"):
        first_paragraph = raw["markdown"].split("\n\n")[0]
        excerpt = _MARKDOWN_NOISE.sub("", first_paragraph).strip()

    return ContentItem(
        title=_truncate(title, MAX_TITLE_LENGTH),
        url=url,
        source_domain=domain,
        excerpt=_truncate(excerpt, MAX_EXCERPT_LENGTH) or NO_EXCERPT,
        image_url=metadata.get("image") or None,
        interest_tag=interest,
    )


def _extract_results(body: dict) -> list[dict]:
    data = body.get("data")
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("web") or []
    return []


class FirecrawlClient:
    name = "firecrawl"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        results_per_query: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.firecrawl_api_url
        self.api_key = api_key if api_key is not None else settings.firecrawl_api_key
        self.timeout = timeout or settings.firecrawl_request_timeout
        self.results_per_query = results_per_query or settings.firecrawl_results_per_query
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def search(self, query: str, limit: int) -> list[dict]:
        """Run one provider search and return its raw results."""
        if self._http is None:
            raise RuntimeError("Firecrawl client not started — call start() at startup")
        resp = await self._http.post("/v1/search", json={"query": query, "limit": limit})
        resp.raise_for_status()
        body = resp.json()
        if not body.get("success", False):
            raise ValueError(body.get("error") or "search failed")
        return _extract_results(body)

    async def fetch(self, interest: str, count: int) -> list[ContentItem]:
        queries = search_queries(interest)
        raw_results: list[dict] = []
        failed = 0
        last_exc: Optional[Exception] = None

        for query in queries:
            try:
                results = await self.search(query, self.results_per_query)
            except (httpx.HTTPError, ValueError) as exc:
                failed += 1
                last_exc = exc
                logger.warning("Search failed (interest=%s, query=%r): %s", interest, query, exc)
                continue
            logger.debug("Search %r returned %d results", query, len(results))
            raw_results.extend(results)
            # Collect extra to absorb results dropped by normalisation
            if len(raw_results) >= count * 2:
                break

        if last_exc is not None and failed == len(queries):
            raise FetchError(interest, f"all {failed} search queries failed: {last_exc}") from last_exc

        items: list[ContentItem] = []
        seen: set[str] = set()
        for raw in raw_results:
            item = normalize_result(raw, interest)
            if item is None or item.url in seen:
                continue
            seen.add(item.url)
            items.append(item)
            if len(items) >= count:
                break

        logger.info("Fetched %d items for %s (%d raw)", len(items), interest, len(raw_results))
        return items


# Singleton: started/stopped in app lifespan (main.py)
firecrawl_client = FirecrawlClient()

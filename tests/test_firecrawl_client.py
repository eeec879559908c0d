"""Tests for curiofeed/clients/firecrawl_client.py — normalisation and search walking."""
import asyncio
import json

import httpx
import pytest

from curiofeed.clients.firecrawl_client import NO_EXCERPT, FirecrawlClient, normalize_result
from curiofeed.errors import FetchError


def result(n, **extra):
    raw = {
        "url": f"https://www.site{n}.com/post",
        "title": f"Post {n}",
        "description": f"Description {n}",
    }
    raw.update(extra)
    return raw


def run_fetch(handler, interest="Tech", count=3, results_per_query=5):
    async def go():
        client = FirecrawlClient(
            base_url="https://firecrawl.test",
            api_key="test-key",
            timeout=5.0,
            results_per_query=results_per_query,
            transport=httpx.MockTransport(handler),
        )
        await client.start()
        try:
            return await client.fetch(interest, count)
        finally:
            await client.stop()

    return asyncio.run(go())


class TestNormalizeResult:
    def test_basic_fields(self):
        item = normalize_result(result(1, metadata={"image": "https://img/1.png"}), "Tech")
        assert item.url == "https://www.site1.com/post"
        assert item.source_domain == "site1.com"
        assert item.title == "Post 1"
        assert item.excerpt == "Description 1"
        assert item.image_url == "https://img/1.png"
        assert item.interest_tag == "Tech"

    def test_metadata_title_wins(self):
        item = normalize_result(result(1, metadata={"title": "Meta title"}), "Tech")
        assert item.title == "Meta title"

    def test_url_falls_back_to_source_url(self):
        item = normalize_result({"metadata": {"sourceURL": "https://blog.dev/x"}}, "Tech")
        assert item.url == "https://blog.dev/x"
        assert item.title == "Untitled"

    def test_missing_url_is_dropped(self):
        assert normalize_result({"title": "No link"}, "Tech") is None

    def test_unparseable_url_is_dropped(self):
        assert normalize_result({"url": "not a url"}, "Tech") is None

    def test_long_title_truncated(self):
        item = normalize_result(result(1, title="x" * 150), "Tech")
        assert len(item.title) == 100
        assert item.title.endswith("...")

    def test_long_excerpt_truncated(self):
        item = normalize_result(result(1, description="y" * 250), "Tech")
        assert len(item.excerpt) == 200
        assert item.excerpt == "y" * 197 + "..."

    def test_excerpt_from_markdown_first_paragraph(self):
        raw = {"url": "https://a.com", "markdown": "# Hello *world* `code`\n\nSecond paragraph"}
        item = normalize_result(raw, "Tech")
        assert item.excerpt == "Hello world code"

    def test_metadata_description_before_markdown(self):
        raw = {"url": "https://a.com", "metadata": {"description": "meta"}, "markdown": "md"}
        assert normalize_result(raw, "Tech").excerpt == "meta"

    def test_empty_excerpt_placeholder(self):
        assert normalize_result({"url": "https://a.com"}, "Tech").excerpt == NO_EXCERPT


class TestFetch:
    def test_walks_queries_until_twice_the_count(self):
        queries = []

        def handler(request):
            body = json.loads(request.content)
            queries.append(body["query"])
            assert body["limit"] == 5
            assert request.headers["Authorization"] == "Bearer test-key"
            start = len(queries) * 10
            return httpx.Response(200, json={"success": True, "data": [result(start + i) for i in range(5)]})

        items = run_fetch(handler, count=2)
        # 5 raw results already cover 2 × 2
        assert queries == ["tech news"]
        assert len(items) == 2

    def test_moves_to_next_query_when_short(self):
        queries = []

        def handler(request):
            queries.append(json.loads(request.content)["query"])
            start = len(queries) * 10
            return httpx.Response(200, json={"success": True, "data": [result(start + i) for i in range(2)]})

        items = run_fetch(handler, count=3)
        assert queries == ["tech news", "programming", "developer blogs"]
        assert len(items) == 3

    def test_dedupes_and_drops_bad_results(self):
        def handler(request):
            data = [result(1), result(1), {"title": "no url"}, result(2)]
            return httpx.Response(200, json={"success": True, "data": data})

        items = run_fetch(handler, count=2)
        assert [i.url for i in items] == ["https://www.site1.com/post", "https://www.site2.com/post"]

    def test_accepts_nested_web_results(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {"web": [result(1), result(2)]}})

        items = run_fetch(handler, interest="Other", count=2)
        assert len(items) == 2
        assert all(i.interest_tag == "Other" for i in items)

    def test_failed_queries_are_skipped(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) == 1:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json={"success": True, "data": [result(i) for i in range(5)]})

        items = run_fetch(handler, count=2)
        assert len(calls) == 2
        assert len(items) == 2

    def test_every_query_failing_raises(self):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(FetchError):
            run_fetch(handler, interest="Other")

    def test_unsuccessful_body_counts_as_failure(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "quota exceeded"})

        with pytest.raises(FetchError, match="quota exceeded"):
            run_fetch(handler, interest="Other")

    def test_no_results_is_not_an_error(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": []})

        assert run_fetch(handler, interest="Other") == []

    def test_search_requires_start(self):
        client = FirecrawlClient(base_url="https://firecrawl.test", api_key="k")
        with pytest.raises(RuntimeError):
            asyncio.run(client.search("tech news", 5))

#!/usr/bin/env python3
"""
Smoke test — walks a user through an infinite-scroll session against a
running CurioFeed API.

Checks:
  • engagement scoring for a few canned observations
  • several consecutive feed pages with no repeated URL
  • a manual refresh starts the feed over

Run after the API is up:
  python scripts/smoke_feed.py --api-url http://localhost:8000 --interest Tech
"""
import argparse
import json
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional


SAMPLE_OBSERVATIONS = [
    # (timeSpentMs, scrolled, action, expected score)
    (3000, True, "open", 90),
    (2500, False, "save", 70),
    (500, False, "not-interested", 0),
    (1200, True, "none", 10),
]

SAMPLE_HISTORY = [
    {"interestTag": "Design", "averageScore": 85, "sampleCount": 10},
    {"interestTag": "Business", "averageScore": 60, "sampleCount": 5},
    {"interestTag": "Health", "averageScore": 40, "sampleCount": 3},
]


@dataclass
class ApiClient:
    base_url: str

    def post(self, path: str, data: dict) -> tuple[int, Optional[dict]]:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode()
        req = urllib.request.Request(
            url, data=body, headers={"Content-Type": "application/json"}, method="POST"
        )
        try:
            with urllib.request.urlopen(req, timeout=60) as resp:
                raw = resp.read()
                return resp.status, json.loads(raw) if raw else None
        except urllib.error.HTTPError as e:
            body = e.read().decode()
            print(f"  HTTP {e.code} on POST {path}: {body}")
            return e.code, None

    def get(self, path: str) -> dict:
        url = f"{self.base_url}{path}"
        req = urllib.request.Request(url, method="GET")
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on GET {path}")
            return {}


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print(f"  API is ready (content source: {result.get('contentSource')})\n")
                return
        except (urllib.error.URLError, OSError):
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def check_scoring(client: ApiClient, user_id: str, interest: str) -> bool:
    print("Scoring engagement observations...")
    ok = True
    for spent, scrolled, action, expected in SAMPLE_OBSERVATIONS:
        _, result = client.post("/engagement/score", {
            "userId": user_id,
            "linkUrl": "https://example.com/article",
            "timeSpentMs": spent,
            "scrolled": scrolled,
            "action": action,
            "interestTag": interest,
        })
        score = (result or {}).get("score")
        mark = "✓" if score == expected else "✗"
        ok = ok and score == expected
        print(f"  {mark} {spent}ms scrolled={scrolled} action={action} → {score} (expected {expected})")
    return ok


def walk_feed(client: ApiClient, user_id: str, interest: str, pages: int, limit: int) -> bool:
    print(f"\nFetching {pages} pages of {limit} for {interest}...")
    seen: set[str] = set()
    offset = 0
    for page_no in range(1, pages + 1):
        status, result = client.post("/feed", {
            "userId": user_id,
            "interest": interest,
            "offset": offset,
            "limit": limit,
            "engagementData": SAMPLE_HISTORY,
        })
        if status == 503:
            print("  ✗ Feed unavailable (retryable) — is the content source reachable?")
            return False
        if result is None:
            return False
        urls = [item["url"] for item in result["data"]]
        repeats = seen.intersection(urls)
        seen.update(urls)
        offset = result["offset"]
        mix: dict[str, int] = {}
        for item in result["data"]:
            mix[item["interestTag"]] = mix.get(item["interestTag"], 0) + 1
        mark = "✗" if repeats else "✓"
        print(f"  {mark} page {page_no}: {len(urls)} items, mix={mix}, hasMore={result['hasMore']}")
        if repeats:
            print(f"    repeated URLs: {sorted(repeats)}")
            return False
        if not result["hasMore"]:
            print("  feed exhausted")
            break
    return True


def main(api_url: str, interest: str, pages: int, limit: int) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)
    user_id = f"smoke-{int(time.time())}"

    scoring_ok = check_scoring(client, user_id, interest)
    feed_ok = walk_feed(client, user_id, interest, pages, limit)

    print("\nRefreshing the feed...")
    status, _ = client.post("/feed/reset", {"userId": user_id, "interest": interest})
    print(f"  {'✓' if status == 204 else '✗'} reset returned HTTP {status}")

    print("\n" + "=" * 60)
    print(f"Scoring: {'OK' if scoring_ok else 'FAILED'}   Feed: {'OK' if feed_ok else 'FAILED'}")
    print(f"# Metrics: curl -s '{api_url}/metrics' | grep feed_")
    print("# Check Jaeger traces: http://localhost:16686")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Smoke-test the CurioFeed API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--interest", default="Tech", help="Interest to page through")
    parser.add_argument("--pages", type=int, default=3, help="Number of pages to fetch")
    parser.add_argument("--limit", type=int, default=10, help="Page size")
    args = parser.parse_args()
    main(args.api_url, args.interest, args.pages, args.limit)

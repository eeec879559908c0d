"""
Content source boundary.

A content source turns (interest, count) into normalised ContentItems with
a single upstream call and no retries; retrying belongs to the fetcher.
`StaticContentSource` serves canned links so the service runs end-to-end
in development when no search API key is configured.
"""
import logging
from typing import Protocol
from urllib.parse import urlparse

from curiofeed.schemas import ContentItem

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    name: str

    async def fetch(self, interest: str, count: int) -> list[ContentItem]:
        """Return up to `count` items for `interest`; raise FetchError on failure."""
        ...


_STATIC_LINKS: dict[str, list[tuple[str, str, str]]] = {
    "Tech": [
        ("Latest React 19 Features and Updates",
         "https://react.dev/blog/2024/12/05/react-19",
         "React 19 introduces improved server components, better error boundaries and performance work."),
        ("TypeScript 5.5 Released with New Performance Improvements",
         "https://devblogs.microsoft.com/typescript/announcing-typescript-5-5/",
         "TypeScript 5.5 brings performance improvements and new language features."),
        ("Building Scalable Web Applications with Next.js 15",
         "https://nextjs.org/blog/next-15",
         "What changed in Next.js 15 and how it affects large applications."),
    ],
    "Design": [
        ("Design Systems: Building Consistent UI Components",
         "https://design.systems/articles/building-design-systems",
         "How teams keep UI components consistent as products grow."),
        ("The Future of Web Design: Trends for 2025",
         "https://designtrends.com/web-design-2025",
         "Typography, motion and colour trends shaping the web this year."),
    ],
    "Business": [
        ("Startup Funding Trends in 2025",
         "https://techcrunch.com/startup-funding-2025",
         "Where venture money is going and what founders should expect."),
        ("Remote Work: Building High-Performance Teams",
         "https://hbr.org/remote-work-teams",
         "Practices that distributed teams use to stay aligned."),
    ],
    "Health": [
        ("Mental Health in Tech: A Developer's Guide",
         "https://dev.to/mental-health-tech",
         "Recognising burnout early and building sustainable habits."),
        ("The Science of Sleep: Optimizing Rest for Productivity",
         "https://sleepfoundation.org/productivity-sleep",
         "What current research says about sleep and focus."),
    ],
    "Finance": [
        ("Cryptocurrency Market Analysis: 2025 Outlook",
         "https://coindesk.com/crypto-2025-outlook",
         "Analysts weigh in on the year ahead for digital assets."),
        ("Personal Finance: Building Wealth in Your 20s and 30s",
         "https://nerdwallet.com/wealth-building-guide",
         "A practical guide to saving, investing and avoiding debt traps."),
    ],
    "Other": [
        ("Climate Change: Latest Research and Solutions",
         "https://climate.gov/latest-research",
         "A roundup of recent climate findings and mitigation work."),
        ("Space Exploration: Mars Mission Updates",
         "https://nasa.gov/mars-missions",
         "Status of current and planned missions to Mars."),
    ],
}


class StaticContentSource:
    name = "static"

    def __init__(self, links: dict[str, list[tuple[str, str, str]]] | None = None) -> None:
        self._links = links if links is not None else _STATIC_LINKS

    async def fetch(self, interest: str, count: int) -> list[ContentItem]:
        items = [
            ContentItem(
                title=title,
                url=url,
                source_domain=urlparse(url).netloc.removeprefix("www."),
                excerpt=excerpt,
                interest_tag=interest,
            )
            for title, url, excerpt in self._links.get(interest, [])
        ]
        logger.debug("Static source served %d items for %s", min(count, len(items)), interest)
        return items[:count]

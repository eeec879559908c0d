"""
Interest catalogue and the interest → search-query lookup table.

The content source turns one interest into a list of provider queries and
walks them in order until it has enough results. `Other` has no curated
terms; it is searched by its own name.
"""

INTEREST_OPTIONS: tuple[str, ...] = (
    "Tech",
    "Design",
    "Business",
    "Health",
    "Finance",
    "Other",
)

SEARCH_TERMS: dict[str, tuple[str, ...]] = {
    "Tech": (
        "tech news", "programming", "developer blogs", "software engineering",
        "artificial intelligence", "machine learning", "web development", "mobile apps",
        "cybersecurity", "cloud computing", "data science", "blockchain technology",
    ),
    "Design": (
        "design trends", "UI UX", "design inspiration", "graphic design",
        "web design", "product design", "design thinking", "typography",
        "branding", "creative design", "user experience", "design systems",
    ),
    "Business": (
        "startup news", "business trends", "entrepreneurship", "innovation",
        "business strategy", "market analysis", "leadership", "management",
        "venture capital", "business development", "corporate news", "industry insights",
    ),
    "Health": (
        "health tips", "wellness", "fitness", "nutrition",
        "mental health", "medical news", "healthy lifestyle", "diet",
        "exercise", "preventive care", "health research", "wellness trends",
    ),
    "Finance": (
        "financial news", "investment", "cryptocurrency", "stock market",
        "personal finance", "economic trends", "trading", "fintech",
        "banking", "financial planning", "market analysis", "investment strategies",
    ),
    "Other": (),
}


def is_known_interest(interest: str) -> bool:
    return interest in INTEREST_OPTIONS


def search_queries(interest: str) -> list[str]:
    """Return the provider queries for an interest, in priority order."""
    terms = SEARCH_TERMS.get(interest)
    if not terms:
        return [interest.lower()]
    return list(terms)

"""Interest ranker: picks the secondary interest for the top-engaged slot."""
from typing import Iterable, Optional

from curiofeed.schemas import InterestEngagementSummary


def rank_interests(
    history: Iterable[InterestEngagementSummary],
) -> list[InterestEngagementSummary]:
    """Sort summaries by average score, highest first.

    The sort is stable, so entries with equal scores keep the caller's order.
    """
    return sorted(history, key=lambda s: s.average_score, reverse=True)


def top_engaged(
    history: Iterable[InterestEngagementSummary],
    exclude: str,
) -> Optional[str]:
    """
    Return the most-engaged interest other than `exclude`.

    Only interests with a positive average score qualify. Returns None for a
    user with no usable history.
    """
    for summary in rank_interests(history):
        if summary.interest_tag != exclude and summary.average_score > 0:
            return summary.interest_tag
    return None

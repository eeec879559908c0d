"""
Engagement scorer.

score = clamp(0, 100, dwell bonus + scroll bonus + action delta)

The formula is shared with the clients, which compute the same score
locally, so the constants here must not drift.
"""
from curiofeed.schemas import EngagementAction, EngagementObservation

DWELL_THRESHOLD_MS = 2000
DWELL_BONUS = 50
SCROLL_BONUS = 10
ACTION_DELTAS = {
    EngagementAction.NONE: 0,
    EngagementAction.OPEN: 30,
    EngagementAction.SAVE: 20,
    EngagementAction.NOT_INTERESTED: -20,
}
MIN_SCORE = 0
MAX_SCORE = 100


def score_engagement(obs: EngagementObservation) -> int:
    score = 0
    if obs.time_spent_ms > DWELL_THRESHOLD_MS:
        score += DWELL_BONUS
    if obs.scrolled:
        score += SCROLL_BONUS
    score += ACTION_DELTAS[obs.action]
    return min(MAX_SCORE, max(MIN_SCORE, score))

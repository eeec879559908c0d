"""Tests for curiofeed/feed/scoring.py — engagement score formula."""
import pytest

from curiofeed.feed.scoring import score_engagement
from curiofeed.schemas import EngagementAction, EngagementObservation


def obs(time_spent_ms=0, scrolled=False, action=EngagementAction.NONE):
    return EngagementObservation(
        user_id="u1",
        link_url="https://example.com/a",
        time_spent_ms=time_spent_ms,
        scrolled=scrolled,
        action=action,
        interest_tag="Tech",
    )


class TestScoreEngagement:
    def test_long_dwell_scroll_and_open(self):
        assert score_engagement(obs(3000, True, EngagementAction.OPEN)) == 90

    def test_not_interested_clamps_to_zero(self):
        assert score_engagement(obs(500, False, EngagementAction.NOT_INTERESTED)) == 0

    def test_save_adds_twenty(self):
        assert score_engagement(obs(2500, False, EngagementAction.SAVE)) == 70

    def test_dwell_threshold_is_strict(self):
        assert score_engagement(obs(2000)) == 0
        assert score_engagement(obs(2001)) == 50

    def test_scroll_only(self):
        assert score_engagement(obs(100, True)) == 10

    def test_not_interested_after_long_dwell(self):
        assert score_engagement(obs(5000, True, EngagementAction.NOT_INTERESTED)) == 40

    @pytest.mark.parametrize("spent", [0, 1999, 2001, 10_000_000])
    @pytest.mark.parametrize("scrolled", [True, False])
    @pytest.mark.parametrize("action", list(EngagementAction))
    def test_always_within_bounds(self, spent, scrolled, action):
        score = score_engagement(obs(spent, scrolled, action))
        assert 0 <= score <= 100
        assert score == score_engagement(obs(spent, scrolled, action))

    def test_parses_wire_format(self):
        observation = EngagementObservation.model_validate({
            "userId": "u1",
            "linkUrl": "https://example.com/a",
            "timeSpentMs": 4200,
            "scrolled": True,
            "action": "not-interested",
            "interestTag": "Design",
        })
        assert observation.action is EngagementAction.NOT_INTERESTED
        assert score_engagement(observation) == 40

"""Tests for curiofeed/feed/ranking.py — top-engaged interest selection."""
from curiofeed.feed.ranking import rank_interests, top_engaged
from curiofeed.schemas import InterestEngagementSummary


def summary(interest, avg, count=1):
    return InterestEngagementSummary(interest_tag=interest, average_score=avg, sample_count=count)


class TestTopEngaged:
    def test_picks_highest_other_interest(self, history):
        assert top_engaged(history, exclude="Tech") == "Design"

    def test_skips_current_interest(self, history):
        assert top_engaged(history, exclude="Design") == "Business"

    def test_does_not_rely_on_caller_order(self):
        history = [summary("Health", 20), summary("Finance", 75), summary("Design", 50)]
        assert top_engaged(history, exclude="Tech") == "Finance"

    def test_ignores_non_positive_scores(self):
        history = [summary("Design", 0), summary("Health", -5)]
        assert top_engaged(history, exclude="Tech") is None

    def test_new_user_has_no_top_interest(self):
        assert top_engaged([], exclude="Tech") is None

    def test_only_current_interest_engaged(self):
        assert top_engaged([summary("Tech", 90)], exclude="Tech") is None


class TestRankInterests:
    def test_sorts_descending(self):
        ranked = rank_interests([summary("A", 1), summary("B", 3), summary("C", 2)])
        assert [s.interest_tag for s in ranked] == ["B", "C", "A"]

    def test_ties_keep_caller_order(self):
        ranked = rank_interests([summary("Design", 50), summary("Business", 50)])
        assert [s.interest_tag for s in ranked] == ["Design", "Business"]
        assert top_engaged(ranked, exclude="Tech") == "Design"

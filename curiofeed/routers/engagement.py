"""
Engagement endpoints:
  POST /engagement/score                    — score one observation (pure, nothing stored)
  GET  /engagement/{user_id}/top-interests  — per-interest averages, best first

Recording observations is the engagement writer's job; this service only
scores them and reads the aggregated history.
"""
import logging

from fastapi import APIRouter, Depends, Query

from curiofeed.feed.scoring import score_engagement
from curiofeed.routers.feed import HistoryReader, get_history_reader
from curiofeed.schemas import EngagementObservation, InterestEngagementSummary, ScoreResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/score", response_model=ScoreResponse)
async def score(obs: EngagementObservation):
    return ScoreResponse(score=score_engagement(obs))


@router.get("/{user_id}/top-interests", response_model=list[InterestEngagementSummary])
async def top_interests(
    user_id: str,
    limit: int = Query(5, ge=1, le=20),
    read_history: HistoryReader = Depends(get_history_reader),
):
    history = await read_history(user_id)
    return list(history)[:limit]

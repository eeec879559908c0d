"""
Pydantic request / response schemas.

These double as the engine's data model: the content source produces
`ContentItem`s, the scorer consumes `EngagementObservation`s and the ranker
consumes `InterestEngagementSummary`s. The wire format is camelCase; Python
code uses the snake_case attribute names.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from curiofeed.interests import INTEREST_OPTIONS, is_known_interest


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_interest(value: str) -> str:
    if not is_known_interest(value):
        raise ValueError(f"unknown interest {value!r}; expected one of {list(INTEREST_OPTIONS)}")
    return value


# ──────────────────────────── Content ─────────────────────────────────────

class ContentItem(BaseModel):
    """One link card. `url` is the identity used for deduplication."""
    title: str
    url: str
    source_domain: str = Field(..., alias="sourceDomain")
    excerpt: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    interest_tag: str = Field(..., alias="interestTag")

    class Config:
        frozen = True
        populate_by_name = True


# ──────────────────────────── Engagement ──────────────────────────────────

class EngagementAction(str, Enum):
    NONE = "none"
    OPEN = "open"
    SAVE = "save"
    NOT_INTERESTED = "not-interested"


class EngagementObservation(BaseModel):
    user_id: str = Field(..., alias="userId")
    link_url: str = Field(..., alias="linkUrl")
    time_spent_ms: int = Field(..., alias="timeSpentMs", ge=0)
    scrolled: bool = False
    action: EngagementAction = EngagementAction.NONE
    interest_tag: str = Field(..., alias="interestTag")
    timestamp: datetime = Field(default_factory=_utcnow)

    class Config:
        frozen = True
        populate_by_name = True


class InterestEngagementSummary(BaseModel):
    interest_tag: str = Field(..., alias="interestTag")
    average_score: float = Field(..., alias="averageScore")
    sample_count: int = Field(0, alias="sampleCount", ge=0)

    class Config:
        frozen = True
        populate_by_name = True


class ScoreResponse(BaseModel):
    score: int


# ──────────────────────────── Feed ────────────────────────────────────────

class FeedRequest(BaseModel):
    interest: str
    user_id: str = Field(..., alias="userId", min_length=1)
    offset: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, ge=1, le=50)
    refresh: bool = False
    # Optional client-supplied history; when absent it is read from Redis.
    engagement_data: Optional[list[InterestEngagementSummary]] = Field(
        None, alias="engagementData"
    )

    class Config:
        populate_by_name = True

    @field_validator("interest")
    @classmethod
    def interest_must_be_known(cls, value: str) -> str:
        return _check_interest(value)


class FeedResponse(BaseModel):
    data: list[ContentItem]
    has_more: bool = Field(..., alias="hasMore")
    offset: int
    state: str

    class Config:
        populate_by_name = True


class ResetRequest(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    interest: str

    class Config:
        populate_by_name = True

    @field_validator("interest")
    @classmethod
    def interest_must_be_known(cls, value: str) -> str:
        return _check_interest(value)


class ErrorResponse(BaseModel):
    error: str
    retryable: bool = False

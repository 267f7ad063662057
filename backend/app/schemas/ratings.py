"""
Rating request/response schemas.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from app.services.rating_categories import RatingCategory
from app.services.rating_types import Outcome


def _clean_item_id(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("item id cannot be blank")
    if len(v) > 200:
        raise ValueError("item id cannot exceed 200 characters")
    return v


class StartSessionRequest(BaseModel):
    """Payload for POST /ratings/sessions."""

    item_id: str
    category: RatingCategory

    @field_validator("item_id")
    @classmethod
    def clean_item_id(cls, v: str) -> str:
        return _clean_item_id(v)


class RecordComparisonRequest(BaseModel):
    """Payload for POST /ratings/sessions/{session_id}/comparisons."""

    opponent_id: str
    outcome: Outcome

    @field_validator("opponent_id")
    @classmethod
    def clean_opponent_id(cls, v: str) -> str:
        return _clean_item_id(v)


class NextStepResponse(BaseModel):
    """Either an opponent to compare against, or the resolved rating."""

    resolved: bool
    opponent_id: str | None = None
    opponent_rating: float | None = None
    final_rating: float | None = None


class SessionResponse(BaseModel):
    session_id: UUID
    item_id: str
    category: RatingCategory
    mode: str  # bootstrap | bisection
    state: str
    comparisons: int
    next_step: NextStepResponse


class CommitResponse(BaseModel):
    session_id: UUID
    item_id: str
    final_rating: float
    updated_count: int
    failed_item_ids: list[str]


class CategoryItem(BaseModel):
    category: RatingCategory
    order: int
    label: str
    description: str
    lower_bound: float
    upper_bound: float
    seed: float


class RatingListItem(BaseModel):
    """Single item in the rated-list response."""

    item_id: str
    rating: float
    category: RatingCategory
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RatingProgress(BaseModel):
    rated_count: int
    required_count: int
    calibrated: bool

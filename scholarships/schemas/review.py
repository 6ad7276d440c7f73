"""Review schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from scholarships.utils.constants import Recommendation


class ReviewCreate(BaseModel):
    score: float = Field(..., ge=0, le=100)
    recommendation: Recommendation
    comments: str = Field("", max_length=5000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    reviewer_id: str
    score: float
    recommendation: Recommendation
    comments: Optional[str] = ""
    created_at: datetime


class ReviewSummaryResponse(BaseModel):
    """Consolidated review signal."""

    model_config = ConfigDict(from_attributes=True)

    application_id: UUID
    mean_score: Optional[float] = None
    recommendation: Optional[Recommendation] = None
    review_count: int
    complete: bool

"""Batch decision schemas."""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DecisionOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    application_id: UUID
    application_number: str
    outcome: str
    rank: Optional[int] = None
    mean_score: Optional[float] = None
    reason: Optional[str] = None


class BatchDecisionResponse(BaseModel):
    """Per-application outcome list of a batch decision (or its dry run)."""

    model_config = ConfigDict(from_attributes=True)

    cycle_id: UUID
    slots_at_start: int
    remaining_slots: int
    dry_run: bool = False
    approved: List[DecisionOutcomeResponse] = Field(default_factory=list)
    rejected: List[DecisionOutcomeResponse] = Field(default_factory=list)
    deferred: List[DecisionOutcomeResponse] = Field(default_factory=list)
    excluded: List[DecisionOutcomeResponse] = Field(default_factory=list)
    failed: List[DecisionOutcomeResponse] = Field(default_factory=list)

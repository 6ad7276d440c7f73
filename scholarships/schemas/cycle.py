"""Scholarship cycle schemas."""

from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from scholarships.utils.constants import CycleStatus


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored columns are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CycleCreate(BaseModel):
    """Create a scholarship cycle (admin)."""

    program_name: str = Field(..., min_length=1, max_length=255)
    academic_year: str = Field(..., min_length=4, max_length=20, examples=["2024-2025"])
    display_name: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = None
    award_amount: float = Field(..., ge=0)
    total_slots: int = Field(..., ge=0)
    application_start: datetime
    application_end: datetime
    eligibility_criteria: List[Any] = Field(default_factory=list)

    @field_validator("application_start", "application_end")
    @classmethod
    def window_in_utc(cls, v):
        return _naive_utc(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.application_end <= self.application_start:
            raise ValueError("application_end must be after application_start")
        return self


class CycleUpdate(BaseModel):
    """Edit a DRAFT or SUSPENDED cycle (admin). Only fields that are sent change."""

    program_name: Optional[str] = Field(None, min_length=1, max_length=255)
    academic_year: Optional[str] = Field(None, min_length=4, max_length=20)
    display_name: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = None
    award_amount: Optional[float] = Field(None, ge=0)
    total_slots: Optional[int] = Field(None, ge=0)
    application_start: Optional[datetime] = None
    application_end: Optional[datetime] = None
    eligibility_criteria: Optional[List[Any]] = None

    @field_validator("application_start", "application_end")
    @classmethod
    def window_in_utc(cls, v):
        return _naive_utc(v)

    @model_validator(mode="after")
    def check_window(self):
        if (
            self.application_start is not None
            and self.application_end is not None
            and self.application_end <= self.application_start
        ):
            raise ValueError("application_end must be after application_start")
        return self


class CycleResponse(BaseModel):
    """Scholarship cycle with its slot counters."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    program_name: str
    academic_year: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    award_amount: float
    total_slots: int
    remaining_slots: int
    application_start: datetime
    application_end: datetime
    eligibility_criteria: List[Any] = Field(default_factory=list)
    status: CycleStatus
    created_at: datetime

"""
Pydantic schemas for Application APIs
Request/Response models
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from scholarships.utils.constants import ApplicationStatus


class ApplicationContent(BaseModel):
    """Free-form submission content; academic/financial info is opaque to the core."""

    motivation_letter: Optional[str] = Field(None, max_length=20000)
    academic_info: Optional[Dict[str, Any]] = Field(
        None, examples=[{"gpa": 3.8, "program": "Computer Science", "year_of_study": 3}]
    )
    financial_info: Optional[Dict[str, Any]] = Field(
        None, examples=[{"family_income": 35000, "dependents": 3}]
    )
    document_ids: Optional[List[str]] = None


class ApplicationCreate(ApplicationContent):
    """Create an application; `submit=true` submits it in the same request."""

    cycle_id: UUID
    submit: bool = False


class ApplicationUpdate(ApplicationContent):
    """Edit content while DRAFT or SUBMITTED."""


class DecisionRequest(BaseModel):
    """Single administrative decision."""

    outcome: ApplicationStatus = Field(..., description="APPROVED or REJECTED")
    notes: Optional[str] = Field(None, max_length=5000)
    score: Optional[float] = Field(None, ge=0, le=100)


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    actor_id: str
    notes: Optional[str] = None
    created_at: datetime


class ApplicationResponse(BaseModel):
    """Application as seen by its applicant and administrators."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_number: str
    applicant_id: str
    cycle_id: UUID
    motivation_letter: Optional[str] = ""
    academic_info: Dict[str, Any] = Field(default_factory=dict)
    financial_info: Dict[str, Any] = Field(default_factory=dict)
    document_ids: List[str] = Field(default_factory=list)
    score: Optional[float] = None
    status: ApplicationStatus
    created_at: datetime
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    decision_at: Optional[datetime] = None
    decision_by: Optional[str] = None
    decision_notes: Optional[str] = None


class ApplicationDetailResponse(ApplicationResponse):
    """Application including its ordered history timeline."""

    history: List[HistoryEntryResponse] = Field(default_factory=list)


class ApplicationListResponse(BaseModel):
    total: int
    offset: int
    limit: int
    applications: List[ApplicationResponse]

"""
Applications API
- Student: create, edit, submit and withdraw their own applications
- Reviewer: read applications, record reviews
- Admin: everything above plus review start and single decisions
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scholarships.api.deps import (
    get_db,
    get_history_log,
    get_review_aggregator,
    get_state_machine,
    require_admin,
    require_reviewer,
)
from scholarships.config import settings
from scholarships.core.security import Actor, get_current_actor
from scholarships.models.application import Application
from scholarships.schemas.application import (
    ApplicationCreate,
    ApplicationDetailResponse,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationUpdate,
    DecisionRequest,
    HistoryEntryResponse,
)
from scholarships.schemas.review import ReviewCreate, ReviewResponse, ReviewSummaryResponse
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.history_log import HistoryLog
from scholarships.services.review_aggregator import ReviewAggregator
from scholarships.utils.constants import ApplicationStatus

router = APIRouter()


def _content(payload) -> dict:
    return payload.model_dump(
        include={"motivation_letter", "academic_info", "financial_info", "document_ids"},
        exclude_none=True,
    )


# ==================== Student lifecycle ====================

@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    application_in: ApplicationCreate,
    actor: Actor = Depends(get_current_actor),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """
    Create an application for the current actor

    **Auth**: Student (JWT required)

    With `submit: true` the application is submitted immediately (create+submit).
    """
    return await machine.create(
        actor,
        application_in.cycle_id,
        content=_content(application_in),
        submit=application_in.submit,
    )


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    cycle_id: Optional[UUID] = None,
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    applicant_id: Optional[str] = None,
    submitted_from: Optional[datetime] = None,
    submitted_to: Optional[datetime] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    actor: Actor = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """
    List applications with filters and pagination

    **RBAC**: Reviewer, Admin

    **Filters**:
    - `cycle_id`: Filter by cycle
    - `status`: Filter by lifecycle status
    - `applicant_id`: Filter by applicant
    - `submitted_from`, `submitted_to`: Submission date range
    """
    query = select(Application)

    if cycle_id:
        query = query.where(Application.cycle_id == cycle_id)
    if status_filter:
        query = query.where(Application.status == status_filter.value)
    if applicant_id:
        query = query.where(Application.applicant_id == applicant_id)
    if submitted_from:
        query = query.where(Application.submitted_at >= submitted_from)
    if submitted_to:
        query = query.where(Application.submitted_at <= submitted_to)

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar_one()

    query = query.order_by(Application.created_at.desc(), Application.application_number)
    result = await db.execute(query.offset(offset).limit(limit))
    applications = result.scalars().all()

    return ApplicationListResponse(
        total=total,
        offset=offset,
        limit=limit,
        applications=[ApplicationResponse.model_validate(app) for app in applications],
    )


@router.get("/me", response_model=List[ApplicationResponse])
async def list_my_applications(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Applications belonging to the current actor, newest first

    **Auth**: Student (JWT required)
    """
    result = await db.execute(
        select(Application)
        .where(Application.applicant_id == actor.id)
        .order_by(Application.created_at.desc())
    )
    return result.scalars().all()


@router.get("/{application_id}", response_model=ApplicationDetailResponse)
async def get_application(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    machine: ApplicationStateMachine = Depends(get_state_machine),
    history: HistoryLog = Depends(get_history_log),
):
    """
    Application with its current state and history timeline

    **Auth**: the applicant, reviewers and admins
    """
    application = await machine.get(application_id)
    if actor.id != application.applicant_id and not actor.can_review:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view this application",
        )

    timeline = await history.timeline(application_id)
    return ApplicationDetailResponse(
        **ApplicationResponse.model_validate(application).model_dump(),
        history=[HistoryEntryResponse.model_validate(entry) for entry in timeline],
    )


@router.patch("/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: UUID,
    application_update: ApplicationUpdate,
    actor: Actor = Depends(get_current_actor),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """
    Edit motivation letter, academic/financial info or documents

    **Auth**: the applicant, while DRAFT or SUBMITTED
    """
    return await machine.update_content(actor, application_id, _content(application_update))


@router.patch("/{application_id}/submit", response_model=ApplicationResponse)
async def submit_application(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Submit a draft application (**Auth**: the applicant)"""
    return await machine.submit(actor, application_id)


@router.patch("/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: UUID,
    actor: Actor = Depends(get_current_actor),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """
    Withdraw an application before it is decided

    **Auth**: the applicant or an admin. Repeating the call is harmless.
    """
    return await machine.withdraw(actor, application_id)


# ==================== Review & decision ====================

@router.post("/{application_id}/begin-review", response_model=ApplicationResponse)
async def begin_review(
    application_id: UUID,
    actor: Actor = Depends(require_admin),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Move a submitted application to UNDER_REVIEW (**RBAC**: Admin)"""
    return await machine.begin_review(actor, application_id)


@router.post("/{application_id}/decision", response_model=ApplicationResponse)
async def decide_application(
    application_id: UUID,
    decision: DecisionRequest,
    actor: Actor = Depends(require_admin),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """
    Approve or reject a single application under review

    **RBAC**: Admin

    Approval takes one of the cycle's remaining slots; 409 when none are left.
    """
    return await machine.decide(
        actor, application_id, decision.outcome, notes=decision.notes, score=decision.score
    )


@router.post(
    "/{application_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    application_id: UUID,
    review_in: ReviewCreate,
    actor: Actor = Depends(require_reviewer),
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
):
    """
    Record the current reviewer's evaluation

    **RBAC**: Reviewer, Admin. One review per reviewer per application.
    """
    return await aggregator.record_review(
        actor,
        application_id,
        score=review_in.score,
        recommendation=review_in.recommendation,
        comments=review_in.comments,
    )


@router.get("/{application_id}/reviews", response_model=List[ReviewResponse])
async def list_reviews(
    application_id: UUID,
    actor: Actor = Depends(require_reviewer),
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
):
    """All reviews of an application (**RBAC**: Reviewer, Admin)"""
    await aggregator.machine.get(application_id)
    return await aggregator.reviews_for(application_id)


@router.get("/{application_id}/reviews/summary", response_model=ReviewSummaryResponse)
async def review_summary(
    application_id: UUID,
    actor: Actor = Depends(require_reviewer),
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
):
    """Mean score, majority recommendation and quorum status (**RBAC**: Reviewer, Admin)"""
    await aggregator.machine.get(application_id)
    return await aggregator.aggregate(application_id)

"""
Review Aggregator
Collects reviewer scores/recommendations and consolidates them into a single
signal per application.

Policy:
- mean score is the arithmetic average, clamped to [0, 100], 2 decimals
- recommendation is a plurality vote; any tie at the top resolves to WAITLIST
- fewer than REVIEW_QUORUM reviews means the aggregate is incomplete and the
  application must not be ranked
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from scholarships.config import settings
from scholarships.core.exceptions import (
    ConcurrentModification,
    IncompleteReview,
    InvalidDecision,
    InvalidScore,
    InvalidTransition,
    PermissionDenied,
    ReviewerConflict,
)
from scholarships.core.security import Actor
from scholarships.models.review import Review
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.utils.constants import (
    APPLICATION_TRANSITIONS,
    ApplicationStatus,
    HistoryAction,
    NotificationEventType,
    Recommendation,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AggregatedReview:
    """Consolidated review signal for one application."""

    application_id: UUID
    mean_score: Optional[float]
    recommendation: Optional[Recommendation]
    review_count: int
    complete: bool


def majority_recommendation(recommendations: Iterable[Recommendation]) -> Optional[Recommendation]:
    """Plurality vote; a tie for first place is resolved to WAITLIST."""
    counts = Counter(Recommendation(rec) for rec in recommendations)
    if not counts:
        return None
    top = max(counts.values())
    leaders = [rec for rec, count in counts.items() if count == top]
    if len(leaders) > 1:
        return Recommendation.WAITLIST
    return leaders[0]


def mean_score(scores: Sequence[float]) -> Optional[float]:
    if not scores:
        return None
    mean = sum(scores) / len(scores)
    mean = min(max(mean, settings.REVIEW_SCORE_MIN), settings.REVIEW_SCORE_MAX)
    return round(mean, 2)


def summarize(application_id: UUID, reviews: Sequence[Review], quorum: int) -> AggregatedReview:
    return AggregatedReview(
        application_id=application_id,
        mean_score=mean_score([review.score for review in reviews]),
        recommendation=majority_recommendation(review.recommendation for review in reviews),
        review_count=len(reviews),
        complete=len(reviews) >= quorum,
    )


class ReviewAggregator:
    """Writes immutable reviews and produces consolidated review signals."""

    def __init__(
        self,
        db: AsyncSession,
        machine: Optional[ApplicationStateMachine] = None,
        quorum: Optional[int] = None,
    ):
        self.db = db
        self.machine = machine or ApplicationStateMachine(db)
        self.quorum = quorum or settings.REVIEW_QUORUM

    async def record_review(
        self,
        reviewer: Actor,
        application_id: UUID,
        score: float,
        recommendation: Union[Recommendation, str],
        comments: str = "",
    ) -> Review:
        """
        Store one reviewer's evaluation.

        The first review moves a SUBMITTED application to UNDER_REVIEW in the
        same transaction. A second review by the same reviewer is rejected.
        """
        if not reviewer.can_review:
            raise PermissionDenied("Only reviewers may review applications", actor_id=reviewer.id)
        if not (settings.REVIEW_SCORE_MIN <= score <= settings.REVIEW_SCORE_MAX):
            raise InvalidScore(score, settings.REVIEW_SCORE_MIN, settings.REVIEW_SCORE_MAX)
        try:
            recommendation = Recommendation(recommendation)
        except ValueError:
            raise InvalidDecision(
                f"Unknown recommendation: {recommendation}", recommendation=recommendation
            )

        started_review = False
        try:
            application = await self.machine.get(application_id, for_update=True)
            if reviewer.id == application.applicant_id:
                raise PermissionDenied(
                    "Reviewers may not review their own application", actor_id=reviewer.id
                )
            if application.state not in APPLICATION_TRANSITIONS["review"]:
                raise InvalidTransition(application.state, "review", entity_id=application_id)

            existing = await self.db.execute(
                select(Review.id).where(
                    Review.application_id == application_id,
                    Review.reviewer_id == reviewer.id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ReviewerConflict(reviewer.id, application_id)

            review = Review(
                application_id=application_id,
                reviewer_id=reviewer.id,
                score=round(float(score), 2),
                comments=comments or "",
                recommendation=recommendation.value,
            )
            self.db.add(review)
            await self.db.flush()

            if application.state is ApplicationStatus.SUBMITTED:
                await self.machine.apply_begin_review(application, reviewer)
                started_review = True

            scores = await self._scores_for(application_id)
            application.score = mean_score(scores)
            application.reviewed_at = self.machine.clock()

            await self.machine.history.record(
                application_id,
                HistoryAction.REVIEW_RECORDED,
                reviewer.id,
                notes=f"{recommendation.value} ({review.score:g})",
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ReviewerConflict(reviewer.id, application_id)
        except StaleDataError:
            await self.db.rollback()
            raise ConcurrentModification(
                "The application was modified concurrently; retry the request",
                application_id=application_id,
            )
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "review_recorded",
            application_id=str(application_id),
            reviewer=reviewer.id,
            score=review.score,
            recommendation=recommendation.value,
            review_count=len(scores),
        )
        if started_review:
            await self.machine.notifier.emit(
                NotificationEventType.APPLICATION_UNDER_REVIEW, application, reviewer
            )
        return review

    async def reviews_for(self, application_id: UUID) -> List[Review]:
        result = await self.db.execute(
            select(Review)
            .where(Review.application_id == application_id)
            .order_by(Review.created_at.asc())
        )
        return list(result.scalars().all())

    async def aggregate(self, application_id: UUID) -> AggregatedReview:
        """Mean score, majority recommendation and completeness for one application."""
        reviews = await self.reviews_for(application_id)
        return summarize(application_id, reviews, self.quorum)

    async def aggregate_many(self, application_ids: Sequence[UUID]) -> Dict[UUID, AggregatedReview]:
        """Batch form of aggregate(); one query for all applications."""
        grouped: Dict[UUID, List[Review]] = defaultdict(list)
        if application_ids:
            result = await self.db.execute(
                select(Review)
                .where(Review.application_id.in_(list(application_ids)))
                .order_by(Review.created_at.asc())
            )
            for review in result.scalars().all():
                grouped[review.application_id].append(review)

        return {
            application_id: summarize(application_id, grouped.get(application_id, []), self.quorum)
            for application_id in application_ids
        }

    async def require_complete(self, application_id: UUID) -> AggregatedReview:
        """Aggregate, raising IncompleteReview when quorum is not met."""
        aggregated = await self.aggregate(application_id)
        if not aggregated.complete:
            raise IncompleteReview(application_id, aggregated.review_count, self.quorum)
        return aggregated

    async def _scores_for(self, application_id: UUID) -> List[float]:
        result = await self.db.execute(
            select(Review.score).where(Review.application_id == application_id)
        )
        return [float(score) for score in result.scalars().all()]

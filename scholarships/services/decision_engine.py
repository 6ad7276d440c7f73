"""
Decision Ranking Engine
Ranks the reviewed candidates of a closed cycle and partitions them into
award and reject sets bounded by the cycle's remaining slots.

Ranking order (total and deterministic):
1. aggregated mean score, highest first
2. submission time, earliest first
3. application number, as a final stable tie-break

Award decisions are applied strictly in rank order, so if slots run out
mid-batch (e.g. a concurrent manual award) the candidates left waiting are
always the lowest-ranked ones. Those are deferred, never rejected.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from scholarships.core.exceptions import (
    ConcurrentModification,
    InvalidTransition,
    PermissionDenied,
    SlotsExhausted,
)
from scholarships.core.security import Actor
from scholarships.models.application import Application
from scholarships.models.cycle import ScholarshipCycle
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.review_aggregator import AggregatedReview, ReviewAggregator
from scholarships.utils.constants import ApplicationStatus, CycleStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RankedCandidate:
    """Snapshot of an eligible application taken when ranking starts."""

    application_id: UUID
    application_number: str
    applicant_id: str
    mean_score: float
    submitted_at: Optional[datetime]
    review_count: int
    rank: int = 0


@dataclass
class DecisionOutcome:
    """Per-application result of a batch decision."""

    application_id: UUID
    application_number: str
    outcome: str  # APPROVED, REJECTED, DEFERRED, EXCLUDED, FAILED
    rank: Optional[int] = None
    mean_score: Optional[float] = None
    reason: Optional[str] = None


@dataclass
class BatchDecision:
    """Result of rank_and_decide / preview."""

    cycle_id: UUID
    slots_at_start: int
    remaining_slots: int
    approved: List[DecisionOutcome] = field(default_factory=list)
    rejected: List[DecisionOutcome] = field(default_factory=list)
    deferred: List[DecisionOutcome] = field(default_factory=list)
    excluded: List[DecisionOutcome] = field(default_factory=list)
    failed: List[DecisionOutcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def outcomes(self) -> List[DecisionOutcome]:
        """Every per-application outcome, award set first."""
        return self.approved + self.deferred + self.rejected + self.failed + self.excluded


def _rank_key(candidate: RankedCandidate) -> Tuple:
    submitted = candidate.submitted_at or datetime.max
    return (-candidate.mean_score, submitted, candidate.application_number)


def rank_candidates(
    applications: Sequence[Application], aggregates: Dict[UUID, AggregatedReview]
) -> List[RankedCandidate]:
    """Order complete candidates; incomplete aggregates must be filtered out beforehand."""
    candidates = [
        RankedCandidate(
            application_id=application.id,
            application_number=application.application_number,
            applicant_id=application.applicant_id,
            mean_score=aggregates[application.id].mean_score,
            submitted_at=application.submitted_at,
            review_count=aggregates[application.id].review_count,
        )
        for application in applications
    ]
    candidates.sort(key=_rank_key)
    return [
        replace(candidate, rank=position)
        for position, candidate in enumerate(candidates, start=1)
    ]


class DecisionRankingEngine:
    """Batch award/reject decisions for a closed cycle."""

    def __init__(
        self,
        db: AsyncSession,
        machine: Optional[ApplicationStateMachine] = None,
        aggregator: Optional[ReviewAggregator] = None,
    ):
        self.db = db
        self.machine = machine or ApplicationStateMachine(db)
        self.aggregator = aggregator or ReviewAggregator(db, machine=self.machine)

    async def preview(self, cycle_id: UUID) -> BatchDecision:
        """Compute the ranking and cut line without changing anything."""
        cycle = await self.machine.cycles.get_cycle(cycle_id)
        ranked, excluded, slots = await self._plan(cycle)

        batch = BatchDecision(
            cycle_id=cycle_id, slots_at_start=slots, remaining_slots=slots, dry_run=True
        )
        batch.excluded = excluded
        for candidate in ranked:
            if candidate.rank <= slots:
                batch.approved.append(self._outcome(candidate, "APPROVED"))
            else:
                batch.rejected.append(self._outcome(candidate, "REJECTED"))
        return batch

    async def rank_and_decide(self, actor: Actor, cycle_id: UUID) -> BatchDecision:
        """
        Decide every eligible UNDER_REVIEW application of a CLOSED cycle.

        Applications lacking quorum are excluded and stay UNDER_REVIEW. Award
        candidates that hit SlotsExhausted are deferred and stay UNDER_REVIEW.
        """
        if not actor.is_admin:
            raise PermissionDenied("Only administrators may run batch decisions", actor_id=actor.id)

        cycle = await self.machine.cycles.get_cycle(cycle_id)
        if cycle.state is not CycleStatus.CLOSED:
            raise InvalidTransition(cycle.state, "rank_and_decide", entity="cycle", entity_id=cycle_id)

        ranked, excluded, slots = await self._plan(cycle)
        award_set, reject_set = ranked[:slots], ranked[slots:]

        logger.info(
            "batch_decision_started",
            cycle_id=str(cycle_id),
            slots=slots,
            eligible=len(ranked),
            excluded=len(excluded),
            actor=actor.id,
        )

        batch = BatchDecision(cycle_id=cycle_id, slots_at_start=slots, remaining_slots=slots)
        batch.excluded = excluded

        # Strict rank order: a slot race always costs the lowest-ranked candidates
        for candidate in award_set:
            await self._decide_one(actor, candidate, ApplicationStatus.APPROVED, batch)

        for candidate in reject_set:
            await self._decide_one(actor, candidate, ApplicationStatus.REJECTED, batch)

        batch.remaining_slots = await self.machine.slots.remaining(cycle_id)

        logger.info(
            "batch_decision_completed",
            cycle_id=str(cycle_id),
            approved=len(batch.approved),
            rejected=len(batch.rejected),
            deferred=len(batch.deferred),
            excluded=len(batch.excluded),
            failed=len(batch.failed),
            remaining_slots=batch.remaining_slots,
        )
        return batch

    async def _decide_one(
        self,
        actor: Actor,
        candidate: RankedCandidate,
        outcome: ApplicationStatus,
        batch: BatchDecision,
    ) -> None:
        try:
            await self._decide_with_retry(actor, candidate, outcome)
        except SlotsExhausted:
            logger.warning(
                "award_deferred_slots_exhausted",
                application_id=str(candidate.application_id),
                rank=candidate.rank,
            )
            batch.deferred.append(
                self._outcome(candidate, "DEFERRED", reason="No award slots remain; manual follow-up required")
            )
            return
        except (InvalidTransition, ConcurrentModification) as exc:
            # Withdrawn or decided elsewhere after ranking started
            logger.warning(
                "batch_decision_item_failed",
                application_id=str(candidate.application_id),
                error=exc.code,
            )
            batch.failed.append(self._outcome(candidate, "FAILED", reason=exc.message))
            return

        target = batch.approved if outcome is ApplicationStatus.APPROVED else batch.rejected
        target.append(self._outcome(candidate, outcome.value))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=1),
        retry=retry_if_exception_type(ConcurrentModification),
        reraise=True,
    )
    async def _decide_with_retry(
        self, actor: Actor, candidate: RankedCandidate, outcome: ApplicationStatus
    ) -> None:
        """Transient version conflicts are retried; everything else surfaces at once."""
        await self.machine.decide(
            actor,
            candidate.application_id,
            outcome,
            notes=self.machine.default_notes(outcome),
            score=candidate.mean_score,
        )

    async def _plan(
        self, cycle: ScholarshipCycle
    ) -> Tuple[List[RankedCandidate], List[DecisionOutcome], int]:
        result = await self.db.execute(
            select(Application).where(
                Application.cycle_id == cycle.id,
                Application.status == ApplicationStatus.UNDER_REVIEW.value,
            )
        )
        applications = list(result.scalars().all())
        aggregates = await self.aggregator.aggregate_many([app.id for app in applications])

        eligible = [app for app in applications if aggregates[app.id].complete]
        excluded = [
            DecisionOutcome(
                application_id=app.id,
                application_number=app.application_number,
                outcome="EXCLUDED",
                mean_score=aggregates[app.id].mean_score,
                reason=(
                    f"Incomplete review: {aggregates[app.id].review_count} "
                    f"of {self.aggregator.quorum} required reviews"
                ),
            )
            for app in sorted(applications, key=lambda a: a.application_number)
            if not aggregates[app.id].complete
        ]

        ranked = rank_candidates(eligible, aggregates)
        slots = await self.machine.slots.remaining(cycle.id)
        return ranked, excluded, slots

    @staticmethod
    def _outcome(candidate: RankedCandidate, outcome: str, reason: Optional[str] = None) -> DecisionOutcome:
        return DecisionOutcome(
            application_id=candidate.application_id,
            application_number=candidate.application_number,
            outcome=outcome,
            rank=candidate.rank,
            mean_score=candidate.mean_score,
            reason=reason,
        )

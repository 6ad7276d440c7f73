"""
Application State Machine
Owns the lifecycle of a single application:

    DRAFT -> SUBMITTED -> UNDER_REVIEW -> APPROVED | REJECTED
    DRAFT | SUBMITTED | UNDER_REVIEW -> WITHDRAWN

Every transition commits state, slot and history together or not at all.
Submission does not touch slots; the only slot mutation is the reservation
made by decide(APPROVED).
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from scholarships.config import settings
from scholarships.core.exceptions import (
    ApplicationWindowClosed,
    ConcurrentModification,
    DuplicateApplication,
    InvalidDecision,
    InvalidScore,
    InvalidTransition,
    MissingDocuments,
    NotFound,
    PermissionDenied,
    SlotsExhausted,
)
from scholarships.core.security import Actor
from scholarships.models.application import Application
from scholarships.models.cycle import ScholarshipCycle
from scholarships.services.cycle_registry import CycleRegistry
from scholarships.services.document_service import DocumentService
from scholarships.services.history_log import HistoryLog
from scholarships.services.notification_service import NotificationService
from scholarships.services.slot_allocator import SlotAllocator
from scholarships.utils.constants import (
    APPLICATION_TRANSITIONS,
    NON_TERMINAL_STATUSES,
    ApplicationStatus,
    HistoryAction,
    NotificationEventType,
)
from scholarships.utils.helpers import utcnow

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = ("motivation_letter", "academic_info", "financial_info", "document_ids")
DECISION_OUTCOMES = (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)


class ApplicationStateMachine:
    """Enforces legal transitions of an application and their side effects."""

    def __init__(
        self,
        db: AsyncSession,
        documents: Optional[DocumentService] = None,
        notifier: Optional[NotificationService] = None,
        require_documents: Optional[bool] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.cycles = CycleRegistry(db)
        self.slots = SlotAllocator(db)
        self.history = HistoryLog(db)
        self.documents = documents or DocumentService()
        self.notifier = notifier or NotificationService(db)
        self.require_documents = (
            settings.REQUIRE_DOCUMENTS_ON_SUBMIT if require_documents is None else require_documents
        )
        self.clock = clock

    # ------------------------------------------------------------------ reads

    async def get(self, application_id: UUID, for_update: bool = False) -> Application:
        """Load an application, always refreshing any copy already in the session."""
        query = select(Application).where(Application.id == application_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query.execution_options(populate_existing=True))
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFound("Application", application_id)
        return application

    async def find_live(
        self, applicant_id: str, cycle_id: UUID, exclude_id: Optional[UUID] = None
    ) -> Optional[Application]:
        """The applicant's non-terminal application for the cycle, if any."""
        query = select(Application).where(
            Application.applicant_id == applicant_id,
            Application.cycle_id == cycle_id,
            Application.status.in_([status.value for status in NON_TERMINAL_STATUSES]),
        )
        if exclude_id is not None:
            query = query.where(Application.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    # ------------------------------------------------------------ transitions

    async def create(
        self,
        actor: Actor,
        cycle_id: UUID,
        content: Optional[Dict[str, Any]] = None,
        submit: bool = False,
    ) -> Application:
        """
        Create a DRAFT application for the acting applicant.

        With `submit=True` the draft is submitted in the same transaction, so a
        failed submission guard leaves nothing behind.
        """
        content = content or {}
        cycle = await self.cycles.get_cycle(cycle_id)

        existing = await self.find_live(actor.id, cycle_id)
        if existing is not None:
            raise DuplicateApplication(actor.id, cycle_id, existing.id)

        async with self._transaction(cycle_id=cycle_id, applicant_id=actor.id):
            application_number = await self.cycles.next_application_number(cycle_id)
            application = Application(
                application_number=application_number,
                applicant_id=actor.id,
                cycle_id=cycle_id,
                motivation_letter=content.get("motivation_letter") or "",
                academic_info=dict(content.get("academic_info") or {}),
                financial_info=dict(content.get("financial_info") or {}),
                document_ids=list(content.get("document_ids") or []),
                status=ApplicationStatus.DRAFT.value,
            )
            self.db.add(application)
            await self.db.flush()
            await self.history.record(application.id, HistoryAction.CREATED, actor.id)

            if submit:
                await self._apply_submit(application, cycle, actor)

        logger.info(
            "application_created",
            application_id=str(application.id),
            application_number=application.application_number,
            status=application.status,
            actor=actor.id,
        )
        event = (
            NotificationEventType.APPLICATION_SUBMITTED
            if submit
            else NotificationEventType.APPLICATION_CREATED
        )
        await self.notifier.emit(event, application, actor)
        return application

    async def update_content(
        self, actor: Actor, application_id: UUID, changes: Dict[str, Any]
    ) -> Application:
        """Applicant edits submission content while DRAFT or SUBMITTED."""
        async with self._transaction(application_id=application_id):
            application = await self.get(application_id, for_update=True)
            self._require_owner(actor, application, "edit")
            self._require_edge(application, "update")

            changed = []
            for field in EDITABLE_FIELDS:
                if field in changes and changes[field] is not None:
                    setattr(application, field, changes[field])
                    changed.append(field)

            if changed:
                await self.history.record(
                    application.id, HistoryAction.UPDATED, actor.id, notes=", ".join(changed)
                )

        logger.info("application_updated", application_id=str(application_id), fields=changed)
        return application

    async def submit(self, actor: Actor, application_id: UUID) -> Application:
        """DRAFT -> SUBMITTED. Enters the pool; reserves no award slot."""
        async with self._transaction(application_id=application_id):
            application = await self.get(application_id, for_update=True)
            self._require_owner(actor, application, "submit")
            cycle = await self.cycles.get_cycle(application.cycle_id)
            await self._apply_submit(application, cycle, actor)

        logger.info(
            "application_submitted",
            application_id=str(application_id),
            cycle_id=str(application.cycle_id),
            actor=actor.id,
        )
        await self.notifier.emit(NotificationEventType.APPLICATION_SUBMITTED, application, actor)
        return application

    async def begin_review(self, actor: Actor, application_id: UUID) -> Application:
        """SUBMITTED -> UNDER_REVIEW, explicitly requested by an administrator."""
        if not actor.is_admin:
            raise PermissionDenied("Only administrators may start a review", actor_id=actor.id)

        async with self._transaction(application_id=application_id):
            application = await self.get(application_id, for_update=True)
            await self.apply_begin_review(application, actor)

        await self.notifier.emit(NotificationEventType.APPLICATION_UNDER_REVIEW, application, actor)
        return application

    async def apply_begin_review(self, application: Application, actor: Actor) -> None:
        """Transition a locked application to UNDER_REVIEW inside the caller's transaction."""
        self._require_edge(application, "begin_review")
        application.status = ApplicationStatus.UNDER_REVIEW.value
        await self.history.record(application.id, HistoryAction.UNDER_REVIEW, actor.id)
        logger.info("application_under_review", application_id=str(application.id), actor=actor.id)

    async def decide(
        self,
        actor: Actor,
        application_id: UUID,
        outcome: Union[ApplicationStatus, str],
        notes: Optional[str] = None,
        score: Optional[float] = None,
    ) -> Application:
        """
        UNDER_REVIEW -> APPROVED | REJECTED.

        Approval reserves a slot in the same transaction. When no slot is left
        SlotsExhausted is raised and nothing is committed: the application
        stays UNDER_REVIEW.
        """
        if not actor.is_admin:
            raise PermissionDenied("Only administrators may decide applications", actor_id=actor.id)

        try:
            outcome = ApplicationStatus(outcome)
        except ValueError:
            raise InvalidDecision(f"Unknown decision outcome: {outcome}", outcome=outcome)
        if outcome not in DECISION_OUTCOMES:
            raise InvalidDecision(
                f"Decision outcome must be APPROVED or REJECTED, got {outcome.value}",
                outcome=outcome,
            )
        if score is not None and not (settings.REVIEW_SCORE_MIN <= score <= settings.REVIEW_SCORE_MAX):
            raise InvalidScore(score, settings.REVIEW_SCORE_MIN, settings.REVIEW_SCORE_MAX)

        notes = (notes or "").strip() or self.default_notes(outcome)

        async with self._transaction(application_id=application_id):
            application = await self.get(application_id, for_update=True)
            self._require_edge(application, "decide")

            if outcome is ApplicationStatus.APPROVED:
                if not await self.slots.try_reserve(application.cycle_id):
                    cycle = await self.cycles.get_cycle(application.cycle_id)
                    raise SlotsExhausted(
                        application.cycle_id,
                        total_slots=cycle.total_slots,
                        remaining_slots=cycle.remaining_slots,
                    )

            application.status = outcome.value
            application.decision_at = self.clock()
            application.decision_by = actor.id
            application.decision_notes = notes
            if score is not None:
                application.score = round(float(score), 2)

            await self.history.record(
                application.id, HistoryAction(outcome.value), actor.id, notes=notes
            )

        logger.info(
            "application_decided",
            application_id=str(application_id),
            outcome=outcome.value,
            score=application.score,
            actor=actor.id,
        )
        await self.notifier.emit(
            NotificationEventType.APPLICATION_DECIDED,
            application,
            actor,
            extra={"outcome": outcome.value},
        )
        return application

    async def withdraw(self, actor: Actor, application_id: UUID) -> Application:
        """
        {DRAFT, SUBMITTED, UNDER_REVIEW} -> WITHDRAWN.

        Withdrawing an already withdrawn application returns it unchanged,
        without a second history entry.
        """
        async with self._transaction(application_id=application_id):
            application = await self.get(application_id, for_update=True)
            self._require_owner(actor, application, "withdraw", allow_admin=True)

            if application.state is ApplicationStatus.WITHDRAWN:
                logger.info("application_already_withdrawn", application_id=str(application_id))
                return application

            self._require_edge(application, "withdraw")
            application.status = ApplicationStatus.WITHDRAWN.value
            await self.history.record(application.id, HistoryAction.WITHDRAWN, actor.id)

        logger.info("application_withdrawn", application_id=str(application_id), actor=actor.id)
        await self.notifier.emit(NotificationEventType.APPLICATION_WITHDRAWN, application, actor)
        return application

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def default_notes(outcome: ApplicationStatus) -> str:
        if outcome is ApplicationStatus.APPROVED:
            return settings.DECISION_NOTES_APPROVED
        return settings.DECISION_NOTES_REJECTED

    async def _apply_submit(
        self, application: Application, cycle: ScholarshipCycle, actor: Actor
    ) -> None:
        self._require_edge(application, "submit")

        now = self.clock()
        reason = CycleRegistry.accepting_reason(cycle, now)
        if reason:
            raise ApplicationWindowClosed(cycle.id, cycle.status, reason)

        existing = await self.find_live(
            application.applicant_id, application.cycle_id, exclude_id=application.id
        )
        if existing is not None:
            raise DuplicateApplication(application.applicant_id, application.cycle_id, existing.id)

        if self.require_documents:
            document_ids = list(application.document_ids or [])
            if len(document_ids) < settings.REQUIRED_DOCUMENT_COUNT:
                raise MissingDocuments(
                    f"At least {settings.REQUIRED_DOCUMENT_COUNT} supporting document(s) required",
                    application_id=application.id,
                )
            if not await self.documents.documents_exist(document_ids):
                raise MissingDocuments(
                    "One or more attached documents could not be found",
                    application_id=application.id,
                )

        application.status = ApplicationStatus.SUBMITTED.value
        application.submitted_at = now
        await self.history.record(application.id, HistoryAction.SUBMITTED, actor.id)

    @staticmethod
    def _require_edge(application: Application, action: str) -> None:
        if application.state not in APPLICATION_TRANSITIONS[action]:
            raise InvalidTransition(application.state, action, entity_id=application.id)

    @staticmethod
    def _require_owner(
        actor: Actor, application: Application, action: str, allow_admin: bool = False
    ) -> None:
        if actor.id == application.applicant_id:
            return
        if allow_admin and actor.is_admin:
            return
        raise PermissionDenied(
            f"Only the applicant may {action} this application",
            actor_id=actor.id,
            application_id=application.id,
        )

    @asynccontextmanager
    async def _transaction(self, **context: Any):
        """Commit on success; roll back and translate storage conflicts on failure."""
        try:
            yield
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            raise ConcurrentModification(
                "The application was modified concurrently; retry the request", **context
            )
        except IntegrityError:
            await self.db.rollback()
            applicant_id = context.get("applicant_id")
            cycle_id = context.get("cycle_id")
            if applicant_id and cycle_id and await self.find_live(applicant_id, cycle_id):
                raise DuplicateApplication(applicant_id, cycle_id)
            raise
        except Exception:
            await self.db.rollback()
            raise

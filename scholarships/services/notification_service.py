"""
Notification emitter.

Writes one outbox row per lifecycle event after the originating transition
has committed. Delivery (email, in-app, read tracking) belongs to the
notification collaborator, which drains `notification_events`.
"""

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scholarships.core.security import Actor
from scholarships.models.application import Application
from scholarships.models.notification import NotificationEvent
from scholarships.utils.constants import NotificationEventType

logger = structlog.get_logger(__name__)


class NotificationService:
    """Records logical events for the notification collaborator."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def emit(
        self,
        event_type: NotificationEventType,
        application: Application,
        actor: Actor,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[NotificationEvent]:
        """
        Persist an event addressed to the applicant.

        A failure here never undoes the transition that has already committed;
        it is logged and reported as None.
        """
        payload = {
            "application_number": application.application_number,
            "status": application.status,
            "cycle_id": str(application.cycle_id),
            "actor_id": actor.id,
        }
        if extra:
            payload.update(extra)

        event = NotificationEvent(
            event_type=NotificationEventType(event_type).value,
            application_id=application.id,
            recipient_id=application.applicant_id,
            payload=payload,
        )
        try:
            self.db.add(event)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            await self.db.refresh(application)
            logger.exception(
                "notification_emit_failed",
                event_type=event.event_type,
                application_id=str(application.id),
            )
            return None

        logger.info(
            "notification_emitted",
            event_type=event.event_type,
            application_id=str(application.id),
            recipient=application.applicant_id,
        )
        return event

    async def pending(self, recipient_id: Optional[str] = None, limit: int = 100) -> List[NotificationEvent]:
        """Undispatched events, oldest first."""
        query = select(NotificationEvent).where(NotificationEvent.dispatched_at.is_(None))
        if recipient_id:
            query = query.where(NotificationEvent.recipient_id == recipient_id)
        query = query.order_by(NotificationEvent.created_at.asc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

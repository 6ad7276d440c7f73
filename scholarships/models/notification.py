"""Notification outbox model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Uuid

from scholarships.db.base import Base, JSONType


class NotificationEvent(Base):
    """
    Logical lifecycle event waiting for the notification collaborator.

    Rows are written after the originating transition has committed; delivery
    marks `dispatched_at`.
    """

    __tablename__ = "notification_events"

    event_type = Column(String(50), nullable=False)  # APPLICATION_SUBMITTED, APPLICATION_DECIDED, ...
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id"), nullable=False)
    recipient_id = Column(String(100), nullable=False)
    payload = Column(JSONType, default=dict)
    dispatched_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_notification_events_pending", "dispatched_at", "created_at"),
        Index("idx_notification_events_recipient", "recipient_id"),
    )

    def __repr__(self):
        return f"<NotificationEvent {self.event_type} -> {self.recipient_id}>"

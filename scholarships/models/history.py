"""Application history (audit log) model."""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text, Uuid

from scholarships.db.base import Base


class HistoryEntry(Base):
    """
    Append-only record of a single transition or decision.

    The integer primary key preserves insertion order for entries that share
    a timestamp.
    """

    __tablename__ = "application_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id"), nullable=False)
    action = Column(String(30), nullable=False)
    actor_id = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_history_application_time", "application_id", "created_at", "id"),
    )

    def __repr__(self):
        return f"<HistoryEntry {self.application_id} {self.action} by {self.actor_id}>"

"""Append-only audit log of application transitions."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scholarships.models.history import HistoryEntry
from scholarships.utils.constants import HistoryAction


class HistoryLog:
    """Records transitions; there is deliberately no update or delete path."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        application_id: UUID,
        action: HistoryAction,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> HistoryEntry:
        """Append an entry in the caller's transaction."""
        entry = HistoryEntry(
            application_id=application_id,
            action=HistoryAction(action).value,
            actor_id=actor_id,
            notes=notes,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def timeline(self, application_id: UUID) -> List[HistoryEntry]:
        """Entries ordered by timestamp, then insertion order."""
        result = await self.db.execute(
            select(HistoryEntry)
            .where(HistoryEntry.application_id == application_id)
            .order_by(HistoryEntry.created_at.asc(), HistoryEntry.id.asc())
        )
        return list(result.scalars().all())

    async def count(self, application_id: UUID, action: HistoryAction) -> int:
        """Number of entries of a given action (used by reporting and tests)."""
        entries = await self.timeline(application_id)
        return sum(1 for entry in entries if entry.action == HistoryAction(action).value)

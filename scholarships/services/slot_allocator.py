"""
Slot Allocator
Single mutation point for a cycle's remaining award slots.

Every mutation is one conditional UPDATE so that two concurrent awards can
never observe the same positive count and both decrement past zero.
"""

from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scholarships.core.exceptions import NotFound, ScholarshipError, SlotsAlreadyAwarded
from scholarships.models.cycle import ScholarshipCycle

logger = structlog.get_logger(__name__)


class SlotAllocator:
    """Atomic decrement/increment of `ScholarshipCycle.remaining_slots`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def try_reserve(self, cycle_id: UUID) -> bool:
        """
        Take one slot if any is left.

        Runs inside the caller's transaction; the reservation is only durable
        once the caller commits.

        Returns:
            True if a slot was reserved, False if the cycle has none left
        """
        stmt = (
            update(ScholarshipCycle)
            .where(ScholarshipCycle.id == cycle_id, ScholarshipCycle.remaining_slots > 0)
            .values(remaining_slots=ScholarshipCycle.remaining_slots - 1)
            .returning(ScholarshipCycle.remaining_slots)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            await self._ensure_cycle(cycle_id)
            logger.info("slot_reservation_refused", cycle_id=str(cycle_id))
            return False

        logger.info("slot_reserved", cycle_id=str(cycle_id), remaining_slots=remaining)
        return True

    async def release(self, cycle_id: UUID) -> bool:
        """
        Give one slot back, never exceeding the cycle's total.

        Returns:
            True if a slot was released, False if the cycle was already full
        """
        stmt = (
            update(ScholarshipCycle)
            .where(
                ScholarshipCycle.id == cycle_id,
                ScholarshipCycle.remaining_slots < ScholarshipCycle.total_slots,
            )
            .values(remaining_slots=ScholarshipCycle.remaining_slots + 1)
            .returning(ScholarshipCycle.remaining_slots)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            await self._ensure_cycle(cycle_id)
            logger.warning("slot_release_ignored_at_capacity", cycle_id=str(cycle_id))
            return False

        logger.info("slot_released", cycle_id=str(cycle_id), remaining_slots=remaining)
        return True

    async def resize(self, cycle_id: UUID, total_slots: int) -> int:
        """
        Change a cycle's capacity, keeping the number of awarded slots fixed.

        `remaining_slots` moves by the same delta as `total_slots`. The update is
        refused when fewer slots would exist than are already awarded.

        Returns:
            The new remaining slot count

        Raises:
            SlotsAlreadyAwarded: total_slots is below the awarded count
        """
        if total_slots < 0:
            raise ScholarshipError("total_slots must be zero or greater", total_slots=total_slots)

        awarded = ScholarshipCycle.total_slots - ScholarshipCycle.remaining_slots
        stmt = (
            update(ScholarshipCycle)
            .where(ScholarshipCycle.id == cycle_id, awarded <= total_slots)
            .values(
                total_slots=total_slots,
                remaining_slots=ScholarshipCycle.remaining_slots
                + (total_slots - ScholarshipCycle.total_slots),
            )
            .returning(ScholarshipCycle.remaining_slots)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            await self._ensure_cycle(cycle_id)
            taken = await self.db.execute(select(awarded).where(ScholarshipCycle.id == cycle_id))
            raise SlotsAlreadyAwarded(cycle_id, total_slots, taken.scalar_one())

        logger.info(
            "slots_resized",
            cycle_id=str(cycle_id),
            total_slots=total_slots,
            remaining_slots=remaining,
        )
        return remaining

    async def remaining(self, cycle_id: UUID) -> int:
        """Current remaining slots, read from the database rather than the identity map."""
        result = await self.db.execute(
            select(ScholarshipCycle.remaining_slots).where(ScholarshipCycle.id == cycle_id)
        )
        remaining: Optional[int] = result.scalar_one_or_none()
        if remaining is None:
            raise NotFound("Scholarship cycle", cycle_id)
        return remaining

    async def _ensure_cycle(self, cycle_id: UUID) -> None:
        result = await self.db.execute(
            select(ScholarshipCycle.id).where(ScholarshipCycle.id == cycle_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFound("Scholarship cycle", cycle_id)

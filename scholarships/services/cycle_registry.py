"""
Scholarship Cycle Registry
Cycle definitions (award amount, slot capacity, application window) and their status.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scholarships.core.exceptions import InvalidTransition, NotFound, PermissionDenied, ScholarshipError
from scholarships.core.security import Actor
from scholarships.models.cycle import ScholarshipCycle
from scholarships.services.slot_allocator import SlotAllocator
from scholarships.utils.constants import CYCLE_TRANSITIONS, CycleStatus
from scholarships.utils.helpers import format_application_number, utcnow

logger = structlog.get_logger(__name__)

EDITABLE_CYCLE_STATUSES = frozenset({CycleStatus.DRAFT, CycleStatus.SUSPENDED})

# total_slots is handled separately through the slot allocator
EDITABLE_CYCLE_FIELDS = (
    "program_name",
    "academic_year",
    "display_name",
    "description",
    "award_amount",
    "application_start",
    "application_end",
    "eligibility_criteria",
)
REQUIRED_CYCLE_FIELDS = (
    "program_name",
    "academic_year",
    "award_amount",
    "application_start",
    "application_end",
    "total_slots",
)


class CycleRegistry:
    """Read-mostly access to scholarship cycles plus their administrative status edges."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_cycle(self, actor: Actor, data: Dict[str, Any]) -> ScholarshipCycle:
        """
        Create a DRAFT cycle with every slot available.

        Args:
            actor: Administrator creating the cycle
            data: program_name, academic_year, award_amount, total_slots,
                application_start, application_end and optional description,
                display_name, eligibility_criteria
        """
        self._require_admin(actor, "create cycle")

        total_slots = int(data["total_slots"])
        if total_slots < 0:
            raise ScholarshipError("total_slots must be zero or greater", total_slots=total_slots)
        if data["application_end"] <= data["application_start"]:
            raise ScholarshipError(
                "application_end must be after application_start",
                application_start=data["application_start"],
                application_end=data["application_end"],
            )

        cycle = ScholarshipCycle(
            program_name=data["program_name"],
            academic_year=data["academic_year"],
            display_name=data.get("display_name")
            or f"{data['program_name']} {data['academic_year']}",
            description=data.get("description"),
            award_amount=data.get("award_amount", 0),
            total_slots=total_slots,
            remaining_slots=total_slots,
            application_start=data["application_start"],
            application_end=data["application_end"],
            eligibility_criteria=list(data.get("eligibility_criteria") or []),
            status=CycleStatus.DRAFT.value,
            application_sequence=0,
        )
        self.db.add(cycle)
        await self.db.commit()
        await self.db.refresh(cycle)

        logger.info("cycle_created", cycle_id=str(cycle.id), total_slots=total_slots, actor=actor.id)
        return cycle

    async def get_cycle(self, cycle_id: UUID, for_update: bool = False) -> ScholarshipCycle:
        query = select(ScholarshipCycle).where(ScholarshipCycle.id == cycle_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query.execution_options(populate_existing=True))
        cycle = result.scalar_one_or_none()
        if cycle is None:
            raise NotFound("Scholarship cycle", cycle_id)
        return cycle

    async def list_cycles(self, status: Optional[CycleStatus] = None) -> List[ScholarshipCycle]:
        query = select(ScholarshipCycle)
        if status is not None:
            query = query.where(ScholarshipCycle.status == CycleStatus(status).value)
        query = query.order_by(ScholarshipCycle.application_start.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_cycle(
        self, actor: Actor, cycle_id: UUID, changes: Dict[str, Any]
    ) -> ScholarshipCycle:
        """
        Edit a DRAFT or SUSPENDED cycle.

        The application window is re-validated against the merged values. A new
        `total_slots` goes through the slot allocator so awarded slots are kept.
        """
        self._require_admin(actor, "update cycle")

        try:
            cycle = await self.get_cycle(cycle_id, for_update=True)
            if cycle.state not in EDITABLE_CYCLE_STATUSES:
                raise InvalidTransition(cycle.state, "update", entity="cycle", entity_id=cycle_id)

            missing = [f for f in REQUIRED_CYCLE_FIELDS if f in changes and changes[f] is None]
            if missing:
                fields = ", ".join(missing)
                raise ScholarshipError(f"{fields} cannot be empty", fields=fields)

            start = changes.get("application_start") or cycle.application_start
            end = changes.get("application_end") or cycle.application_end
            if end <= start:
                raise ScholarshipError(
                    "application_end must be after application_start",
                    application_start=start,
                    application_end=end,
                )

            changed = []
            total_slots = changes.get("total_slots")
            if total_slots is not None and total_slots != cycle.total_slots:
                await SlotAllocator(self.db).resize(cycle_id, int(total_slots))
                changed.append("total_slots")

            for field in EDITABLE_CYCLE_FIELDS:
                if field in changes:
                    value = changes[field]
                    if field == "eligibility_criteria":
                        value = list(value or [])
                    setattr(cycle, field, value)
                    changed.append(field)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(cycle)
        logger.info("cycle_updated", cycle_id=str(cycle_id), fields=changed, actor=actor.id)
        return cycle

    async def open_cycle(self, actor: Actor, cycle_id: UUID) -> ScholarshipCycle:
        return await self._transition(actor, cycle_id, "open")

    async def suspend_cycle(self, actor: Actor, cycle_id: UUID) -> ScholarshipCycle:
        return await self._transition(actor, cycle_id, "suspend")

    async def close_cycle(self, actor: Actor, cycle_id: UUID) -> ScholarshipCycle:
        return await self._transition(actor, cycle_id, "close")

    @staticmethod
    def accepting_reason(cycle: ScholarshipCycle, now: Optional[datetime] = None) -> Optional[str]:
        """Why the cycle is not accepting submissions, or None if it is."""
        now = now or utcnow()
        if cycle.state is not CycleStatus.OPEN:
            return f"cycle is {cycle.status}"
        if now < cycle.application_start:
            return "application window has not started"
        if now > cycle.application_end:
            return "application window has ended"
        return None

    async def next_application_number(self, cycle_id: UUID) -> str:
        """Atomically bump the per-cycle counter and format the next number."""
        stmt = (
            update(ScholarshipCycle)
            .where(ScholarshipCycle.id == cycle_id)
            .values(application_sequence=ScholarshipCycle.application_sequence + 1)
            .returning(ScholarshipCycle.application_sequence)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        sequence = result.scalar_one_or_none()
        if sequence is None:
            raise NotFound("Scholarship cycle", cycle_id)
        return format_application_number(cycle_id, sequence)

    async def _transition(self, actor: Actor, cycle_id: UUID, action: str) -> ScholarshipCycle:
        self._require_admin(actor, f"{action} cycle")
        allowed_from, target = CYCLE_TRANSITIONS[action]

        cycle = await self.get_cycle(cycle_id, for_update=True)
        if cycle.state not in allowed_from:
            raise InvalidTransition(cycle.state, action, entity="cycle", entity_id=cycle_id)

        previous = cycle.status
        cycle.status = target.value
        await self.db.commit()

        logger.info(
            "cycle_status_changed",
            cycle_id=str(cycle_id),
            from_status=previous,
            to_status=target.value,
            actor=actor.id,
        )
        return cycle

    @staticmethod
    def _require_admin(actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise PermissionDenied(f"Only administrators may {action}", actor_id=actor.id)

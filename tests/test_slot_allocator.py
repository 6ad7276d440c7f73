"""Tests for the slot allocator: bounds, atomicity and concurrent reservations."""

import asyncio
import uuid

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from scholarships.core.exceptions import NotFound, SlotsAlreadyAwarded
from scholarships.models.cycle import ScholarshipCycle
from scholarships.services.slot_allocator import SlotAllocator


async def test_try_reserve_decrements_until_zero(db, cycle_factory):
    cycle = await cycle_factory(total_slots=2)
    slots = SlotAllocator(db)

    assert await slots.try_reserve(cycle.id) is True
    assert await slots.try_reserve(cycle.id) is True
    assert await slots.try_reserve(cycle.id) is False
    await db.commit()

    assert await slots.remaining(cycle.id) == 0


async def test_zero_slot_cycle_never_reserves(db, cycle_factory):
    cycle = await cycle_factory(total_slots=0)

    assert await SlotAllocator(db).try_reserve(cycle.id) is False
    assert await SlotAllocator(db).remaining(cycle.id) == 0


async def test_release_never_exceeds_total(db, cycle_factory):
    cycle = await cycle_factory(total_slots=1)
    slots = SlotAllocator(db)

    # Already at capacity
    assert await slots.release(cycle.id) is False

    assert await slots.try_reserve(cycle.id) is True
    assert await slots.release(cycle.id) is True
    await db.commit()

    assert await slots.remaining(cycle.id) == 1


async def test_reservation_is_rolled_back_with_caller_transaction(db, cycle_factory):
    cycle = await cycle_factory(total_slots=3)
    slots = SlotAllocator(db)

    assert await slots.try_reserve(cycle.id) is True
    await db.rollback()

    assert await slots.remaining(cycle.id) == 3


async def test_unknown_cycle_raises_not_found(db):
    slots = SlotAllocator(db)
    missing = uuid.uuid4()

    with pytest.raises(NotFound):
        await slots.try_reserve(missing)
    with pytest.raises(NotFound):
        await slots.release(missing)
    with pytest.raises(NotFound):
        await slots.remaining(missing)


async def test_storage_rejects_negative_remaining_slots(db, cycle_factory):
    """The CHECK constraint backs the allocator even against direct writes."""
    cycle = await cycle_factory(total_slots=1)

    with pytest.raises(IntegrityError):
        await db.execute(
            update(ScholarshipCycle)
            .where(ScholarshipCycle.id == cycle.id)
            .values(remaining_slots=-1)
            .execution_options(synchronize_session=False)
        )
    await db.rollback()


async def test_concurrent_reservations_share_a_single_slot(session_factory, cycle_factory):
    cycle = await cycle_factory(total_slots=1)

    async def reserve():
        async with session_factory() as session:
            reserved = await SlotAllocator(session).try_reserve(cycle.id)
            await session.commit()
            return reserved

    results = await asyncio.gather(reserve(), reserve())

    assert sorted(results) == [False, True]
    async with session_factory() as session:
        assert await SlotAllocator(session).remaining(cycle.id) == 0


async def test_resize_keeps_awarded_slots(db, cycle_factory):
    cycle = await cycle_factory(total_slots=3)
    slots = SlotAllocator(db)
    assert await slots.try_reserve(cycle.id) is True
    assert await slots.try_reserve(cycle.id) is True
    await db.commit()

    assert await slots.resize(cycle.id, 5) == 3
    assert await slots.resize(cycle.id, 2) == 0
    await db.commit()

    assert await slots.remaining(cycle.id) == 0
    assert await slots.release(cycle.id) is True


async def test_resize_below_awarded_is_refused(db, cycle_factory):
    cycle = await cycle_factory(total_slots=2)
    slots = SlotAllocator(db)
    assert await slots.try_reserve(cycle.id) is True
    assert await slots.try_reserve(cycle.id) is True
    await db.commit()

    with pytest.raises(SlotsAlreadyAwarded) as exc_info:
        await slots.resize(cycle.id, 1)

    assert exc_info.value.context["awarded"] == 2
    assert await slots.remaining(cycle.id) == 0


async def test_resize_unknown_cycle(db):
    with pytest.raises(NotFound):
        await SlotAllocator(db).resize(uuid.uuid4(), 3)

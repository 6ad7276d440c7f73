"""Tests for the append-only application history."""

from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.history_log import HistoryLog
from scholarships.utils.constants import HistoryAction


async def test_timeline_keeps_insertion_order(db, cycle_factory, student):
    cycle = await cycle_factory()
    application = await ApplicationStateMachine(db).create(student, cycle.id)
    history = HistoryLog(db)

    for note in ("first", "second", "third"):
        await history.record(application.id, HistoryAction.UPDATED, student.id, notes=note)
    await db.commit()

    entries = await history.timeline(application.id)

    assert [e.action for e in entries] == ["CREATED", "UPDATED", "UPDATED", "UPDATED"]
    assert [e.notes for e in entries[1:]] == ["first", "second", "third"]
    assert [e.id for e in entries] == sorted(e.id for e in entries)
    assert await history.count(application.id, HistoryAction.UPDATED) == 3


async def test_history_is_discarded_with_a_failed_transition(db, cycle_factory, student):
    cycle = await cycle_factory()
    application = await ApplicationStateMachine(db).create(student, cycle.id)
    history = HistoryLog(db)

    await history.record(application.id, HistoryAction.SUBMITTED, student.id)
    await db.rollback()

    assert await history.count(application.id, HistoryAction.SUBMITTED) == 0


async def test_full_lifecycle_is_recorded(db, cycle_factory, application_factory, admin):
    cycle = await cycle_factory(total_slots=1)
    application = await application_factory(cycle, "student-1", scores=[80, 85])
    await ApplicationStateMachine(db).decide(admin, application.id, "APPROVED")

    entries = await HistoryLog(db).timeline(application.id)

    assert [e.action for e in entries] == [
        "CREATED",
        "SUBMITTED",
        "UNDER_REVIEW",
        "REVIEW_RECORDED",
        "REVIEW_RECORDED",
        "APPROVED",
    ]
    assert entries[-1].actor_id == admin.id
    assert entries[2].actor_id == "reviewer-1"

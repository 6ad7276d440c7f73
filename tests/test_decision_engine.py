"""Tests for ranking and slot-bounded batch decisions."""

import uuid
from datetime import timedelta

import pytest

from scholarships.core.exceptions import InvalidTransition, PermissionDenied
from scholarships.models.application import Application
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.cycle_registry import CycleRegistry
from scholarships.services.decision_engine import DecisionRankingEngine, rank_candidates
from scholarships.services.history_log import HistoryLog
from scholarships.services.review_aggregator import AggregatedReview
from scholarships.services.slot_allocator import SlotAllocator
from scholarships.utils.constants import ApplicationStatus
from scholarships.utils.helpers import utcnow


def _application(number, submitted_at):
    return Application(
        id=uuid.uuid4(),
        application_number=number,
        applicant_id=f"student-{number}",
        submitted_at=submitted_at,
    )


def _aggregate(application, mean):
    return AggregatedReview(
        application_id=application.id,
        mean_score=mean,
        recommendation=None,
        review_count=2,
        complete=True,
    )


def test_rank_candidates_orders_by_score_then_submission_then_number():
    base = utcnow()
    early_high = _application("APP-0000-004", base)
    late_high = _application("APP-0000-001", base + timedelta(hours=1))
    same_time_b = _application("APP-0000-003", base + timedelta(hours=2))
    same_time_a = _application("APP-0000-002", base + timedelta(hours=2))
    low = _application("APP-0000-005", base)

    aggregates = {
        early_high.id: _aggregate(early_high, 90.0),
        late_high.id: _aggregate(late_high, 90.0),
        same_time_b.id: _aggregate(same_time_b, 80.0),
        same_time_a.id: _aggregate(same_time_a, 80.0),
        low.id: _aggregate(low, 55.5),
    }

    ranked = rank_candidates([low, same_time_b, late_high, same_time_a, early_high], aggregates)

    assert [c.application_number for c in ranked] == [
        "APP-0000-004",
        "APP-0000-001",
        "APP-0000-002",
        "APP-0000-003",
        "APP-0000-005",
    ]
    assert [c.rank for c in ranked] == [1, 2, 3, 4, 5]


async def close(db, admin, cycle):
    await CycleRegistry(db).close_cycle(admin, cycle.id)


# ==================== Guards ====================

async def test_batch_requires_closed_cycle_and_admin(db, cycle_factory, admin, student):
    cycle = await cycle_factory()
    engine = DecisionRankingEngine(db)

    with pytest.raises(InvalidTransition) as exc_info:
        await engine.rank_and_decide(admin, cycle.id)
    assert exc_info.value.context["entity"] == "cycle"

    await close(db, admin, cycle)
    with pytest.raises(PermissionDenied):
        await engine.rank_and_decide(student, cycle.id)


# ==================== Batch decisions ====================

async def test_top_candidates_win_the_slots(db, cycle_factory, application_factory, admin):
    cycle = await cycle_factory(total_slots=2)
    best = await application_factory(cycle, "student-1", scores=[95, 91])
    second = await application_factory(cycle, "student-2", scores=[85, 83])
    third = await application_factory(cycle, "student-3", scores=[60, 70])
    await close(db, admin, cycle)

    batch = await DecisionRankingEngine(db).rank_and_decide(admin, cycle.id)

    assert [o.application_id for o in batch.approved] == [best.id, second.id]
    assert [o.application_id for o in batch.rejected] == [third.id]
    assert batch.deferred == [] and batch.excluded == [] and batch.failed == []
    assert batch.slots_at_start == 2
    assert batch.remaining_slots == 0

    machine = ApplicationStateMachine(db)
    assert (await machine.get(best.id)).score == 93.0
    assert (await machine.get(third.id)).state is ApplicationStatus.REJECTED
    assert (await machine.get(third.id)).decision_notes.startswith("Unfortunately")


async def test_incomplete_reviews_are_excluded(db, cycle_factory, application_factory, admin):
    cycle = await cycle_factory(total_slots=3)
    complete = await application_factory(cycle, "student-1", scores=[70, 72])
    partial = await application_factory(cycle, "student-2", scores=[99])
    await close(db, admin, cycle)

    batch = await DecisionRankingEngine(db).rank_and_decide(admin, cycle.id)

    assert [o.application_id for o in batch.approved] == [complete.id]
    assert [o.application_id for o in batch.excluded] == [partial.id]
    assert "1 of 2" in batch.excluded[0].reason
    assert (await ApplicationStateMachine(db).get(partial.id)).state is ApplicationStatus.UNDER_REVIEW
    assert batch.remaining_slots == 2


async def test_tie_goes_to_earlier_submission(db, cycle_factory, application_factory, admin):
    cycle = await cycle_factory(total_slots=1)
    base = utcnow() - timedelta(days=1)
    late = await application_factory(
        cycle, "student-1", scores=[80, 90], submitted_at=base + timedelta(hours=3)
    )
    early = await application_factory(
        cycle, "student-2", scores=[90, 80], submitted_at=base
    )
    await close(db, admin, cycle)

    batch = await DecisionRankingEngine(db).rank_and_decide(admin, cycle.id)

    assert [o.application_id for o in batch.approved] == [early.id]
    assert [o.application_id for o in batch.rejected] == [late.id]


async def test_preview_changes_nothing_and_is_deterministic(
    db, cycle_factory, application_factory, admin
):
    cycle = await cycle_factory(total_slots=1)
    stamp = utcnow() - timedelta(hours=1)
    for i in range(4):
        await application_factory(cycle, f"student-{i}", scores=[75, 75], submitted_at=stamp)

    engine = DecisionRankingEngine(db)
    first = await engine.preview(cycle.id)
    second = await engine.preview(cycle.id)

    assert first.dry_run is True
    assert [o.application_number for o in first.outcomes] == [
        o.application_number for o in second.outcomes
    ]
    # Identical score and submission time: lowest application number wins
    assert first.approved[0].application_number.endswith("-001")
    assert len(first.rejected) == 3
    assert await SlotAllocator(db).remaining(cycle.id) == 1

    result = await db.execute(
        Application.__table__.select().where(Application.cycle_id == cycle.id)
    )
    assert {row.status for row in result} == {ApplicationStatus.UNDER_REVIEW.value}


async def test_full_cycle_of_one_hundred_applications(
    db, cycle_factory, application_factory, admin
):
    cycle = await cycle_factory(total_slots=25)
    applications = []
    for i in range(100):
        # Distinct means from 50.0 to 99.5
        score = 50 + i * 0.5
        applications.append(
            await application_factory(cycle, f"student-{i:03d}", scores=[score, score])
        )
    await close(db, admin, cycle)

    batch = await DecisionRankingEngine(db).rank_and_decide(admin, cycle.id)

    assert len(batch.approved) == 25
    assert len(batch.rejected) == 75
    assert batch.remaining_slots == 0
    assert min(o.mean_score for o in batch.approved) > max(o.mean_score for o in batch.rejected)
    assert [o.rank for o in batch.approved] == list(range(1, 26))

    expected_winners = {app.id for app in applications[75:]}
    assert {o.application_id for o in batch.approved} == expected_winners

    history = HistoryLog(db)
    for application in applications[75:]:
        entries = await history.timeline(application.id)
        assert entries[-1].action == "APPROVED"
        assert entries[-1].notes.startswith("Congratulations!")


async def test_slots_taken_mid_batch_defer_lowest_ranked(
    db, session_factory, cycle_factory, application_factory, admin
):
    cycle = await cycle_factory(total_slots=2)
    first = await application_factory(cycle, "student-1", scores=[90, 90])
    second = await application_factory(cycle, "student-2", scores=[80, 80])
    third = await application_factory(cycle, "student-3", scores=[70, 70])
    await close(db, admin, cycle)

    engine = DecisionRankingEngine(db)
    plan = engine._plan

    async def plan_then_lose_a_slot(target_cycle):
        planned = await plan(target_cycle)
        async with session_factory() as other:
            assert await SlotAllocator(other).try_reserve(target_cycle.id)
            await other.commit()
        return planned

    engine._plan = plan_then_lose_a_slot
    batch = await engine.rank_and_decide(admin, cycle.id)

    assert [o.application_id for o in batch.approved] == [first.id]
    assert [o.application_id for o in batch.deferred] == [second.id]
    assert [o.application_id for o in batch.rejected] == [third.id]
    assert batch.remaining_slots == 0

    machine = ApplicationStateMachine(db)
    assert (await machine.get(second.id)).state is ApplicationStatus.UNDER_REVIEW


async def test_withdrawn_mid_batch_is_reported_as_failed(
    db, session_factory, cycle_factory, application_factory, admin
):
    cycle = await cycle_factory(total_slots=1)
    leader = await application_factory(cycle, "student-1", scores=[90, 90])
    runner_up = await application_factory(cycle, "student-2", scores=[80, 80])
    await close(db, admin, cycle)

    engine = DecisionRankingEngine(db)
    plan = engine._plan

    async def plan_then_withdraw(target_cycle):
        planned = await plan(target_cycle)
        async with session_factory() as other:
            await ApplicationStateMachine(other).withdraw(admin, leader.id)
        return planned

    engine._plan = plan_then_withdraw
    batch = await engine.rank_and_decide(admin, cycle.id)

    assert [o.application_id for o in batch.failed] == [leader.id]
    assert [o.application_id for o in batch.rejected] == [runner_up.id]
    assert batch.approved == []
    assert batch.remaining_slots == 1


async def test_second_run_picks_up_late_reviews(
    db, cycle_factory, application_factory, admin, reviewers
):
    cycle = await cycle_factory(total_slots=2)
    await application_factory(cycle, "student-1", scores=[88, 90])
    late = await application_factory(cycle, "student-2", scores=[70])
    await close(db, admin, cycle)

    engine = DecisionRankingEngine(db)
    first_run = await engine.rank_and_decide(admin, cycle.id)
    assert len(first_run.approved) == 1
    assert [o.application_id for o in first_run.excluded] == [late.id]

    await engine.aggregator.record_review(reviewers[1], late.id, 72, "APPROVE")
    second_run = await engine.rank_and_decide(admin, cycle.id)

    assert [o.application_id for o in second_run.approved] == [late.id]
    assert second_run.remaining_slots == 0

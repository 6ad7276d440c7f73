"""Pytest configuration and fixtures.

Every test gets its own SQLite database file (aiosqlite) with the full
schema, plus helpers for building cycles and reviewed applications through
the real services.
"""

import os

# Settings are read at import time; point them at test values first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SENTRY_DSN"] = ""
os.environ["DEBUG"] = "false"
os.environ["REVIEW_QUORUM"] = "2"
os.environ["REQUIRE_DOCUMENTS_ON_SUBMIT"] = "false"

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from scholarships import models  # noqa: F401  registers every table
from scholarships.api.deps import get_db
from scholarships.core.security import Actor, Role, create_access_token
from scholarships.db.base import Base
from scholarships.db.session import build_engine, build_session_factory
from scholarships.main import app
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.cycle_registry import CycleRegistry
from scholarships.services.review_aggregator import ReviewAggregator
from scholarships.utils.constants import Recommendation
from scholarships.utils.helpers import utcnow


# ==================== Actors ====================

@pytest.fixture
def admin():
    return Actor("admin-1", Role.ADMIN)


@pytest.fixture
def student():
    return Actor("student-1", Role.STUDENT)


@pytest.fixture
def other_student():
    return Actor("student-2", Role.STUDENT)


@pytest.fixture
def reviewers():
    """Three distinct reviewers; quorum is two."""
    return [Actor(f"reviewer-{i}", Role.REVIEWER) for i in range(1, 4)]


# ==================== Database ====================

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'scholarships.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ==================== Builders ====================

@pytest.fixture
def cycle_factory(db, admin):
    """Create a cycle whose window contains now; OPEN unless told otherwise."""

    async def _create(total_slots=5, open_cycle=True, **overrides):
        now = utcnow()
        data = {
            "program_name": "Future Leaders Scholarship",
            "academic_year": "2024-2025",
            "award_amount": 5000,
            "total_slots": total_slots,
            "application_start": now - timedelta(days=30),
            "application_end": now + timedelta(days=30),
        }
        data.update(overrides)
        registry = CycleRegistry(db)
        cycle = await registry.create_cycle(admin, data)
        if open_cycle:
            cycle = await registry.open_cycle(admin, cycle.id)
        return cycle

    return _create


@pytest.fixture
def application_factory(db, reviewers):
    """
    Create and submit an application, then record one review per score.

    `submitted_at` pins the state machine clock so ranking tie-breaks can be
    exercised deterministically.
    """

    async def _create(cycle, applicant_id, scores=(), submitted_at=None, submit=True):
        clock = (lambda: submitted_at) if submitted_at else utcnow
        machine = ApplicationStateMachine(db, clock=clock)
        application = await machine.create(
            Actor(applicant_id, Role.STUDENT),
            cycle.id,
            content={"motivation_letter": f"Motivation of {applicant_id}"},
            submit=submit,
        )
        aggregator = ReviewAggregator(db, machine=machine)
        for reviewer, score in zip(reviewers, scores):
            await aggregator.record_review(
                reviewer, application.id, score=score, recommendation=Recommendation.APPROVE
            )
        return await machine.get(application.id)

    return _create


# ==================== API ====================

@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app, with sessions from the per-test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(actor_id: str, role: str = "student") -> dict:
    token = create_access_token({"sub": actor_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", "admin")


@pytest.fixture
def student_headers():
    return auth_headers("student-1", "student")


@pytest.fixture
def headers_for():
    """Build Bearer headers for an arbitrary actor: headers_for("reviewer-1", "reviewer")."""
    return auth_headers

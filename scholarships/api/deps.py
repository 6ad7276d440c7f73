"""
API Dependencies
Common dependencies for API endpoints (database session, identity, services)
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scholarships.core.security import Role, require_role
from scholarships.db.session import get_db as get_db_session
from scholarships.services.application_state_machine import ApplicationStateMachine
from scholarships.services.cycle_registry import CycleRegistry
from scholarships.services.decision_engine import DecisionRankingEngine
from scholarships.services.history_log import HistoryLog
from scholarships.services.review_aggregator import ReviewAggregator


# Re-export get_db for convenience
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in get_db_session():
        yield session


require_admin = require_role(Role.ADMIN)
require_reviewer = require_role(Role.REVIEWER)


def get_state_machine(db: AsyncSession = Depends(get_db)) -> ApplicationStateMachine:
    return ApplicationStateMachine(db)


def get_cycle_registry(db: AsyncSession = Depends(get_db)) -> CycleRegistry:
    return CycleRegistry(db)


def get_history_log(db: AsyncSession = Depends(get_db)) -> HistoryLog:
    return HistoryLog(db)


def get_review_aggregator(
    machine: ApplicationStateMachine = Depends(get_state_machine),
) -> ReviewAggregator:
    return ReviewAggregator(machine.db, machine=machine)


def get_decision_engine(
    machine: ApplicationStateMachine = Depends(get_state_machine),
) -> DecisionRankingEngine:
    return DecisionRankingEngine(machine.db, machine=machine)

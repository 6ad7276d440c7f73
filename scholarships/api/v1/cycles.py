"""
Scholarship Cycles API
- Admin: create and edit cycles, move them through DRAFT -> OPEN <-> SUSPENDED -> CLOSED
- Admin: close a cycle and run the batch award decision
- Everyone authenticated: browse cycles
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from scholarships.api.deps import (
    get_cycle_registry,
    get_decision_engine,
    require_admin,
)
from scholarships.core.security import Actor, get_current_actor
from scholarships.schemas.cycle import CycleCreate, CycleResponse, CycleUpdate
from scholarships.schemas.decision import BatchDecisionResponse
from scholarships.services.cycle_registry import CycleRegistry
from scholarships.services.decision_engine import DecisionRankingEngine
from scholarships.utils.constants import CycleStatus

router = APIRouter()


@router.post("", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
async def create_cycle(
    cycle_in: CycleCreate,
    actor: Actor = Depends(require_admin),
    registry: CycleRegistry = Depends(get_cycle_registry),
):
    """
    Create a scholarship cycle in DRAFT

    **RBAC**: Admin

    `remaining_slots` starts equal to `total_slots`.
    """
    return await registry.create_cycle(actor, cycle_in.model_dump())


@router.get("", response_model=List[CycleResponse])
async def list_cycles(
    status_filter: Optional[CycleStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    registry: CycleRegistry = Depends(get_cycle_registry),
):
    """List cycles, newest application window first"""
    return await registry.list_cycles(status_filter)


@router.get("/{cycle_id}", response_model=CycleResponse)
async def get_cycle(
    cycle_id: UUID,
    actor: Actor = Depends(get_current_actor),
    registry: CycleRegistry = Depends(get_cycle_registry),
):
    return await registry.get_cycle(cycle_id)


@router.patch("/{cycle_id}", response_model=CycleResponse)
async def update_cycle(
    cycle_id: UUID,
    cycle_in: CycleUpdate,
    actor: Actor = Depends(require_admin),
    registry: CycleRegistry = Depends(get_cycle_registry),
):
    """
    Edit a cycle while it is DRAFT or SUSPENDED

    **RBAC**: Admin

    Changing `total_slots` keeps already awarded slots; it cannot drop below them.
    """
    return await registry.update_cycle(actor, cycle_id, cycle_in.model_dump(exclude_unset=True))


@router.post("/{cycle_id}/open", response_model=CycleResponse)
async def open_cycle(
    cycle_id: UUID,
    actor: Actor = Depends(require_admin),
    registry: CycleRegistry = Depends(get_cycle_registry),
):
    """Start accepting submissions (**RBAC**: Admin)"""
    return await registry.open_cycle(actor, cycle_id)


@router.post("/{cycle_id}/suspend", response_model=CycleResponse)
async def suspend_cycle(
    cycle_id: UUID,
    actor: Actor = Depends(require_admin),
    registry: CycleRegistry = Depends(get_cycle_registry),
):
    """Temporarily stop accepting submissions (**RBAC**: Admin)"""
    return await registry.suspend_cycle(actor, cycle_id)


@router.post("/{cycle_id}/close", response_model=BatchDecisionResponse)
async def close_cycle(
    cycle_id: UUID,
    decide: bool = Query(True, description="Run the batch award decision after closing"),
    actor: Actor = Depends(require_admin),
    registry: CycleRegistry = Depends(get_cycle_registry),
    engine: DecisionRankingEngine = Depends(get_decision_engine),
):
    """
    Close a cycle and decide its reviewed applications

    **RBAC**: Admin

    Candidates with a complete review set are ranked by mean score; the top
    `remaining_slots` are approved and the rest rejected. With `decide=false`
    the cycle is only closed and the response is the dry-run ranking.
    """
    await registry.close_cycle(actor, cycle_id)
    if not decide:
        return await engine.preview(cycle_id)
    return await engine.rank_and_decide(actor, cycle_id)


@router.post("/{cycle_id}/decide", response_model=BatchDecisionResponse)
async def decide_cycle(
    cycle_id: UUID,
    actor: Actor = Depends(require_admin),
    engine: DecisionRankingEngine = Depends(get_decision_engine),
):
    """
    Re-run the batch decision on an already CLOSED cycle

    **RBAC**: Admin

    Picks up applications that reached quorum after the first run.
    """
    return await engine.rank_and_decide(actor, cycle_id)


@router.get("/{cycle_id}/ranking", response_model=BatchDecisionResponse)
async def preview_ranking(
    cycle_id: UUID,
    actor: Actor = Depends(require_admin),
    engine: DecisionRankingEngine = Depends(get_decision_engine),
):
    """Ranking and cut line as they would be applied now, without deciding (**RBAC**: Admin)"""
    return await engine.preview(cycle_id)

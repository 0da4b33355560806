"""Instructor Routes — capacity-aware search and limit edits.

Invariants:
    - Every listed instructor carries its load band and minimum allowed limit
    - Limit edits are coordinator-only
"""

import logging

from fastapi import APIRouter, Depends, Query

from assignflow.api.deps import get_actor, get_allocator
from assignflow.core.domain_types import Actor
from assignflow.core.errors import ForbiddenActorError
from assignflow.schemas.instructor import InstructorResponse, LimitUpdate
from assignflow.services.capacity_allocator import InstructorCapacityAllocator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/instructors", tags=["instructors"])


@router.get("", response_model=list[InstructorResponse])
async def search_instructors(
    search: str | None = Query(None, max_length=100),
    knowledge_area: str | None = Query(None, max_length=120),
    allocator: InstructorCapacityAllocator = Depends(get_allocator),
):
    """Case-insensitive name/document search, optional knowledge-area filter."""
    areas = await allocator.knowledge_areas()
    instructors = await allocator.search(search, knowledge_area, areas)
    return [
        InstructorResponse.from_load(
            i, allocator.area_name(i, areas), allocator.load_band(i),
        )
        for i in instructors
    ]


@router.patch("/{instructor_id}/limit", response_model=InstructorResponse)
async def update_limit(
    instructor_id: int,
    body: LimitUpdate,
    actor: Actor = Depends(get_actor),
    allocator: InstructorCapacityAllocator = Depends(get_allocator),
):
    if not actor.is_coordinator:
        raise ForbiddenActorError(actor.role.value, "update_limit")
    updated = await allocator.set_limit(instructor_id, body.max_assigned_learners)
    areas = await allocator.knowledge_areas()
    return InstructorResponse.from_load(
        updated, allocator.area_name(updated, areas), allocator.load_band(updated),
    )

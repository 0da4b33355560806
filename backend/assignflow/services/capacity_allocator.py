"""Instructor Capacity Allocator — instructor search and capacity-limit edits.

Invariants:
    - set_limit fast-fails on headroom before the backend call; the backend re-validates
    - Returned instructors always satisfy assigned_learners <= max_assigned_learners
      (the store enforces it; a violating row from the portal is logged)
    - Knowledge-area lookup failure is the only swallowed error: search proceeds
      with raw identifiers
"""

import logging

from assignflow.core.capacity import (
    InstructorLoad, check_limit_headroom, compute_load_band,
    filter_instructors, parse_instructor, resolve_area_name,
)
from assignflow.core.domain_types import LoadBand
from assignflow.core.envelope import interpret_ack, unwrap
from assignflow.core.errors import (
    AssignFlowError, ErrorContext, ResourceNotFoundError,
)
from assignflow.core.repository_protocols import AssignmentBackend

logger = logging.getLogger(__name__)


class InstructorCapacityAllocator:
    """Filters eligible instructors and governs their capacity ceilings."""

    def __init__(self, backend: AssignmentBackend):
        self._backend = backend

    async def knowledge_areas(self) -> dict[int, str]:
        try:
            rows = await self._backend.list_knowledge_areas()
        except AssignFlowError as e:
            logger.warning(
                f"Knowledge areas unavailable, showing raw identifiers: {e.message}",
                extra={"error_code": e.code},
            )
            return {}
        return {int(r["id"]): r.get("name") or str(r["id"]) for r in rows}

    async def search(
        self,
        query: str | None = None,
        knowledge_area: int | str | None = None,
        areas: dict[int, str] | None = None,
    ) -> list[InstructorLoad]:
        """Case-insensitive name/document search, optional exact area filter.

        Pass areas when the caller already holds the lookup.
        """
        if areas is None:
            areas = await self.knowledge_areas()
        area_id = _area_id(knowledge_area)
        rows = await self._backend.list_instructors(
            search=query or None, knowledge_area_id=area_id,
        )
        instructors = [parse_instructor(r) for r in rows]
        for inst in instructors:
            if inst.assigned_learners > inst.max_assigned_learners:
                logger.error(
                    "Instructor over capacity in backend data",
                    extra={"instructor_id": inst.id},
                )
        if not areas and area_id is not None:
            # ids cannot be compared to names without the lookup; the backend filtered by id
            knowledge_area = None
        return filter_instructors(instructors, query, knowledge_area, areas)

    def area_name(self, instructor: InstructorLoad, areas: dict[int, str]) -> str | None:
        return resolve_area_name(instructor.knowledge_area, areas)

    @staticmethod
    def load_band(instructor: InstructorLoad) -> LoadBand:
        return compute_load_band(
            instructor.assigned_learners, instructor.max_assigned_learners,
        )

    async def get(self, instructor_id: int) -> InstructorLoad:
        for row in await self._backend.list_instructors():
            if int(row["id"]) == instructor_id:
                return parse_instructor(row)
        raise ResourceNotFoundError("Instructor", instructor_id)

    async def set_limit(
        self,
        instructor_id: int,
        new_limit: int,
        current: InstructorLoad | None = None,
    ) -> InstructorLoad:
        """Validate headroom locally, then persist through the backend."""
        current = current or await self.get(instructor_id)
        try:
            check_limit_headroom(current.assigned_learners, new_limit)
        except AssignFlowError as e:
            e.context = ErrorContext(instructor_id=instructor_id)
            logger.warning(
                f"Limit {new_limit} refused locally (min {current.minimum_limit})",
                extra={"instructor_id": instructor_id, "error_code": e.code},
            )
            raise
        ack = interpret_ack(
            await self._backend.set_instructor_limit(instructor_id, new_limit),
        )
        data = unwrap(ack.data)
        updated = (
            parse_instructor(data)
            if isinstance(data, dict) and "id" in data
            else await self.get(instructor_id)
        )
        logger.info(
            f"Instructor limit set to {updated.max_assigned_learners}",
            extra={"instructor_id": instructor_id},
        )
        return updated


def _area_id(knowledge_area: int | str | None) -> int | None:
    if isinstance(knowledge_area, int):
        return knowledge_area
    if isinstance(knowledge_area, str) and knowledge_area.strip().isdigit():
        return int(knowledge_area.strip())
    return None

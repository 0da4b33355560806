"""Capacity Rules — instructor load bands, limit headroom and search filtering.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - compute_load_band is total for assigned >= 0 and max > 0
    - A limit edit is valid iff new_limit >= assigned_learners + LIMIT_HEADROOM
    - has_capacity is a UX hint; the store's atomic check is authoritative

Design Decisions:
    - Band thresholds: < 70% green, 70–90% amber, >= 90% red, computed with
      integer arithmetic so boundaries are exact
    - Unresolvable knowledge areas fall back to the raw identifier as text
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from assignflow.core.domain_types import (
    LoadBand, DEFAULT_MAX_ASSIGNED_LEARNERS, LIMIT_HEADROOM,
)
from assignflow.core.errors import LimitBelowHeadroomError

AMBER_FROM_PERCENT = 70
RED_FROM_PERCENT = 90


@dataclass(frozen=True)
class InstructorLoad:
    """Read model of an instructor as the allocator sees it."""
    id: int
    full_name: str
    number_identification: str = ""
    knowledge_area: int | str | None = None
    email: str | None = None
    phone: str | None = None
    assigned_learners: int = 0
    max_assigned_learners: int = DEFAULT_MAX_ASSIGNED_LEARNERS

    @property
    def minimum_limit(self) -> int:
        return minimum_limit(self.assigned_learners)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.full_name,
            "number_identification": self.number_identification,
            "knowledge_area": self.knowledge_area,
            "email": self.email,
            "phone": self.phone,
            "assigned_learners": self.assigned_learners,
            "max_assigned_learners": self.max_assigned_learners,
        }


def join_name(*parts: str | None) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


def parse_instructor(raw: Mapping) -> InstructorLoad:
    """Build an InstructorLoad from a backend row (portal or store)."""
    name = raw.get("name") or join_name(
        raw.get("first_name"), raw.get("second_name"),
        raw.get("first_last_name"), raw.get("second_last_name"),
    )
    assigned = raw.get("assigned_learners")
    if assigned is None:
        assigned = raw.get("assigned_count", 0)
    max_assigned = raw.get("max_assigned_learners")
    if max_assigned is None:
        max_assigned = raw.get("max_assignments", DEFAULT_MAX_ASSIGNED_LEARNERS)
    area = raw.get("knowledge_area")
    if area is None:
        area = raw.get("knowledge_area_id", raw.get("area"))
    return InstructorLoad(
        id=int(raw["id"]),
        full_name=name,
        number_identification=str(raw.get("number_identification") or ""),
        knowledge_area=area,
        email=raw.get("email"),
        phone=str(raw["phone"]) if raw.get("phone") is not None else None,
        assigned_learners=int(assigned or 0),
        max_assigned_learners=int(max_assigned),
    )


def compute_load_band(assigned: int, maximum: int) -> LoadBand:
    """Map assigned/max onto green / amber / red."""
    if assigned < 0 or maximum <= 0:
        raise ValueError(
            f"load band needs assigned >= 0 and max > 0 (got {assigned}/{maximum})",
        )
    percent_x = assigned * 100
    if percent_x < AMBER_FROM_PERCENT * maximum:
        return LoadBand.GREEN
    if percent_x < RED_FROM_PERCENT * maximum:
        return LoadBand.AMBER
    return LoadBand.RED


def minimum_limit(assigned: int) -> int:
    return assigned + LIMIT_HEADROOM


def check_limit_headroom(assigned: int, new_limit: int) -> None:
    """Raise LimitBelowHeadroomError unless new_limit keeps the headroom reserve."""
    minimum = minimum_limit(assigned)
    if new_limit < minimum:
        raise LimitBelowHeadroomError(new_limit, minimum)


def has_capacity(assigned: int, maximum: int) -> bool:
    return assigned < maximum


def resolve_area_name(
    area: int | str | None, areas: Mapping[int, str],
) -> str | None:
    """Area id (int or numeric string) → name; anything unresolved → raw text."""
    if area is None or area == "":
        return None
    key: int | None = None
    if isinstance(area, int):
        key = area
    elif isinstance(area, str) and area.strip().isdigit():
        key = int(area.strip())
    if key is not None and key in areas:
        return areas[key]
    return str(area)


def matches_search(instructor: InstructorLoad, query: str | None) -> bool:
    """Case-insensitive substring match over full name and document number."""
    if not query or not query.strip():
        return True
    needle = query.strip().casefold()
    return (
        needle in instructor.full_name.casefold()
        or needle in instructor.number_identification.casefold()
    )


def filter_instructors(
    instructors: Iterable[InstructorLoad],
    query: str | None = None,
    knowledge_area: int | str | None = None,
    areas: Mapping[int, str] | None = None,
) -> list[InstructorLoad]:
    """Search + exact area-name filter. The area may arrive as id or name."""
    areas = areas or {}
    wanted = resolve_area_name(knowledge_area, areas)
    result = []
    for instructor in instructors:
        if not matches_search(instructor, query):
            continue
        if wanted is not None and resolve_area_name(
            instructor.knowledge_area, areas,
        ) != wanted:
            continue
        result.append(instructor)
    return result

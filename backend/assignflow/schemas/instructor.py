"""Instructor Schemas — search results with load band, and limit edits.

Invariants:
    - LimitUpdate.max_assigned_learners is a positive integer; headroom is a domain rule
"""

from pydantic import BaseModel, Field

from assignflow.core.capacity import InstructorLoad
from assignflow.core.domain_types import LoadBand


class InstructorResponse(BaseModel):
    id: int
    name: str
    number_identification: str = ""
    knowledge_area: str | None = None
    email: str | None = None
    phone: str | None = None
    assigned_learners: int
    max_assigned_learners: int
    minimum_limit: int
    load_band: LoadBand

    @classmethod
    def from_load(
        cls, instructor: InstructorLoad, area_name: str | None, band: LoadBand,
    ) -> "InstructorResponse":
        return cls(
            id=instructor.id,
            name=instructor.full_name,
            number_identification=instructor.number_identification,
            knowledge_area=area_name,
            email=instructor.email,
            phone=instructor.phone,
            assigned_learners=instructor.assigned_learners,
            max_assigned_learners=instructor.max_assigned_learners,
            minimum_limit=instructor.minimum_limit,
            load_band=band,
        )


class LimitUpdate(BaseModel):
    max_assigned_learners: int = Field(gt=0)

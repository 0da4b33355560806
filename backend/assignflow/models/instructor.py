"""Instructor ORM — follow-up instructor with a capacity ceiling.

Invariants:
    - 0 <= assigned_learners <= max_assigned_learners (CHECK constraint)
    - assigned_learners changes only through atomic UPDATEs in SqlAssignmentBackend
    - max_assigned_learners defaults to 80

Design Decisions:
    - Name parts kept separate: the portal searches and displays them independently
"""

from sqlalchemy import (
    Boolean, CheckConstraint, ForeignKey, Integer, String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assignflow.core.capacity import join_name
from assignflow.core.domain_types import DEFAULT_MAX_ASSIGNED_LEARNERS
from assignflow.db.base import Base


class Instructor(Base):
    """Instructor entity — the one shared, contended resource is its load."""
    __tablename__ = "instructor"
    __table_args__ = (
        CheckConstraint(
            "assigned_learners >= 0 AND assigned_learners <= max_assigned_learners",
            name="ck_instructor_capacity",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(60), nullable=False)
    second_name: Mapped[str | None] = mapped_column(String(60), nullable=True)
    first_last_name: Mapped[str] = mapped_column(String(60), nullable=False)
    second_last_name: Mapped[str | None] = mapped_column(String(60), nullable=True)
    number_identification: Mapped[str] = mapped_column(
        String(30), nullable=False, default="",
    )
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    knowledge_area_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("knowledge_area.id"), nullable=True,
    )
    is_followup_instructor: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    assigned_learners: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    max_assigned_learners: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MAX_ASSIGNED_LEARNERS,
    )

    knowledge_area: Mapped["KnowledgeArea | None"] = relationship(
        "KnowledgeArea", lazy="selectin",
    )

    @property
    def full_name(self) -> str:
        return join_name(
            self.first_name, self.second_name,
            self.first_last_name, self.second_last_name,
        )

"""RequestAsignation ORM — an apprentice's productive-stage follow-up request.

Invariants:
    - request_state is one of RequestState values; RECHAZADO is terminal
    - version starts at 1 and increases by one on every state-bearing write
    - Rows are never deleted, only state-transitioned
    - Created by the external portal on apprentice submission

Design Decisions:
    - Form snapshot (apprentice name, document, ficha, program) denormalized so
      getFormRequestById needs no joins into out-of-scope tables
    - instructor_id is the current assignment; history lives in the ledger
"""

from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assignflow.core.domain_types import RequestState
from assignflow.db.base import Base


class RequestAsignation(Base):
    """Request aggregate root — owns its message ledger."""
    __tablename__ = "request_asignation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    apprentice_id: Mapped[int] = mapped_column(Integer, nullable=False)
    enterprise_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    modality: Mapped[str] = mapped_column(String(80), nullable=False)
    request_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestState.SIN_ASIGNAR.value,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    request_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    date_start_production_stage: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_end_production_stage: Mapped[date | None] = mapped_column(Date, nullable=True)
    fecha_inicio_contrato: Mapped[date | None] = mapped_column(Date, nullable=True)
    fecha_fin_contrato: Mapped[date | None] = mapped_column(Date, nullable=True)
    instructor_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("instructor.id"), nullable=True,
    )

    # Form snapshot
    name_apprentice: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    type_identification: Mapped[int | None] = mapped_column(Integer, nullable=True)
    number_identification: Mapped[str] = mapped_column(
        String(30), nullable=False, default="",
    )
    numero_ficha: Mapped[str | None] = mapped_column(String(30), nullable=True)
    program: Mapped[str | None] = mapped_column(String(200), nullable=True)

    messages: Mapped[list["RequestMessage"]] = relationship(
        "RequestMessage", back_populates="request",
        order_by="RequestMessage.id", lazy="selectin",
    )
    instructor: Mapped["Instructor | None"] = relationship(
        "Instructor", lazy="selectin",
    )

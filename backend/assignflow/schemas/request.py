"""Request Schemas — Pydantic bodies and responses for the request workflow endpoints.

Invariants:
    - Free-text fields cap at 500 chars (the ledger limit)
    - Blank content passes the schema: the domain raises EmptyContentError with its own message
    - Contract end date never precedes its start date

Design Decisions:
    - Responses built from core read models (RequestSnapshot, Message), not ORM rows,
      so both backends serialize identically
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from assignflow.core.domain_types import MESSAGE_MAX_LENGTH
from assignflow.core.ledger import Message
from assignflow.core.request_state_machine import RequestSnapshot


class ContractDates(BaseModel):
    fecha_inicio_contrato: date | None = None
    fecha_fin_contrato: date | None = None

    @model_validator(mode="after")
    def end_after_start(self):
        start, end = self.fecha_inicio_contrato, self.fecha_fin_contrato
        if start and end and end < start:
            raise ValueError("fecha_fin_contrato must not precede fecha_inicio_contrato")
        return self


class AssignBody(BaseModel):
    """Coordinator picks an instructor and writes the accompanying message."""
    instructor_id: int | None = Field(None, gt=0)
    content: str | None = Field(None, max_length=MESSAGE_MAX_LENGTH)


class PreApproveBody(ContractDates):
    content: str | None = Field(None, max_length=MESSAGE_MAX_LENGTH)


class ReviewBody(ContractDates):
    """Instructor valoración: approve=false records an instructor-level rejection."""
    approve: bool
    content: str | None = Field(None, max_length=MESSAGE_MAX_LENGTH)


class RejectBody(BaseModel):
    reason: str | None = Field(None, max_length=MESSAGE_MAX_LENGTH)


class MessageResponse(BaseModel):
    id: int | None
    request_asignation: int
    content: str
    type_message: str
    whose_message: str
    created_at: datetime | None = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(**message.to_dict())


class RequestResponse(BaseModel):
    id: int
    request_state: str
    modality: str | None = None
    instructor_id: int | None = None
    version: int | None = None

    @classmethod
    def from_snapshot(cls, snapshot: RequestSnapshot) -> "RequestResponse":
        return cls(
            id=snapshot.id,
            request_state=snapshot.state.value,
            modality=snapshot.modality,
            instructor_id=snapshot.instructor_id,
            version=snapshot.version,
        )


class RequestViewResponse(BaseModel):
    """Fresh request, its ledger and the actions the caller may take."""
    request: RequestResponse
    ledger: list[MessageResponse]
    allowed_actions: list[str]
    coordinator_message: str = ""


class WorkflowResponse(BaseModel):
    """Answer to every successful write: the refreshed server truth."""
    status: str = "success"
    detail: str
    request: RequestResponse
    ledger: list[MessageResponse] = []

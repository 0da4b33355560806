"""Domain Types — rich types that replace bare strings across the workflow.

Invariants:
    - RequestId, InstructorId, MessageId wrap ints — never use bare int in domain logic
    - Request states, message types and authors are closed Enums — no raw string matching
    - Actor is explicit: every use case receives who is acting, nothing is read from ambient state

Design Decisions:
    - str Enums: values are the exact strings the portal stores and sends on the wire
    - Legacy spellings accepted only at parse time (parse_request_state), never inside the core
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

RequestId = NewType("RequestId", int)
InstructorId = NewType("InstructorId", int)
MessageId = NewType("MessageId", int)


# ─── Business Constants ──────────────────────────────────────────

APPRENTICESHIP_CONTRACT_MODALITY = "Contrato de aprendizaje"
MESSAGE_MAX_LENGTH = 500
LIMIT_HEADROOM = 10
DEFAULT_MAX_ASSIGNED_LEARNERS = 80
REJECTION_MARKER = "RECHAZAD"


# ─── Enums ───────────────────────────────────────────────────────

class RequestState(str, Enum):
    """Request lifecycle states — maps to DB `request_state` column."""
    SIN_ASIGNAR = "SIN_ASIGNAR"
    VERIFICANDO = "VERIFICANDO"
    PRE_APROBADO = "PRE-APROBADO"
    ASIGNADO = "ASIGNADO"
    RECHAZADO = "RECHAZADO"

    @property
    def is_terminal(self) -> bool:
        return self is RequestState.RECHAZADO


class MessageType(str, Enum):
    """Ledger entry types — maps to DB `type_message` column."""
    VERIFICACION = "VERIFICACION"
    ASIGNADO = "ASIGNADO"
    APROBADA = "APROBADA"
    RECHAZADO = "RECHAZADO"

    @property
    def is_rejection(self) -> bool:
        return REJECTION_MARKER in self.value


class Author(str, Enum):
    """Who wrote a ledger entry — maps to DB `whose_message` column."""
    COORDINADOR = "COORDINADOR"
    INSTRUCTOR = "INSTRUCTOR"


class Outcome(str, Enum):
    """What the acting user asks the workflow to do."""
    ASSIGN = "assign"
    PRE_APPROVE = "pre_approve"
    INSTRUCTOR_APPROVE = "instructor_approve"
    INSTRUCTOR_REJECT = "instructor_reject"
    REJECT = "reject"


class LoadBand(str, Enum):
    """Presentation band for an instructor's load ratio."""
    GREEN = "green"
    AMBER = "amber"
    RED = "red"


# ─── Value Objects ───────────────────────────────────────────────

@dataclass(frozen=True)
class Actor:
    """The user performing an action, threaded through every use case."""
    role: Author
    user_id: int | None = None

    @property
    def is_coordinator(self) -> bool:
        return self.role is Author.COORDINADOR

    @property
    def is_instructor(self) -> bool:
        return self.role is Author.INSTRUCTOR


@dataclass(frozen=True)
class Transition:
    """Result of the state machine: the state and ledger type to persist."""
    next_state: RequestState
    message_type: MessageType

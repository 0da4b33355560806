"""Request State Machine — computes the (next_state, message_type) pair for each outcome.

Invariants:
    - All functions are PURE: no IO, no async, no side effects
    - RECHAZADO is terminal: every compute_* raises TerminalStateError on it
    - "Contrato de aprendizaje" assignments always yield (ASIGNADO, ASIGNADO)
    - Coordinator pre-approval only follows instructor verification: PRE-APROBADO with an
      assigned instructor, and never while the ledger holds an instructor rejection
    - Only the instructor assigned to a request may review it
    - LEGAL_EDGES is the closed set of writes the authoritative store accepts

Design Decisions:
    - Exhaustive match over Outcome and RequestState: an unhandled variant
      raises instead of falling through to a default transition
    - Instructor review (valoración) keeps the request in PRE-APROBADO for both
      verdicts; the verdict lives in the ledger type
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from assignflow.core.domain_types import (
    Actor, Author, MessageType, Outcome, RequestState, Transition,
    APPRENTICESHIP_CONTRACT_MODALITY,
)
from assignflow.core.errors import (
    BlockedByInstructorRejectionError, ForbiddenActorError,
    InvalidStateError, InvalidTransitionError, TerminalStateError,
    ValidationError,
)
from assignflow.core.ledger import Message, has_rejection_from


_STATE_ALIASES = {
    "PRE_APROBADO": RequestState.PRE_APROBADO,
    "VERIFICACION": RequestState.VERIFICANDO,
    "EN_REVISION": RequestState.VERIFICANDO,
}

# (author, type_message, next_state) writes accepted from each current state
_COORDINATING = {
    (Author.COORDINADOR, MessageType.VERIFICACION, RequestState.VERIFICANDO),
    (Author.COORDINADOR, MessageType.ASIGNADO, RequestState.ASIGNADO),
    (Author.COORDINADOR, MessageType.RECHAZADO, RequestState.RECHAZADO),
    (Author.INSTRUCTOR, MessageType.RECHAZADO, RequestState.RECHAZADO),
}
_REVIEWING = {
    (Author.INSTRUCTOR, MessageType.APROBADA, RequestState.PRE_APROBADO),
    (Author.INSTRUCTOR, MessageType.RECHAZADO, RequestState.PRE_APROBADO),
}
_PRE_APPROVING = {
    (Author.COORDINADOR, MessageType.APROBADA, RequestState.ASIGNADO),
}
LEGAL_EDGES: dict[RequestState, frozenset] = {
    RequestState.SIN_ASIGNAR: frozenset(_COORDINATING),
    RequestState.VERIFICANDO: frozenset(_COORDINATING | _REVIEWING),
    RequestState.PRE_APROBADO: frozenset(_COORDINATING | _REVIEWING | _PRE_APPROVING),
    RequestState.ASIGNADO: frozenset(_COORDINATING),
    RequestState.RECHAZADO: frozenset(),
}


def parse_request_state(raw: object) -> RequestState:
    """Normalize a stored/wire state. Unset → SIN_ASIGNAR; unknown → InvalidStateError."""
    if isinstance(raw, RequestState):
        return raw
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return RequestState.SIN_ASIGNAR
    if not isinstance(raw, str):
        raise InvalidStateError(raw)
    value = raw.strip().upper()
    if value in _STATE_ALIASES:
        return _STATE_ALIASES[value]
    try:
        return RequestState(value)
    except ValueError:
        raise InvalidStateError(raw) from None


@dataclass(frozen=True)
class RequestSnapshot:
    """Server truth about a request at read time."""
    id: int
    state: RequestState
    modality: str | None = None
    instructor_id: int | None = None
    version: int | None = None


def parse_request(raw: Mapping) -> RequestSnapshot:
    """Build a snapshot from a backend row; the modality may be a name or nested object."""
    modality = raw.get("modality") or raw.get("nombre_modalidad") or raw.get(
        "modality_productive_stage",
    )
    if isinstance(modality, Mapping):
        modality = modality.get("name_modality") or modality.get("nombre")
    instructor_id = raw.get("instructor_id")
    if instructor_id is None and isinstance(raw.get("instructor"), int):
        instructor_id = raw["instructor"]
    return RequestSnapshot(
        id=int(raw["id"]),
        state=parse_request_state(raw.get("request_state")),
        modality=str(modality) if modality is not None else None,
        instructor_id=instructor_id,
        version=raw.get("version"),
    )


def _ensure_not_terminal(state: RequestState) -> None:
    if state.is_terminal:
        raise TerminalStateError()


def compute_assignment(state: RequestState, modality: str | None) -> Transition:
    """Coordinator assigns (or reassigns) an instructor."""
    _ensure_not_terminal(state)
    if (modality or "").strip() == APPRENTICESHIP_CONTRACT_MODALITY:
        return Transition(RequestState.ASIGNADO, MessageType.ASIGNADO)
    match state:
        case RequestState.SIN_ASIGNAR:
            return Transition(RequestState.VERIFICANDO, MessageType.VERIFICACION)
        case RequestState.VERIFICANDO | RequestState.PRE_APROBADO:
            return Transition(RequestState.VERIFICANDO, MessageType.VERIFICACION)
        case RequestState.ASIGNADO:
            return Transition(RequestState.ASIGNADO, MessageType.ASIGNADO)
    raise InvalidStateError(state)


def compute_pre_approval(
    state: RequestState, ledger: Iterable[Message], instructor_id: int | None,
) -> Transition:
    """Coordinator confirms the assigned instructor's verification."""
    _ensure_not_terminal(state)
    if state is not RequestState.PRE_APROBADO:
        raise InvalidTransitionError(
            f"Pre-approval requires PRE-APROBADO, got {state.value}",
        )
    if instructor_id is None:
        raise InvalidTransitionError("Pre-approval requires an assigned instructor")
    if has_rejection_from(ledger, Author.INSTRUCTOR):
        raise BlockedByInstructorRejectionError()
    return Transition(RequestState.ASIGNADO, MessageType.APROBADA)


def compute_instructor_review(state: RequestState, approve: bool) -> Transition:
    """Instructor valoración: approve or reject at instructor level."""
    _ensure_not_terminal(state)
    if state not in (RequestState.VERIFICANDO, RequestState.PRE_APROBADO):
        raise InvalidTransitionError(
            f"Instructor review requires VERIFICANDO or PRE-APROBADO, got {state.value}",
        )
    verdict = MessageType.APROBADA if approve else MessageType.RECHAZADO
    return Transition(RequestState.PRE_APROBADO, verdict)


def compute_rejection(state: RequestState, reason: str | None) -> Transition:
    """Terminal rejection; requires a reason."""
    _ensure_not_terminal(state)
    if reason is None or not reason.strip():
        raise ValidationError("El motivo del rechazo es obligatorio", "reason")
    return Transition(RequestState.RECHAZADO, MessageType.RECHAZADO)


def compute_transition(
    state: RequestState,
    modality: str | None,
    actor: Actor,
    outcome: Outcome,
    ledger: Iterable[Message] = (),
    reason: str | None = None,
    instructor_id: int | None = None,
) -> Transition:
    """Single entry point: dispatch on outcome after checking the actor's role.

    instructor_id is the instructor currently assigned to the request.
    """
    match outcome:
        case Outcome.ASSIGN:
            _require_role(actor, Author.COORDINADOR, outcome)
            return compute_assignment(state, modality)
        case Outcome.PRE_APPROVE:
            _require_role(actor, Author.COORDINADOR, outcome)
            return compute_pre_approval(state, ledger, instructor_id)
        case Outcome.INSTRUCTOR_APPROVE:
            _require_assigned_reviewer(actor, instructor_id, outcome)
            return compute_instructor_review(state, approve=True)
        case Outcome.INSTRUCTOR_REJECT:
            _require_assigned_reviewer(actor, instructor_id, outcome)
            return compute_instructor_review(state, approve=False)
        case Outcome.REJECT:
            return compute_rejection(state, reason)
    raise InvalidTransitionError(f"Unhandled outcome: {outcome!r}")


def _require_role(actor: Actor, role: Author, outcome: Outcome) -> None:
    if actor.role is not role:
        raise ForbiddenActorError(actor.role.value, outcome.value)


def _require_assigned_reviewer(
    actor: Actor, instructor_id: int | None, outcome: Outcome,
) -> None:
    _require_role(actor, Author.INSTRUCTOR, outcome)
    if instructor_id is None or actor.user_id != instructor_id:
        raise ForbiddenActorError(
            actor.role.value, f"{outcome.value} on a request assigned to another instructor",
        )


def check_transition_allowed(
    current: RequestState,
    next_state: RequestState,
    type_message: MessageType,
    author: Author,
) -> None:
    """Authoritative re-validation of a write received by the store."""
    _ensure_not_terminal(current)
    if (author, type_message, next_state) not in LEGAL_EDGES[current]:
        raise InvalidTransitionError(
            f"{author.value} cannot write {type_message.value} moving "
            f"{current.value} → {next_state.value}",
        )


def allowed_outcomes(
    state: RequestState,
    actor: Actor,
    ledger: Iterable[Message] = (),
    instructor_id: int | None = None,
) -> list[Outcome]:
    """Outcomes the UI may offer; empty for RECHAZADO."""
    if state.is_terminal:
        return []
    ledger = list(ledger)
    if actor.is_coordinator:
        outcomes = [Outcome.ASSIGN]
        if (
            state is RequestState.PRE_APROBADO
            and instructor_id is not None
            and not has_rejection_from(ledger, Author.INSTRUCTOR)
        ):
            outcomes.append(Outcome.PRE_APPROVE)
        outcomes.append(Outcome.REJECT)
        return outcomes
    outcomes = []
    reviewing = state in (RequestState.VERIFICANDO, RequestState.PRE_APROBADO)
    if reviewing and instructor_id is not None and actor.user_id == instructor_id:
        outcomes += [Outcome.INSTRUCTOR_APPROVE, Outcome.INSTRUCTOR_REJECT]
    outcomes.append(Outcome.REJECT)
    return outcomes

"""Post-write Refresh — re-reads server truth after every mutation and checks it landed.

Invariants:
    - The UI re-renders from the snapshot returned here, never from local state
    - Success means BOTH effects landed: exactly one new ledger entry carrying the
      expected type and author, and the target state (and instructor, for assignments)
    - Exactly one effect landed → PartialFailureError (manual reconciliation)
    - Nothing landed despite a success ack → DomainError

Design Decisions:
    - On self-loop transitions (ASIGNADO → ASIGNADO, VERIFICANDO → VERIFICANDO) the
      state alone proves nothing; a write counts as partly landed only when the
      ledger grew with the expected entry, or the state, instructor or version moved
"""

import logging
from dataclasses import dataclass, field

from assignflow.core.domain_types import Author, Transition
from assignflow.core.errors import DomainError, PartialFailureError
from assignflow.core.ledger import Message
from assignflow.core.repository_protocols import AssignmentBackend
from assignflow.core.request_state_machine import RequestSnapshot, parse_request
from assignflow.services.message_ledger import MessageLedger

logger = logging.getLogger(__name__)


@dataclass
class WorkflowResult:
    """What a use case hands back for display."""
    success: bool
    detail: str
    request: RequestSnapshot
    ledger: list[Message] = field(default_factory=list)


async def load_request(
    backend: AssignmentBackend, ledger: MessageLedger, request_id: int,
) -> tuple[RequestSnapshot, list[Message]]:
    snapshot = parse_request(await backend.get_request(request_id))
    return snapshot, await ledger.history(request_id)


def _message_landed(
    messages: list[Message], size_before: int, transition: Transition, author: Author,
) -> bool:
    if len(messages) != size_before + 1:
        return False
    newest = messages[-1]
    return (newest.type_message, newest.whose_message) == (
        transition.message_type.value, author.value,
    )


def _state_changed(before: RequestSnapshot, after: RequestSnapshot) -> bool:
    if (before.state, before.instructor_id) != (after.state, after.instructor_id):
        return True
    return None not in (before.version, after.version) and before.version != after.version


async def verify_persisted(
    backend: AssignmentBackend,
    ledger: MessageLedger,
    before: RequestSnapshot,
    ledger_size_before: int,
    transition: Transition,
    author: Author,
    detail: str,
    instructor_id: int | None = None,
) -> WorkflowResult:
    """Re-read the request and ledger; raise unless the whole write landed."""
    snapshot, messages = await load_request(backend, ledger, before.id)
    state_ok = snapshot.state is transition.next_state and (
        instructor_id is None or snapshot.instructor_id == instructor_id
    )
    message_ok = _message_landed(messages, ledger_size_before, transition, author)
    if state_ok and message_ok:
        return WorkflowResult(True, detail, snapshot, messages)
    if message_ok or _state_changed(before, snapshot):
        logger.error(
            f"Partial write: expected {transition.next_state.value} with one "
            f"{transition.message_type.value} entry, found {snapshot.state.value} "
            f"and {len(messages) - ledger_size_before} new entries",
            extra={
                "request_id": before.id, "instructor_id": instructor_id,
                "error_code": "PARTIAL_FAILURE",
            },
        )
        raise PartialFailureError(
            before.id, transition.next_state.value, snapshot.state.value,
        )
    raise DomainError("La solicitud no registró cambios. Intente de nuevo.")

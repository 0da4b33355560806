"""Assignment Orchestrator — end-to-end use cases over state machine, ledger and backend.

Invariants:
    - Every use case receives an explicit Actor; nothing is read from ambient state
    - Local validation (instructor selected, message 1–500 chars) happens before any IO
    - The transition is computed from a fresh read of request + ledger
    - Message and state travel in ONE backend call, carrying the version read
    - Acks pass through interpret_ack: a 200 with status "error" is a failure
    - After every write the request is re-read; a half-applied write raises PartialFailureError
    - At most one outstanding call per (action, request)

Design Decisions:
    - Impureim sandwich: read (IO) → compute_* (pure) → write (IO) → refresh (IO)
    - Pre-approval refuses before writing when the ledger holds an instructor rejection
"""

import logging
from dataclasses import dataclass
from datetime import date

from assignflow.core.domain_types import Actor, Author, Outcome
from assignflow.core.envelope import interpret_ack
from assignflow.core.errors import AssignFlowError, ErrorContext, ValidationError
from assignflow.core.ledger import Message, latest_by_author, validate_content
from assignflow.core.repository_protocols import AssignmentBackend
from assignflow.core.request_state_machine import (
    RequestSnapshot, allowed_outcomes, compute_transition,
)
from assignflow.services.in_flight import InFlightGuard
from assignflow.services.message_ledger import MessageLedger
from assignflow.services.refresh import (
    WorkflowResult, load_request, verify_persisted,
)
from assignflow.services.rejection_workflow import RejectionWorkflow

logger = logging.getLogger(__name__)


@dataclass
class RequestView:
    """Fresh server truth plus what the acting user may do next."""
    request: RequestSnapshot
    ledger: list[Message]
    allowed: list[Outcome]
    coordinator_message: str


def _contract_dates(start: date | None, end: date | None) -> dict:
    return {
        "fecha_inicio_contrato": start.isoformat() if start else None,
        "fecha_fin_contrato": end.isoformat() if end else None,
    }


class AssignmentOrchestrator:
    """Use-case layer for coordinator and instructor actions on a request."""

    def __init__(
        self,
        backend: AssignmentBackend,
        guard: InFlightGuard | None = None,
    ):
        self._backend = backend
        self._ledger = MessageLedger(backend)
        self._rejections = RejectionWorkflow(backend, self._ledger)
        self._guard = guard or InFlightGuard()

    @property
    def ledger(self) -> MessageLedger:
        return self._ledger

    async def request_view(self, actor: Actor, request_id: int) -> RequestView:
        snapshot, messages = await load_request(self._backend, self._ledger, request_id)
        last = latest_by_author(messages, Author.COORDINADOR)
        return RequestView(
            request=snapshot,
            ledger=messages,
            allowed=allowed_outcomes(
                snapshot.state, actor, messages, snapshot.instructor_id,
            ),
            coordinator_message=last.content if last else "",
        )

    async def assign_instructor(
        self,
        actor: Actor,
        request_id: int,
        instructor_id: int | None,
        content: str | None,
    ) -> WorkflowResult:
        """Select instructor → validate message → compute → write → refresh."""
        context = ErrorContext(
            request_id=request_id, instructor_id=instructor_id,
            actor_role=actor.role.value,
        )
        try:
            if not instructor_id:
                raise ValidationError("Seleccione un instructor", "instructor_id")
            validate_content(content)
        except AssignFlowError as e:
            e.context = context
            raise
        async with self._guard.hold(Outcome.ASSIGN.value, request_id):
            snapshot, messages = await load_request(
                self._backend, self._ledger, request_id,
            )
            transition = self._compute(
                snapshot, actor, Outcome.ASSIGN, messages, context,
            )
            payload = {
                "content": content,
                "type_message": transition.message_type.value,
                "request_state": transition.next_state.value,
                "whose_message": Author.COORDINADOR.value,
            }
            if snapshot.version is not None:
                payload["version"] = snapshot.version
            ack = interpret_ack(await self._backend.assign_instructor(
                instructor_id, request_id, payload,
            ))
            logger.info(
                f"Request {snapshot.state.value} → {transition.next_state.value} "
                f"({transition.message_type.value})",
                extra={
                    "request_id": request_id, "instructor_id": instructor_id,
                    "actor_role": actor.role.value,
                },
            )
            return await verify_persisted(
                self._backend, self._ledger, snapshot, len(messages),
                transition, Author.COORDINADOR, ack.detail,
                instructor_id=instructor_id,
            )

    async def pre_approve(
        self,
        actor: Actor,
        request_id: int,
        content: str | None,
        contract_start: date | None = None,
        contract_end: date | None = None,
    ) -> WorkflowResult:
        """Coordinator approval after verification; blocked by instructor rejection."""
        return await self._record(
            actor, request_id, Outcome.PRE_APPROVE, content,
            _contract_dates(contract_start, contract_end),
        )

    async def review(
        self,
        actor: Actor,
        request_id: int,
        approve: bool,
        content: str | None,
        contract_start: date | None = None,
        contract_end: date | None = None,
    ) -> WorkflowResult:
        """Instructor valoración: approve or reject at instructor level."""
        outcome = Outcome.INSTRUCTOR_APPROVE if approve else Outcome.INSTRUCTOR_REJECT
        return await self._record(
            actor, request_id, outcome, content,
            _contract_dates(contract_start, contract_end),
        )

    async def reject(
        self, actor: Actor, request_id: int, reason: str | None,
    ) -> WorkflowResult:
        async with self._guard.hold(Outcome.REJECT.value, request_id):
            return await self._rejections.reject(actor, request_id, reason)

    async def _record(
        self,
        actor: Actor,
        request_id: int,
        outcome: Outcome,
        content: str | None,
        extra: dict,
    ) -> WorkflowResult:
        context = ErrorContext(request_id=request_id, actor_role=actor.role.value)
        try:
            validate_content(content)
        except AssignFlowError as e:
            e.context = context
            raise
        async with self._guard.hold(outcome.value, request_id):
            snapshot, messages = await load_request(
                self._backend, self._ledger, request_id,
            )
            transition = self._compute(snapshot, actor, outcome, messages, context)
            ack = await self._ledger.record_transition(
                request_id, content, transition, actor.role,
                version=snapshot.version, extra=extra,
            )
            logger.info(
                f"Request {snapshot.state.value} → {transition.next_state.value} "
                f"({transition.message_type.value})",
                extra={"request_id": request_id, "actor_role": actor.role.value},
            )
            return await verify_persisted(
                self._backend, self._ledger, snapshot, len(messages),
                transition, actor.role, ack.detail,
            )

    @staticmethod
    def _compute(snapshot, actor, outcome, messages, context):
        try:
            return compute_transition(
                snapshot.state, snapshot.modality, actor, outcome, messages,
                instructor_id=snapshot.instructor_id,
            )
        except AssignFlowError as e:
            e.context = context
            logger.warning(
                f"{outcome.value} refused: {e.message}",
                extra={"request_id": snapshot.id, "error_code": e.code},
            )
            raise

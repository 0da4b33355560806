"""Rejection Workflow — mandatory reason, single terminal transition.

Invariants:
    - Reason checked (non-empty after trim, <= 500 chars) before any backend call
    - A RECHAZADO request cannot be rejected again (TerminalStateError)
    - Exactly one backend call (reject_request) per confirmed rejection
    - The instructor holding the request gets its capacity released by the store
"""

import logging

from assignflow.core.domain_types import Actor
from assignflow.core.envelope import interpret_ack
from assignflow.core.errors import AssignFlowError, ErrorContext
from assignflow.core.ledger import validate_content
from assignflow.core.repository_protocols import AssignmentBackend
from assignflow.core.request_state_machine import compute_rejection, parse_request
from assignflow.services.message_ledger import MessageLedger
from assignflow.services.refresh import WorkflowResult, verify_persisted

logger = logging.getLogger(__name__)


def validate_reason(reason: str | None) -> str:
    """Local check on the trimmed reason, which is what the ledger stores."""
    return validate_content(reason.strip() if reason else reason, field="reason")


class RejectionWorkflow:
    def __init__(self, backend: AssignmentBackend, ledger: MessageLedger):
        self._backend = backend
        self._ledger = ledger

    async def reject(
        self, actor: Actor, request_id: int, reason: str | None,
    ) -> WorkflowResult:
        context = ErrorContext(request_id=request_id, actor_role=actor.role.value)
        try:
            reason = validate_reason(reason)
            snapshot = parse_request(await self._backend.get_request(request_id))
            transition = compute_rejection(snapshot.state, reason)
        except AssignFlowError as e:
            e.context = context
            logger.warning(
                f"Rejection refused: {e.message}",
                extra={"request_id": request_id, "error_code": e.code},
            )
            raise
        before = len(await self._ledger.history(request_id))
        ack = interpret_ack(await self._backend.reject_request(
            request_id, reason,
            whose_message=actor.role.value, version=snapshot.version,
        ))
        logger.info(
            f"Request {snapshot.state.value} → {transition.next_state.value}",
            extra={"request_id": request_id, "actor_role": actor.role.value},
        )
        return await verify_persisted(
            self._backend, self._ledger, snapshot, before,
            transition, actor.role, ack.detail,
        )

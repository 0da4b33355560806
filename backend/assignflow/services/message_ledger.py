"""Message Ledger Service — append-only message history read and written through the backend.

Invariants:
    - Content is validated locally before any backend call
    - There is no edit or delete operation
    - history() is always re-fetched: callers never reuse a cached ledger across writes
"""

import logging

from assignflow.core.domain_types import Author, MessageType, Transition
from assignflow.core.envelope import Ack, interpret_ack
from assignflow.core.errors import DomainError
from assignflow.core.ledger import (
    Message, build_entry, has_rejection_from, latest_by_author,
    order_ledger, parse_message,
)
from assignflow.core.repository_protocols import AssignmentBackend

logger = logging.getLogger(__name__)


class MessageLedger:
    """Per-request ordered log of coordinator/instructor messages."""

    def __init__(self, backend: AssignmentBackend):
        self._backend = backend

    async def history(self, request_id: int) -> list[Message]:
        rows = await self._backend.get_request_messages(request_id)
        return order_ledger(parse_message(row, request_id) for row in rows)

    async def append(
        self,
        request_id: int,
        content: str,
        type_message: MessageType,
        whose_message: Author,
    ) -> Message:
        """Append one entry without a state change and return it as stored."""
        entry = build_entry(request_id, content, type_message, whose_message)
        interpret_ack(await self._backend.patch_message_request(
            request_id,
            {
                "content": entry.content,
                "type_message": entry.type_message,
                "whose_message": entry.whose_message,
            },
        ))
        stored = latest_by_author(await self.history(request_id), whose_message)
        if stored is None:
            raise DomainError("El mensaje no quedó registrado en la solicitud")
        logger.info(
            f"Appended {entry.type_message} message",
            extra={"request_id": request_id, "actor_role": entry.whose_message},
        )
        return stored

    async def record_transition(
        self,
        request_id: int,
        content: str,
        transition: Transition,
        author: Author,
        version: int | None = None,
        extra: dict | None = None,
    ) -> Ack:
        """Append the transition's message and its target state in one backend call."""
        entry = build_entry(request_id, content, transition.message_type, author)
        payload = {
            "content": entry.content,
            "type_message": entry.type_message,
            "whose_message": entry.whose_message,
            "request_state": transition.next_state.value,
        }
        if version is not None:
            payload["version"] = version
        payload.update({k: v for k, v in (extra or {}).items() if v})
        return interpret_ack(
            await self._backend.patch_message_request(request_id, payload),
        )

    async def latest_by_author(
        self, request_id: int, whose_message: Author,
    ) -> Message | None:
        return latest_by_author(await self.history(request_id), whose_message)

    async def has_rejection_from(
        self, request_id: int, whose_message: Author,
    ) -> bool:
        return has_rejection_from(await self.history(request_id), whose_message)

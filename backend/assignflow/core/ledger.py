"""Message Ledger Rules — validation and derivations over a request's message history.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - Message is frozen: an entry never changes once built
    - Content is 1–500 characters after the blank check
    - Ledgers are ordered oldest → newest (created_at, then id)

Design Decisions:
    - The ledger is both the audit trail and the source of derived facts
      (instructor rejection, last coordinator message)
    - Rejection detection matches the "RECHAZAD" marker on the raw type so
      legacy spellings (RECHAZADA, RECHAZADO_INSTRUCTOR) still block approval
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from assignflow.core.domain_types import (
    Author, MessageType, MESSAGE_MAX_LENGTH, REJECTION_MARKER,
)
from assignflow.core.errors import ContentTooLongError, EmptyContentError


@dataclass(frozen=True)
class Message:
    """One immutable ledger entry."""
    id: int | None
    request_id: int
    content: str
    type_message: str
    whose_message: str
    created_at: datetime | None = None

    @property
    def is_rejection(self) -> bool:
        return REJECTION_MARKER in self.type_message.upper()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_asignation": self.request_id,
            "content": self.content,
            "type_message": self.type_message,
            "whose_message": self.whose_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def validate_content(content: str | None, field: str = "content") -> str:
    """Return the content unchanged if it is a valid ledger entry, else raise."""
    if content is None or not content.strip():
        raise EmptyContentError(field)
    if len(content) > MESSAGE_MAX_LENGTH:
        raise ContentTooLongError(len(content), MESSAGE_MAX_LENGTH, field)
    return content


def parse_message(raw: dict, request_id: int | None = None) -> Message:
    """Build a Message from a backend row; tolerates the portal's key variants."""
    created = raw.get("created_at")
    if isinstance(created, str):
        created = datetime.fromisoformat(created.replace("Z", "+00:00"))
    return Message(
        id=raw.get("id"),
        request_id=int(
            raw.get("request_asignation") or raw.get("request_id") or request_id or 0,
        ),
        content=raw.get("content") or raw.get("message") or "",
        type_message=str(raw.get("type_message") or "").upper(),
        whose_message=str(raw.get("whose_message") or "").upper(),
        created_at=created,
    )


def order_ledger(messages: Iterable[Message]) -> list[Message]:
    """Oldest first; entries without a timestamp keep their relative order by id."""
    return sorted(
        messages,
        key=lambda m: (
            m.created_at is None,
            m.created_at.timestamp() if m.created_at else 0.0,
            m.id or 0,
        ),
    )


def latest_by_author(messages: Sequence[Message], author: Author) -> Message | None:
    """Most recent entry written by the given role, or None."""
    for message in reversed(order_ledger(messages)):
        if message.whose_message == author.value:
            return message
    return None


def has_rejection_from(messages: Iterable[Message], author: Author) -> bool:
    """True if any entry by the given role carries the rejection marker."""
    return any(
        m.whose_message == author.value and m.is_rejection for m in messages
    )


def build_entry(
    request_id: int, content: str, type_message: MessageType, author: Author,
) -> Message:
    """Validated, not-yet-persisted entry."""
    return Message(
        id=None,
        request_id=request_id,
        content=validate_content(content),
        type_message=type_message.value,
        whose_message=author.value,
    )

"""In-Flight Guard — at most one outstanding call per (action, request).

Invariants:
    - A key is held from the first await of the action until it completes or raises
    - A second submission while the key is held raises DuplicateSubmissionError
      without reaching the backend

Design Decisions:
    - Plain set guarded by the event loop: check-and-add has no await in between
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from assignflow.core.errors import DuplicateSubmissionError


class InFlightGuard:
    def __init__(self) -> None:
        self._held: set[tuple[str, int]] = set()

    def is_held(self, action: str, request_id: int) -> bool:
        return (action, request_id) in self._held

    @asynccontextmanager
    async def hold(self, action: str, request_id: int) -> AsyncIterator[None]:
        key = (action, request_id)
        if key in self._held:
            raise DuplicateSubmissionError(action, request_id)
        self._held.add(key)
        try:
            yield
        finally:
            self._held.discard(key)

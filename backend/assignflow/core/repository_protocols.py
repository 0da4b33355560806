"""Boundary Protocols — the contract between the workflow core and its backend.

Invariants:
    - Core and services NEVER import a concrete backend — dependency arrows point inward
    - Every write returns the raw acknowledgement body; callers pass it through interpret_ack
    - Reads return plain dicts in the portal's shapes; parsing happens in core

Design Decisions:
    - Protocol over ABC: structural subtyping, both SqlAssignmentBackend and
      PortalClient satisfy it without inheritance
    - Async in Protocol: implementations do IO; the pure functions that consume
      their results are never async
"""

from typing import Protocol


class AssignmentBackend(Protocol):
    """Consumed operations of the assignment backend."""

    async def get_request(self, request_id: int) -> dict:
        """{id, request_state, modality, instructor_id?, version?}"""
        ...

    async def get_form_request(self, request_id: int) -> dict: ...

    async def assign_instructor(
        self, instructor_id: int, request_id: int, payload: dict,
    ) -> dict:
        """payload: {content, type_message, request_state, whose_message, version?}"""
        ...

    async def patch_message_request(self, request_id: int, payload: dict) -> dict:
        """payload: {content, type_message, whose_message, request_state?,
        fecha_inicio_contrato?, fecha_fin_contrato?, version?}"""
        ...

    async def reject_request(
        self, request_id: int, reason: str, whose_message: str = "COORDINADOR",
        version: int | None = None,
    ) -> dict: ...

    async def get_request_messages(self, request_id: int) -> list[dict]: ...

    async def list_instructors(
        self, search: str | None = None, knowledge_area_id: int | None = None,
    ) -> list[dict]: ...

    async def set_instructor_limit(self, instructor_id: int, new_limit: int) -> dict: ...

    async def list_knowledge_areas(self) -> list[dict]: ...

"""API Dependencies — actor extraction and backend/service wiring for route handlers.

Invariants:
    - The acting user comes only from X-Actor-Role / X-Actor-Id headers; a missing or
      unknown role is a 400 before any service runs
    - One InFlightGuard per process: duplicate submissions are refused across requests
    - backend_mode "sql" binds SqlAssignmentBackend to the request's session;
      "portal" shares one PortalClient (closed on shutdown)
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from assignflow.config import Settings, get_settings
from assignflow.core.domain_types import Actor, Author
from assignflow.core.errors import ValidationError
from assignflow.core.repository_protocols import AssignmentBackend
from assignflow.infrastructure.database import get_db
from assignflow.infrastructure.portal_client import PortalClient
from assignflow.infrastructure.sql_backend import SqlAssignmentBackend
from assignflow.services.assignment_orchestrator import AssignmentOrchestrator
from assignflow.services.capacity_allocator import InstructorCapacityAllocator
from assignflow.services.in_flight import InFlightGuard

_guard = InFlightGuard()
_portal: PortalClient | None = None


def get_actor(
    x_actor_role: str | None = Header(None),
    x_actor_id: str | None = Header(None),
) -> Actor:
    try:
        role = Author((x_actor_role or "").strip().upper())
    except ValueError:
        raise ValidationError(
            f"X-Actor-Role must be COORDINADOR or INSTRUCTOR (got {x_actor_role!r})",
            "X-Actor-Role",
        ) from None
    user_id = None
    if x_actor_id:
        if not x_actor_id.strip().isdigit():
            raise ValidationError("X-Actor-Id must be an integer", "X-Actor-Id")
        user_id = int(x_actor_id)
    return Actor(role=role, user_id=user_id)


def get_portal_client(settings: Settings) -> PortalClient:
    global _portal
    if _portal is None:
        _portal = PortalClient(
            settings.portal_base_url,
            timeout_seconds=settings.portal_timeout_seconds,
            max_retries=settings.portal_max_retries,
            base_delay_ms=settings.portal_base_delay_ms,
            max_delay_ms=settings.portal_max_delay_ms,
            token=settings.portal_token,
        )
    return _portal


async def close_portal_client() -> None:
    global _portal
    if _portal is not None:
        await _portal.aclose()
        _portal = None


async def get_backend(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AssignmentBackend:
    if settings.backend_mode == "portal":
        return get_portal_client(settings)
    return SqlAssignmentBackend(db)


def get_orchestrator(
    backend: AssignmentBackend = Depends(get_backend),
) -> AssignmentOrchestrator:
    return AssignmentOrchestrator(backend, _guard)


def get_allocator(
    backend: AssignmentBackend = Depends(get_backend),
) -> InstructorCapacityAllocator:
    return InstructorCapacityAllocator(backend)

"""SQL Assignment Backend — authoritative store for requests, ledger and instructor capacity.

Invariants:
    - Message append, state change and capacity changes commit in ONE transaction
    - Every state-bearing write is a compare-and-set on request_asignation.version;
      zero rows updated → StaleRequestError
    - Reserving an instructor is a single conditional UPDATE
      (assigned_learners < max_assigned_learners); zero rows → CapacityExceededError
    - Limit edits are a single conditional UPDATE (new_limit >= assigned + 10)
    - Writes are re-validated against LEGAL_EDGES; nothing is trusted from the caller
    - Coordinator APROBADA lands only on PRE-APROBADO requests that hold an instructor
    - RECHAZADO accepts no further write of any kind
    - Ledger rows are only ever inserted

Design Decisions:
    - Speaks the same dict shapes as the portal so the orchestrator cannot tell
      the two AssignmentBackend implementations apart
    - Reads use populate_existing: conditional UPDATEs bypass the identity map,
      and the same session is re-read right after a write for verification
    - Rejection releases the capacity held by the assigned instructor (floor 0)
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from assignflow.core.capacity import matches_search, parse_instructor
from assignflow.core.domain_types import (
    Author, LIMIT_HEADROOM, MessageType, RequestState,
)
from assignflow.core.envelope import success_envelope
from assignflow.core.errors import (
    BlockedByInstructorRejectionError, CapacityExceededError,
    InvalidTransitionError, LimitBelowHeadroomError, ResourceNotFoundError,
    StaleRequestError, TerminalStateError, ValidationError,
)
from assignflow.core.ledger import has_rejection_from, parse_message, validate_content
from assignflow.core.request_state_machine import (
    check_transition_allowed, compute_assignment, parse_request_state,
)
from assignflow.models import Instructor, KnowledgeArea, RequestAsignation, RequestMessage

logger = logging.getLogger(__name__)

_CONTRACT_DATE_FIELDS = ("fecha_inicio_contrato", "fecha_fin_contrato")


def _parse_enum(enum_cls: type[Enum], raw: object, field: str):
    try:
        return enum_cls(str(raw or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Valor inválido para {field}: {raw!r}", field) from None


def _parse_date(raw: object, field: str) -> date | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        raise ValidationError(f"Fecha inválida: {raw!r}", field) from None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


class SqlAssignmentBackend:
    """AssignmentBackend over an AsyncSession (PostgreSQL in production, SQLite in tests)."""

    def __init__(self, db: AsyncSession):
        self._db = db

    # ─── Reads ──────────────────────────────────────────────────

    async def get_request(self, request_id: int) -> dict:
        return self._request_dict(await self._load_request(request_id))

    async def get_form_request(self, request_id: int) -> dict:
        request = await self._load_request(request_id)
        instructor = (
            await self._load_instructor(request.instructor_id)
            if request.instructor_id else None
        )
        return {
            **self._request_dict(request),
            "apprentice_id": request.apprentice_id,
            "enterprise_id": request.enterprise_id,
            "name_apprentice": request.name_apprentice,
            "type_identification": request.type_identification,
            "number_identification": request.number_identification,
            "numero_ficha": request.numero_ficha,
            "program": request.program,
            "instructor": self._instructor_dict(instructor) if instructor else None,
        }

    async def get_request_messages(self, request_id: int) -> list[dict]:
        await self._load_request(request_id)
        result = await self._db.execute(
            select(RequestMessage)
            .where(RequestMessage.request_id == request_id)
            .order_by(RequestMessage.created_at, RequestMessage.id),
        )
        return [self._message_dict(m) for m in result.scalars()]

    async def list_instructors(
        self, search: str | None = None, knowledge_area_id: int | None = None,
    ) -> list[dict]:
        stmt = (
            select(Instructor)
            .where(Instructor.is_followup_instructor.is_(True))
            .order_by(Instructor.id)
            .execution_options(populate_existing=True)
        )
        if knowledge_area_id is not None:
            stmt = stmt.where(Instructor.knowledge_area_id == knowledge_area_id)
        rows = [self._instructor_dict(i) for i in (await self._db.execute(stmt)).scalars()]
        return [r for r in rows if matches_search(parse_instructor(r), search)]

    async def list_knowledge_areas(self) -> list[dict]:
        result = await self._db.execute(select(KnowledgeArea).order_by(KnowledgeArea.name))
        return [{"id": a.id, "name": a.name} for a in result.scalars()]

    # ─── Writes ─────────────────────────────────────────────────

    async def assign_instructor(
        self, instructor_id: int, request_id: int, payload: dict,
    ) -> dict:
        return await self._write(request_id, payload, assign_to=instructor_id)

    async def patch_message_request(self, request_id: int, payload: dict) -> dict:
        return await self._write(request_id, payload)

    async def reject_request(
        self, request_id: int, reason: str, whose_message: str = "COORDINADOR",
        version: int | None = None,
    ) -> dict:
        return await self._write(request_id, {
            "content": reason,
            "type_message": MessageType.RECHAZADO.value,
            "whose_message": whose_message,
            "request_state": RequestState.RECHAZADO.value,
            "version": version,
        })

    async def set_instructor_limit(self, instructor_id: int, new_limit: int) -> dict:
        async with self._transaction():
            result = await self._db.execute(
                update(Instructor)
                .where(
                    Instructor.id == instructor_id,
                    Instructor.assigned_learners + LIMIT_HEADROOM <= new_limit,
                )
                .values(max_assigned_learners=new_limit)
                .execution_options(synchronize_session=False),
            )
            if result.rowcount != 1:
                current = await self._load_instructor(instructor_id)
                raise LimitBelowHeadroomError(
                    new_limit, current.assigned_learners + LIMIT_HEADROOM,
                )
        instructor = await self._load_instructor(instructor_id)
        logger.info(
            f"Instructor limit set to {new_limit}",
            extra={"instructor_id": instructor_id},
        )
        return success_envelope(data=self._instructor_dict(instructor))

    async def _write(
        self, request_id: int, payload: dict, assign_to: int | None = None,
    ) -> dict:
        content = validate_content(payload.get("content"))
        type_message = _parse_enum(MessageType, payload.get("type_message"), "type_message")
        author = _parse_enum(Author, payload.get("whose_message"), "whose_message")
        async with self._transaction():
            request = await self._load_request(request_id)
            current = parse_request_state(request.request_state)
            raw_next = payload.get("request_state")
            next_state = current
            if raw_next is None and assign_to is None:
                if current.is_terminal:
                    raise TerminalStateError(request_id)
            else:
                next_state = parse_request_state(raw_next)
                await self._validate(request, current, next_state, type_message, author, assign_to)
                expected = payload.get("version")
                await self._compare_and_set(
                    request_id,
                    request.version if expected is None else int(expected),
                    self._state_values(next_state, payload, assign_to),
                )
                await self._move_capacity(request, next_state, assign_to)
            self._db.add(RequestMessage(
                request_id=request_id,
                content=content,
                type_message=type_message.value,
                whose_message=author.value,
            ))
        logger.info(
            f"Request {current.value} → {next_state.value} ({type_message.value})",
            extra={
                "request_id": request_id, "instructor_id": assign_to,
                "actor_role": author.value,
            },
        )
        return success_envelope(
            data=self._request_dict(await self._load_request(request_id)),
        )

    # ─── Transaction helpers ────────────────────────────────────

    @asynccontextmanager
    async def _transaction(self):
        try:
            yield
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

    async def _validate(
        self,
        request: RequestAsignation,
        current: RequestState,
        next_state: RequestState,
        type_message: MessageType,
        author: Author,
        assign_to: int | None,
    ) -> None:
        check_transition_allowed(current, next_state, type_message, author)
        if assign_to is not None:
            await self._load_instructor(assign_to)
            expected = compute_assignment(current, request.modality)
            if (expected.next_state, expected.message_type) != (next_state, type_message):
                raise InvalidTransitionError(
                    f"Assignment from {current.value} must write "
                    f"{expected.message_type.value} → {expected.next_state.value}",
                )
        if author is Author.COORDINADOR and type_message is MessageType.APROBADA:
            if request.instructor_id is None:
                raise InvalidTransitionError(
                    f"Request {request.id} has no instructor to confirm",
                )
            ledger = [parse_message(m) for m in await self.get_request_messages(request.id)]
            if has_rejection_from(ledger, Author.INSTRUCTOR):
                raise BlockedByInstructorRejectionError(request.id)

    @staticmethod
    def _state_values(
        next_state: RequestState, payload: dict, assign_to: int | None,
    ) -> dict:
        values = {
            "request_state": next_state.value,
            "version": RequestAsignation.version + 1,
        }
        for key in _CONTRACT_DATE_FIELDS:
            parsed = _parse_date(payload.get(key), key)
            if parsed is not None:
                values[key] = parsed
        if assign_to is not None:
            values["instructor_id"] = assign_to
        return values

    async def _compare_and_set(self, request_id: int, expected: int, values: dict) -> None:
        result = await self._db.execute(
            update(RequestAsignation)
            .where(
                RequestAsignation.id == request_id,
                RequestAsignation.version == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            logger.warning(
                f"Stale write refused (expected version {expected})",
                extra={"request_id": request_id, "error_code": "STALE_REQUEST"},
            )
            raise StaleRequestError(request_id, expected)

    async def _move_capacity(
        self,
        request: RequestAsignation,
        next_state: RequestState,
        assign_to: int | None,
    ) -> None:
        held = request.instructor_id
        if assign_to is not None and assign_to != held:
            await self._reserve(assign_to)
            if held is not None:
                await self._release(held)
        elif next_state is RequestState.RECHAZADO and held is not None:
            await self._release(held)

    async def _reserve(self, instructor_id: int) -> None:
        result = await self._db.execute(
            update(Instructor)
            .where(
                Instructor.id == instructor_id,
                Instructor.assigned_learners < Instructor.max_assigned_learners,
            )
            .values(assigned_learners=Instructor.assigned_learners + 1)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise CapacityExceededError(instructor_id)

    async def _release(self, instructor_id: int) -> None:
        await self._db.execute(
            update(Instructor)
            .where(Instructor.id == instructor_id, Instructor.assigned_learners > 0)
            .values(assigned_learners=Instructor.assigned_learners - 1)
            .execution_options(synchronize_session=False),
        )

    # ─── Row loading / serialization ────────────────────────────

    async def _load_request(self, request_id: int) -> RequestAsignation:
        result = await self._db.execute(
            select(RequestAsignation)
            .where(RequestAsignation.id == request_id)
            .execution_options(populate_existing=True),
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise ResourceNotFoundError("Request", request_id)
        return request

    async def _load_instructor(self, instructor_id: int) -> Instructor:
        result = await self._db.execute(
            select(Instructor)
            .where(Instructor.id == instructor_id)
            .execution_options(populate_existing=True),
        )
        instructor = result.scalar_one_or_none()
        if instructor is None:
            raise ResourceNotFoundError("Instructor", instructor_id)
        return instructor

    @staticmethod
    def _request_dict(request: RequestAsignation) -> dict:
        return {
            "id": request.id,
            "request_state": request.request_state,
            "modality": request.modality,
            "instructor_id": request.instructor_id,
            "version": request.version,
            "request_date": _iso(request.request_date),
            "date_start_production_stage": _iso(request.date_start_production_stage),
            "date_end_production_stage": _iso(request.date_end_production_stage),
            "fecha_inicio_contrato": _iso(request.fecha_inicio_contrato),
            "fecha_fin_contrato": _iso(request.fecha_fin_contrato),
        }

    @staticmethod
    def _instructor_dict(instructor: Instructor) -> dict:
        return {
            "id": instructor.id,
            "name": instructor.full_name,
            "number_identification": instructor.number_identification,
            "knowledge_area": instructor.knowledge_area_id,
            "email": instructor.email,
            "phone": instructor.phone,
            "assigned_learners": instructor.assigned_learners,
            "max_assigned_learners": instructor.max_assigned_learners,
        }

    @staticmethod
    def _message_dict(message: RequestMessage) -> dict:
        return {
            "id": message.id,
            "request_asignation": message.request_id,
            "content": message.content,
            "type_message": message.type_message,
            "whose_message": message.whose_message,
            "created_at": message.created_at.isoformat() if message.created_at else None,
        }

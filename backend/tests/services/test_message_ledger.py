"""Message Ledger Service — verifies history reads and plain appends through the backend.

Tests:
    - history() is ordered oldest first and re-fetched on every call
    - append() validates before the backend and returns the stored entry
    - record_transition() carries state, version and non-empty extras in one call
"""

import pytest

from assignflow.core.domain_types import Author, MessageType, RequestState, Transition
from assignflow.core.errors import DomainError, EmptyContentError
from assignflow.services.message_ledger import MessageLedger
from tests.services.fake_backend import FakeBackend


async def test_history_is_ordered_and_fresh():
    backend = FakeBackend()
    ledger = MessageLedger(backend)
    backend.add_message("Revisar", "VERIFICACION", "COORDINADOR")
    assert [m.content for m in await ledger.history(42)] == ["Revisar"]

    backend.add_message("Perfil adecuado", "APROBADA", "INSTRUCTOR")
    history = await ledger.history(42)
    assert [m.content for m in history] == ["Revisar", "Perfil adecuado"]


async def test_append_returns_stored_entry():
    backend = FakeBackend(request_state="VERIFICANDO")
    stored = await MessageLedger(backend).append(
        42, "Nota de seguimiento", MessageType.VERIFICACION, Author.COORDINADOR,
    )
    assert stored.id == 1
    assert stored.whose_message == "COORDINADOR"
    _, (_, payload) = backend.calls[0]
    assert "request_state" not in payload


async def test_append_blank_content_makes_no_call():
    backend = FakeBackend()
    with pytest.raises(EmptyContentError):
        await MessageLedger(backend).append(42, " ", MessageType.VERIFICACION, Author.COORDINADOR)
    assert backend.calls == []


async def test_append_error_envelope():
    backend = FakeBackend()
    backend.ack = {"status": "error", "message": "Solicitud cerrada"}
    with pytest.raises(DomainError):
        await MessageLedger(backend).append(
            42, "Nota", MessageType.VERIFICACION, Author.COORDINADOR,
        )


async def test_record_transition_payload():
    backend = FakeBackend(request_state="PRE-APROBADO")
    ack = await MessageLedger(backend).record_transition(
        42, "Aprobado", Transition(RequestState.ASIGNADO, MessageType.APROBADA),
        Author.COORDINADOR, version=2,
        extra={"fecha_inicio_contrato": "2026-04-01", "fecha_fin_contrato": None},
    )
    assert ack.success
    _, (_, payload) = backend.calls[0]
    assert payload == {
        "content": "Aprobado", "type_message": "APROBADA",
        "whose_message": "COORDINADOR", "request_state": "ASIGNADO",
        "version": 2, "fecha_inicio_contrato": "2026-04-01",
    }


async def test_rejection_queries():
    backend = FakeBackend()
    backend.add_message("No cumple", "RECHAZADO", "INSTRUCTOR")
    ledger = MessageLedger(backend)
    assert await ledger.has_rejection_from(42, Author.INSTRUCTOR)
    assert not await ledger.has_rejection_from(42, Author.COORDINADOR)
    assert (await ledger.latest_by_author(42, Author.INSTRUCTOR)).content == "No cumple"

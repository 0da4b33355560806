"""Request State Machine — verifies every transition the workflow may compute.

Tests:
    - Assignment: contract modality fast-track, SIN_ASIGNAR/VERIFICANDO/PRE-APROBADO → VERIFICANDO,
      ASIGNADO reassignment stays ASIGNADO
    - RECHAZADO is terminal for every compute_* function
    - Pre-approval only from PRE-APROBADO with an instructor, blocked by an instructor rejection
    - Instructor review (valoración) only by the assigned instructor
    - State parsing: aliases, unset, unknown
    - LEGAL_EDGES re-validation and allowed_outcomes for the UI
"""

import pytest

from assignflow.core.domain_types import (
    Actor, Author, MessageType, Outcome, RequestState, Transition,
)
from assignflow.core.errors import (
    BlockedByInstructorRejectionError, ForbiddenActorError, InvalidStateError,
    InvalidTransitionError, TerminalStateError, ValidationError,
)
from assignflow.core.ledger import Message
from assignflow.core.request_state_machine import (
    allowed_outcomes, check_transition_allowed, compute_assignment,
    compute_instructor_review, compute_pre_approval, compute_rejection,
    compute_transition, parse_request, parse_request_state,
)

COORDINATOR = Actor(Author.COORDINADOR, 1)
INSTRUCTOR = Actor(Author.INSTRUCTOR, 7)


def _msg(type_message: str, whose: str, content: str = "texto", id: int = 1) -> Message:
    return Message(
        id=id, request_id=42, content=content,
        type_message=type_message, whose_message=whose,
    )


# ─── compute_assignment ─────────────────────────────────────────

def test_unassigned_internship_goes_to_verification():
    assert compute_assignment(RequestState.SIN_ASIGNAR, "Pasantía") == Transition(
        RequestState.VERIFICANDO, MessageType.VERIFICACION,
    )


@pytest.mark.parametrize("state", [RequestState.VERIFICANDO, RequestState.PRE_APROBADO])
def test_reassignment_during_review_restarts_verification(state):
    assert compute_assignment(state, "Pasantía") == Transition(
        RequestState.VERIFICANDO, MessageType.VERIFICACION,
    )


def test_reassignment_of_assigned_request_stays_assigned():
    assert compute_assignment(RequestState.ASIGNADO, "Pasantía") == Transition(
        RequestState.ASIGNADO, MessageType.ASIGNADO,
    )


@pytest.mark.parametrize("state", [
    RequestState.SIN_ASIGNAR, RequestState.VERIFICANDO,
    RequestState.PRE_APROBADO, RequestState.ASIGNADO,
])
def test_contract_modality_is_always_assigned_directly(state):
    assert compute_assignment(state, "Contrato de aprendizaje") == Transition(
        RequestState.ASIGNADO, MessageType.ASIGNADO,
    )


def test_contract_modality_match_is_exact_after_trim():
    assert compute_assignment(
        RequestState.SIN_ASIGNAR, "  Contrato de aprendizaje ",
    ).next_state is RequestState.ASIGNADO
    assert compute_assignment(
        RequestState.SIN_ASIGNAR, "Contrato de Aprendizaje Virtual",
    ).next_state is RequestState.VERIFICANDO


def test_missing_modality_follows_the_state_table():
    assert compute_assignment(RequestState.SIN_ASIGNAR, None).next_state is (
        RequestState.VERIFICANDO
    )


# ─── terminal state ─────────────────────────────────────────────

def test_rejected_request_refuses_assignment():
    with pytest.raises(TerminalStateError):
        compute_assignment(RequestState.RECHAZADO, "Pasantía")


def test_rejected_request_refuses_contract_assignment():
    with pytest.raises(TerminalStateError):
        compute_assignment(RequestState.RECHAZADO, "Contrato de aprendizaje")


def test_rejected_request_refuses_pre_approval():
    with pytest.raises(TerminalStateError):
        compute_pre_approval(RequestState.RECHAZADO, [], 7)


def test_rejected_request_refuses_second_rejection():
    with pytest.raises(TerminalStateError):
        compute_rejection(RequestState.RECHAZADO, "otra vez")


def test_rejected_request_refuses_instructor_review():
    with pytest.raises(TerminalStateError):
        compute_instructor_review(RequestState.RECHAZADO, True)


# ─── compute_pre_approval ───────────────────────────────────────

def test_pre_approval_assigns_with_approved_message():
    ledger = [_msg("APROBADA", "INSTRUCTOR")]
    assert compute_pre_approval(RequestState.PRE_APROBADO, ledger, 7) == Transition(
        RequestState.ASIGNADO, MessageType.APROBADA,
    )


def test_pre_approval_blocked_after_instructor_rejection():
    ledger = [
        _msg("VERIFICACION", "COORDINADOR", id=1),
        _msg("RECHAZADO", "INSTRUCTOR", "No cumple el perfil", id=2),
    ]
    with pytest.raises(BlockedByInstructorRejectionError):
        compute_pre_approval(RequestState.PRE_APROBADO, ledger, 7)


def test_pre_approval_blocked_by_any_rechazad_variant():
    ledger = [_msg("RECHAZADA", "INSTRUCTOR")]
    with pytest.raises(BlockedByInstructorRejectionError):
        compute_pre_approval(RequestState.PRE_APROBADO, ledger, 7)


def test_coordinator_rejection_message_does_not_block_pre_approval():
    ledger = [_msg("RECHAZADO", "COORDINADOR")]
    assert compute_pre_approval(RequestState.PRE_APROBADO, ledger, 7).next_state is (
        RequestState.ASIGNADO
    )


@pytest.mark.parametrize("state", [
    RequestState.SIN_ASIGNAR, RequestState.VERIFICANDO, RequestState.ASIGNADO,
])
def test_pre_approval_requires_instructor_verification(state):
    with pytest.raises(InvalidTransitionError):
        compute_pre_approval(state, [], 7)


def test_pre_approval_requires_assigned_instructor():
    with pytest.raises(InvalidTransitionError):
        compute_pre_approval(RequestState.PRE_APROBADO, [], None)


# ─── compute_rejection ──────────────────────────────────────────

@pytest.mark.parametrize("state", [
    RequestState.SIN_ASIGNAR, RequestState.VERIFICANDO,
    RequestState.PRE_APROBADO, RequestState.ASIGNADO,
])
def test_rejection_from_any_live_state(state):
    assert compute_rejection(state, "Documentos incompletos") == Transition(
        RequestState.RECHAZADO, MessageType.RECHAZADO,
    )


@pytest.mark.parametrize("reason", [None, "", "   \n\t"])
def test_rejection_requires_reason(reason):
    with pytest.raises(ValidationError) as exc:
        compute_rejection(RequestState.ASIGNADO, reason)
    assert exc.value.field == "reason"


# ─── compute_instructor_review ──────────────────────────────────

def test_instructor_approval_pre_approves():
    assert compute_instructor_review(RequestState.VERIFICANDO, True) == Transition(
        RequestState.PRE_APROBADO, MessageType.APROBADA,
    )


def test_instructor_rejection_is_not_terminal():
    assert compute_instructor_review(RequestState.VERIFICANDO, False) == Transition(
        RequestState.PRE_APROBADO, MessageType.RECHAZADO,
    )


def test_instructor_may_revise_pre_approved_review():
    assert compute_instructor_review(RequestState.PRE_APROBADO, False).message_type is (
        MessageType.RECHAZADO
    )


@pytest.mark.parametrize("state", [RequestState.SIN_ASIGNAR, RequestState.ASIGNADO])
def test_instructor_review_outside_verification_is_invalid(state):
    with pytest.raises(InvalidTransitionError):
        compute_instructor_review(state, True)


# ─── compute_transition (dispatcher) ────────────────────────────

def test_dispatcher_assign_for_coordinator():
    t = compute_transition(RequestState.SIN_ASIGNAR, "Pasantía", COORDINATOR, Outcome.ASSIGN)
    assert t == Transition(RequestState.VERIFICANDO, MessageType.VERIFICACION)


def test_dispatcher_refuses_instructor_assignment():
    with pytest.raises(ForbiddenActorError):
        compute_transition(RequestState.SIN_ASIGNAR, "Pasantía", INSTRUCTOR, Outcome.ASSIGN)


def test_dispatcher_refuses_coordinator_review():
    with pytest.raises(ForbiddenActorError):
        compute_transition(
            RequestState.VERIFICANDO, "Pasantía", COORDINATOR, Outcome.INSTRUCTOR_APPROVE,
        )


def test_dispatcher_review_by_assigned_instructor():
    t = compute_transition(
        RequestState.VERIFICANDO, "Pasantía", INSTRUCTOR, Outcome.INSTRUCTOR_REJECT,
        instructor_id=7,
    )
    assert t == Transition(RequestState.PRE_APROBADO, MessageType.RECHAZADO)


@pytest.mark.parametrize("instructor_id", [3, None])
def test_dispatcher_refuses_review_by_other_instructor(instructor_id):
    for outcome in (Outcome.INSTRUCTOR_APPROVE, Outcome.INSTRUCTOR_REJECT):
        with pytest.raises(ForbiddenActorError):
            compute_transition(
                RequestState.VERIFICANDO, "Pasantía", INSTRUCTOR, outcome,
                instructor_id=instructor_id,
            )


def test_dispatcher_reject_for_either_role():
    for actor in (COORDINATOR, INSTRUCTOR):
        t = compute_transition(
            RequestState.VERIFICANDO, "Pasantía", actor, Outcome.REJECT, reason="No aplica",
        )
        assert t.next_state is RequestState.RECHAZADO


def test_dispatcher_pre_approve_checks_ledger():
    ledger = [_msg("RECHAZADO", "INSTRUCTOR")]
    with pytest.raises(BlockedByInstructorRejectionError):
        compute_transition(
            RequestState.PRE_APROBADO, "Pasantía", COORDINATOR, Outcome.PRE_APPROVE, ledger,
            instructor_id=7,
        )


# ─── parse_request_state / parse_request ────────────────────────

@pytest.mark.parametrize("raw,expected", [
    (None, RequestState.SIN_ASIGNAR),
    ("", RequestState.SIN_ASIGNAR),
    ("PRE-APROBADO", RequestState.PRE_APROBADO),
    ("PRE_APROBADO", RequestState.PRE_APROBADO),
    ("verificando", RequestState.VERIFICANDO),
    ("EN_REVISION", RequestState.VERIFICANDO),
    ("RECHAZADO", RequestState.RECHAZADO),
])
def test_parse_request_state_normalizes(raw, expected):
    assert parse_request_state(raw) is expected


@pytest.mark.parametrize("raw", ["CERRADO", 3])
def test_parse_request_state_rejects_unknown(raw):
    with pytest.raises(InvalidStateError):
        parse_request_state(raw)


def test_parse_request_reads_nested_modality():
    snapshot = parse_request({
        "id": "42", "request_state": "VERIFICANDO",
        "modality_productive_stage": {"name_modality": "Contrato de aprendizaje"},
        "instructor": 7,
    })
    assert snapshot.id == 42
    assert snapshot.modality == "Contrato de aprendizaje"
    assert snapshot.instructor_id == 7
    assert snapshot.version is None


# ─── check_transition_allowed ───────────────────────────────────

def test_store_accepts_verification_write_from_unassigned():
    check_transition_allowed(
        RequestState.SIN_ASIGNAR, RequestState.VERIFICANDO,
        MessageType.VERIFICACION, Author.COORDINADOR,
    )


def test_store_refuses_instructor_review_of_unassigned_request():
    with pytest.raises(InvalidTransitionError):
        check_transition_allowed(
            RequestState.SIN_ASIGNAR, RequestState.PRE_APROBADO,
            MessageType.APROBADA, Author.INSTRUCTOR,
        )


@pytest.mark.parametrize("state", [RequestState.SIN_ASIGNAR, RequestState.VERIFICANDO])
def test_store_refuses_coordinator_approval_before_review(state):
    with pytest.raises(InvalidTransitionError):
        check_transition_allowed(
            state, RequestState.ASIGNADO, MessageType.APROBADA, Author.COORDINADOR,
        )


def test_store_accepts_coordinator_approval_after_review():
    check_transition_allowed(
        RequestState.PRE_APROBADO, RequestState.ASIGNADO,
        MessageType.APROBADA, Author.COORDINADOR,
    )


def test_store_refuses_any_write_on_rejected_request():
    with pytest.raises(TerminalStateError):
        check_transition_allowed(
            RequestState.RECHAZADO, RequestState.ASIGNADO,
            MessageType.ASIGNADO, Author.COORDINADOR,
        )


# ─── allowed_outcomes ───────────────────────────────────────────

def test_rejected_request_offers_nothing():
    assert allowed_outcomes(RequestState.RECHAZADO, COORDINATOR) == []
    assert allowed_outcomes(RequestState.RECHAZADO, INSTRUCTOR) == []


def test_coordinator_sees_pre_approve_only_when_unblocked():
    assert Outcome.PRE_APPROVE in allowed_outcomes(
        RequestState.PRE_APROBADO, COORDINATOR, instructor_id=7,
    )
    blocked = allowed_outcomes(
        RequestState.PRE_APROBADO, COORDINATOR, [_msg("RECHAZADO", "INSTRUCTOR")], 7,
    )
    assert Outcome.PRE_APPROVE not in blocked
    assert blocked == [Outcome.ASSIGN, Outcome.REJECT]


def test_coordinator_without_instructor_sees_no_pre_approve():
    assert allowed_outcomes(RequestState.PRE_APROBADO, COORDINATOR) == [
        Outcome.ASSIGN, Outcome.REJECT,
    ]


def test_other_instructor_sees_only_rejection():
    assert allowed_outcomes(RequestState.VERIFICANDO, INSTRUCTOR, instructor_id=3) == [
        Outcome.REJECT,
    ]


def test_instructor_sees_review_during_verification():
    assert allowed_outcomes(RequestState.VERIFICANDO, INSTRUCTOR, instructor_id=7) == [
        Outcome.INSTRUCTOR_APPROVE, Outcome.INSTRUCTOR_REJECT, Outcome.REJECT,
    ]
    assert allowed_outcomes(RequestState.ASIGNADO, INSTRUCTOR, instructor_id=7) == [
        Outcome.REJECT,
    ]

"""Request Workflow Routes — view, assign, pre-approve, review and reject a request.

Invariants:
    - Every handler takes the Actor from headers and passes it explicitly
    - Handlers delegate to AssignmentOrchestrator; no state rule lives here
    - Successful writes answer the refreshed request and ledger, never the request body
"""

import logging

from fastapi import APIRouter, Depends

from assignflow.api.deps import get_actor, get_backend, get_orchestrator
from assignflow.core.domain_types import Actor
from assignflow.core.repository_protocols import AssignmentBackend
from assignflow.schemas.request import (
    AssignBody, MessageResponse, PreApproveBody, RejectBody, RequestResponse,
    RequestViewResponse, ReviewBody, WorkflowResponse,
)
from assignflow.services.assignment_orchestrator import AssignmentOrchestrator
from assignflow.services.refresh import WorkflowResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/requests", tags=["requests"])


def _to_response(result: WorkflowResult) -> WorkflowResponse:
    return WorkflowResponse(
        detail=result.detail,
        request=RequestResponse.from_snapshot(result.request),
        ledger=[MessageResponse.from_message(m) for m in result.ledger],
    )


@router.get("/{request_id}", response_model=RequestViewResponse)
async def get_request_view(
    request_id: int,
    actor: Actor = Depends(get_actor),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Fresh request state, ledger and the actions the caller may take."""
    view = await orchestrator.request_view(actor, request_id)
    return RequestViewResponse(
        request=RequestResponse.from_snapshot(view.request),
        ledger=[MessageResponse.from_message(m) for m in view.ledger],
        allowed_actions=[o.value for o in view.allowed],
        coordinator_message=view.coordinator_message,
    )


@router.get("/{request_id}/form")
async def get_form_request(
    request_id: int, backend: AssignmentBackend = Depends(get_backend),
) -> dict:
    return await backend.get_form_request(request_id)


@router.get("/{request_id}/messages", response_model=list[MessageResponse])
async def get_messages(
    request_id: int,
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    history = await orchestrator.ledger.history(request_id)
    return [MessageResponse.from_message(m) for m in history]


@router.post("/{request_id}/assign", response_model=WorkflowResponse)
async def assign_instructor(
    request_id: int,
    body: AssignBody,
    actor: Actor = Depends(get_actor),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.assign_instructor(
        actor, request_id, body.instructor_id, body.content,
    )
    return _to_response(result)


@router.post("/{request_id}/pre-approve", response_model=WorkflowResponse)
async def pre_approve(
    request_id: int,
    body: PreApproveBody,
    actor: Actor = Depends(get_actor),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.pre_approve(
        actor, request_id, body.content,
        body.fecha_inicio_contrato, body.fecha_fin_contrato,
    )
    return _to_response(result)


@router.post("/{request_id}/review", response_model=WorkflowResponse)
async def review(
    request_id: int,
    body: ReviewBody,
    actor: Actor = Depends(get_actor),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    """Instructor valoración of a request in verification."""
    result = await orchestrator.review(
        actor, request_id, body.approve, body.content,
        body.fecha_inicio_contrato, body.fecha_fin_contrato,
    )
    return _to_response(result)


@router.post("/{request_id}/reject", response_model=WorkflowResponse)
async def reject(
    request_id: int,
    body: RejectBody,
    actor: Actor = Depends(get_actor),
    orchestrator: AssignmentOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.reject(actor, request_id, body.reason)
    return _to_response(result)

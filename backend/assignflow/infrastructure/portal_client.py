"""Portal Client — httpx adapter for the legacy assignment portal REST API.

Invariants:
    - Connection errors and 5xx on idempotent calls: retried with exponential backoff
    - Non-idempotent writes (assign, message update, reject) are sent exactly once
    - 4xx: immediate failure; the server's detail surfaces as DomainError
    - 5xx / network failure after retries: TransportError
    - A 2xx write body with status "error" is passed through untouched: callers
      run interpret_ack, which raises DomainError for it. On reads it raises here
    - Bodies wrapped in {"data": ...} are unwrapped for reads

Design Decisions:
    - Implements AssignmentBackend structurally; the orchestrator never knows
      whether it talks to the portal or to the SQL store
    - ±25% jitter on backoff: prevents synchronized retries from many workers
    - The portal has no version column; optimistic concurrency degrades to the
      orchestrator's post-write verification
"""

import asyncio
import logging
import random
from typing import Any

import httpx

from assignflow.core.envelope import extract_detail, is_error_payload, unwrap
from assignflow.core.errors import DomainError, ErrorContext, TransportError

logger = logging.getLogger(__name__)

_REQUEST = "assign/request_asignation/{id}/"
_FORM_DETAIL = "assign/request_asignation/{id}/form-request-detail/"
_ASSIGN = "assign/asignation_instructor/custom-create/"
_MESSAGE_UPDATE = "assign/request_asignation/{id}/form-request-update/"
_REJECT = "assign/request_asignation/{id}/form-request-reject/"
_MESSAGES = "assign/request_asignation/{id}/messages/"
_INSTRUCTORS = "general/instructors/filter/"
_INSTRUCTOR_LIMIT = "general/instructors/{id}/update-learners/"
_KNOWLEDGE_AREAS = "general/knowledge-areas/"


class PortalClient:
    """AssignmentBackend over the portal's HTTP API, with retry and error mapping."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 10_000,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, headers=headers,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def aclose(self) -> None:
        await self.client.aclose()

    # ─── AssignmentBackend ──────────────────────────────────────

    async def get_request(self, request_id: int) -> dict:
        body = unwrap(await self._get(
            _REQUEST.format(id=request_id), context=ErrorContext(request_id=request_id),
        ))
        return body if isinstance(body, dict) else {"id": request_id}

    async def get_form_request(self, request_id: int) -> dict:
        body = unwrap(await self._get(
            _FORM_DETAIL.format(id=request_id), context=ErrorContext(request_id=request_id),
        ))
        return body if isinstance(body, dict) else {}

    async def assign_instructor(
        self, instructor_id: int, request_id: int, payload: dict,
    ) -> dict:
        body = {"instructor": instructor_id, "request_asignation": request_id}
        body.update({k: v for k, v in payload.items() if v is not None})
        return await self._request(
            "POST", _ASSIGN, json=body,
            context=ErrorContext(request_id=request_id, instructor_id=instructor_id),
        )

    async def patch_message_request(self, request_id: int, payload: dict) -> dict:
        return await self._request(
            "PATCH", _MESSAGE_UPDATE.format(id=request_id),
            json={k: v for k, v in payload.items() if v is not None},
            context=ErrorContext(request_id=request_id),
        )

    async def reject_request(
        self, request_id: int, reason: str, whose_message: str = "COORDINADOR",
        version: int | None = None,
    ) -> dict:
        return await self._request(
            "PATCH", _REJECT.format(id=request_id),
            json={"rejectionMessage": reason},
            context=ErrorContext(request_id=request_id, actor_role=whose_message),
        )

    async def get_request_messages(self, request_id: int) -> list[dict]:
        return _as_list(await self._get(
            _MESSAGES.format(id=request_id), context=ErrorContext(request_id=request_id),
        ))

    async def list_instructors(
        self, search: str | None = None, knowledge_area_id: int | None = None,
    ) -> list[dict]:
        params: dict[str, Any] = {"is_followup_instructor": "true"}
        if search:
            params["search"] = search
        if knowledge_area_id is not None:
            params["knowledge_area_id"] = knowledge_area_id
        return _as_list(await self._get(_INSTRUCTORS, params=params))

    async def set_instructor_limit(self, instructor_id: int, new_limit: int) -> dict:
        return await self._request(
            "PATCH", _INSTRUCTOR_LIMIT.format(id=instructor_id),
            json={"max_assigned_learners": new_limit}, retry=True,
            context=ErrorContext(instructor_id=instructor_id),
        )

    async def list_knowledge_areas(self) -> list[dict]:
        return _as_list(await self._get(_KNOWLEDGE_AREAS))

    # ─── Transport ──────────────────────────────────────────────

    async def _get(
        self, path: str, params: dict | None = None,
        context: ErrorContext | None = None,
    ) -> Any:
        """Idempotent read; an error envelope on a read is raised here."""
        body = await self._request(
            "GET", path, params=params, retry=True, context=context,
        )
        if is_error_payload(body):
            raise DomainError(extract_detail(body), context=context)
        return body

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        retry: bool = False,
        context: ErrorContext | None = None,
    ) -> Any:
        """Send one call; retries only when the call is idempotent."""
        attempts = self.max_retries + 1 if retry else 1
        for attempt in range(attempts):
            try:
                response = await self.client.request(
                    method, path, json=json, params=params,
                )
            except httpx.HTTPError as e:
                await self._handle_transient_error(
                    f"{method} {path}: {e}", attempt, attempts, None, None, context,
                )
                continue
            if response.status_code >= 500:
                await self._handle_transient_error(
                    f"{method} {path} → {response.status_code}",
                    attempt, attempts, response.status_code,
                    extract_detail(_json_or_text(response)), context,
                )
                continue
            body = _json_or_text(response)
            if response.status_code >= 400:
                logger.warning(
                    f"Portal refused {method} {path}",
                    extra={
                        "status_code": response.status_code,
                        "request_id": context.request_id if context else None,
                    },
                )
                raise DomainError(
                    extract_detail(body), context=context,
                    http_status=response.status_code,
                )
            logger.info(
                f"Portal {method} {path} ok",
                extra={"attempt": attempt + 1, "status_code": response.status_code},
            )
            return body
        raise TransportError(f"{method} {path}: retries exhausted", context=context)

    async def _handle_transient_error(
        self,
        message: str,
        attempt: int,
        attempts: int,
        status_code: int | None,
        detail: str | None,
        context: ErrorContext | None,
    ) -> None:
        """Sleep before the next attempt, or raise once attempts are used up."""
        if attempt + 1 >= attempts:
            logger.error(
                f"Portal call failed: {message}",
                extra={"attempt": attempt + 1, "status_code": status_code},
            )
            raise TransportError(message, status_code, detail, context)
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient portal error, retry after {delay}ms: {message}",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _as_list(body: Any) -> list[dict]:
    """Support both {"data": [...]} and [...] shapes."""
    body = unwrap(body)
    if isinstance(body, dict) and isinstance(body.get("results"), list):
        return body["results"]
    return body if isinstance(body, list) else []

"""Response Envelope — interprets backend acknowledgements, including errors sent as 200.

Invariants:
    - A payload with status "error" (or success false) is NEVER a success,
      whatever the transport status was
    - The server-provided detail wins; the generic texts are fallbacks only
    - Pure: no IO

Design Decisions:
    - Payloads may be wrapped in {"data": ...}; the innermost object is read
"""

from dataclasses import dataclass
from typing import Any

from assignflow.core.errors import DomainError, GENERIC_FAILURE_DETAIL

SUCCESS_DETAIL = "Se ha llevado a cabo con éxito tu solicitud."


@dataclass(frozen=True)
class Ack:
    """Backend acknowledgement for a write."""
    success: bool
    detail: str
    data: Any = None


def unwrap(payload: Any) -> Any:
    """Return payload["data"] when the backend wrapped it, else the payload."""
    if isinstance(payload, dict) and "data" in payload and payload["data"] is not None:
        return payload["data"]
    return payload


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def extract_detail(payload: Any) -> str | None:
    """Pull a human-readable detail out of any backend body."""
    if isinstance(payload, str):
        return _text(payload)
    if not isinstance(payload, dict):
        return None
    for candidate in (payload, payload.get("data")):
        if not isinstance(candidate, dict):
            continue
        for key in ("detail", "message"):
            text = _text(candidate.get(key))
            if text:
                return text
        error = candidate.get("error")
        if isinstance(error, dict):
            text = _text(error.get("message"))
            if text:
                return text
    return None


def is_error_payload(payload: Any) -> bool:
    for candidate in (payload, unwrap(payload)):
        if not isinstance(candidate, dict):
            continue
        status = candidate.get("status")
        if isinstance(status, str) and status.lower() == "error":
            return True
        if candidate.get("success") is False:
            return True
    return False


def interpret_ack(payload: Any) -> Ack:
    """Turn a write response into an Ack; raise DomainError for error envelopes."""
    if is_error_payload(payload):
        raise DomainError(extract_detail(payload) or GENERIC_FAILURE_DETAIL)
    return Ack(
        success=True,
        detail=extract_detail(payload) or SUCCESS_DETAIL,
        data=unwrap(payload),
    )


def success_envelope(detail: str = SUCCESS_DETAIL, **extra: Any) -> dict:
    return {"status": "success", "detail": detail, **extra}

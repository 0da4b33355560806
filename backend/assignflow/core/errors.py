"""Error Hierarchy — typed, categorized exceptions for every assignment workflow failure.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recovered where they are raised; infrastructure errors (500-level) are surfaced
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with AssignFlowError base: FastAPI global handler catches all
    - DomainError carries the detail the remote backend sent inside a 200-level envelope
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


GENERIC_FAILURE_DETAIL = "Ocurrió un error al procesar la solicitud."


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: int | None = None
    instructor_id: int | None = None
    actor_role: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class AssignFlowError(Exception):
    """Base exception for all assignment workflow errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "request_id": self.context.request_id,
                    "instructor_id": self.context.instructor_id,
                    "actor_role": self.context.actor_role,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(AssignFlowError):
    """User input rejected before any side effect."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field


class EmptyContentError(ValidationError):
    """Message content is blank."""
    def __init__(self, field: str = "content", context: ErrorContext | None = None):
        super().__init__("El mensaje es obligatorio", field, context)
        self.code = "EMPTY_CONTENT"


class ContentTooLongError(ValidationError):
    """Message content exceeds the ledger limit."""
    def __init__(
        self, length: int, limit: int, field: str = "content",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"El mensaje excede el máximo de {limit} caracteres ({length})",
            field, context,
        )
        self.code = "CONTENT_TOO_LONG"
        self.length = length
        self.limit = limit


class InvalidStateError(AssignFlowError):
    """A request state outside the closed enumeration."""
    def __init__(self, raw_state: object, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown request state: {raw_state!r}",
            "INVALID_STATE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 422,
        )
        self.raw_state = raw_state


class InvalidTransitionError(AssignFlowError):
    """The requested outcome is not legal from the current state."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )


class ForbiddenActorError(AssignFlowError):
    """The acting role may not perform this outcome."""
    def __init__(self, role: str, action: str, context: ErrorContext | None = None):
        super().__init__(
            f"Role {role} cannot perform '{action}'",
            "FORBIDDEN_ACTOR", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 403,
        )
        self.role = role
        self.action = action


class TerminalStateError(AssignFlowError):
    """Any transition attempted on a RECHAZADO request."""
    def __init__(self, request_id: int | None = None, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.request_id = ctx.request_id or request_id
        super().__init__(
            "La solicitud fue rechazada y no admite más cambios",
            "TERMINAL_STATE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )


class BlockedByInstructorRejectionError(AssignFlowError):
    """Coordinator approval refused because the instructor rejected the request."""
    def __init__(self, request_id: int | None = None, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.request_id = ctx.request_id or request_id
        super().__init__(
            "No es posible aprobar: el instructor rechazó la solicitud en la valoración",
            "BLOCKED_BY_INSTRUCTOR_REJECTION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, ctx, 409,
        )


class LimitBelowHeadroomError(AssignFlowError):
    """New capacity limit leaves less than the mandatory headroom."""
    def __init__(
        self, new_limit: int, minimum: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"El límite mínimo es {minimum} (asignados + 10 de margen)",
            "LIMIT_BELOW_HEADROOM", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.new_limit = new_limit
        self.minimum = minimum


class CapacityExceededError(AssignFlowError):
    """Instructor already at max_assigned_learners when committing an assignment."""
    def __init__(self, instructor_id: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.instructor_id = instructor_id
        super().__init__(
            "El instructor alcanzó su límite de aprendices asignados",
            "CAPACITY_EXCEEDED", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, ctx, 409,
        )


class ResourceNotFoundError(AssignFlowError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: object, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class ConcurrencyError(AssignFlowError):
    """Concurrent modification detected."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class StaleRequestError(ConcurrencyError):
    """The request changed since the caller read it."""
    def __init__(
        self, request_id: int, expected_version: int | None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.request_id = request_id
        super().__init__(
            "La solicitud fue modificada por otro usuario. Recargue e intente de nuevo.",
            ctx,
        )
        self.code = "STALE_REQUEST"
        self.expected_version = expected_version


class DuplicateSubmissionError(ConcurrencyError):
    """The same action is already in flight for this request."""
    def __init__(self, action: str, request_id: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.request_id = request_id
        super().__init__(f"'{action}' already in progress for request {request_id}", ctx)
        self.code = "DUPLICATE_SUBMISSION"
        self.action = action


class DomainError(AssignFlowError):
    """Backend reported an error inside a success envelope (or a 4xx with a detail)."""
    def __init__(
        self, detail: str | None = None, context: ErrorContext | None = None,
        http_status: int = 422,
    ):
        super().__init__(
            detail or GENERIC_FAILURE_DETAIL,
            "DOMAIN_ERROR", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, http_status,
        )
        self.detail = detail


# ─── Infrastructure Errors (500-level) ──────────────────────────

class TransportError(AssignFlowError):
    """Network failure or non-2xx response from the portal backend."""
    def __init__(
        self, message: str, status_code: int | None = None,
        detail: str | None = None, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or detail or GENERIC_FAILURE_DETAIL
        super().__init__(
            f"Portal transport error: {message}",
            "TRANSPORT_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 502,
        )
        self.status_code = status_code
        self.detail = detail


class DatabaseError(AssignFlowError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class PartialFailureError(AssignFlowError):
    """Only part of a write persisted (message or state); needs manual reconciliation."""
    def __init__(
        self, request_id: int, expected_state: str, actual_state: str,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.request_id = request_id
        ctx.user_message = (
            "La operación quedó incompleta. Contacte al administrador para conciliar la solicitud."
        )
        super().__init__(
            f"Request {request_id}: write half-applied, state is "
            f"{actual_state} (expected {expected_state})",
            "PARTIAL_FAILURE", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.expected_state = expected_state
        self.actual_state = actual_state

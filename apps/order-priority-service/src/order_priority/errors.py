"""Error taxonomy and API error envelopes."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi.responses import JSONResponse


class PriorityEngineError(Exception):
    """Base class for failures raised by the prioritization core."""


class ValidationError(PriorityEngineError):
    """Request rejected before any mutation was attempted."""


class NotFoundError(PriorityEngineError):
    """Raised when an order cannot be found."""


class RuleEvaluationFault(PriorityEngineError):
    """Raised while applying one priority rule; never escapes scoring."""


class PersistenceError(PriorityEngineError):
    """Raised when a repository read or write fails."""


class DispatchFailure(PriorityEngineError):
    """Raised by a broadcaster that could not hand off a payload."""


class ApiError(Exception):
    """Structured API error used for consistent error envelopes."""

    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        trace_id: str | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.trace_id = trace_id
        self.details = details


def api_error_for(exc: PriorityEngineError) -> ApiError:
    """Map a core error onto its HTTP envelope."""

    if isinstance(exc, ValidationError):
        return ApiError(status_code=400, code="VALIDATION_ERROR", message=str(exc))
    if isinstance(exc, NotFoundError):
        return ApiError(status_code=404, code="NOT_FOUND", message=str(exc))
    if isinstance(exc, PersistenceError):
        return ApiError(status_code=500, code="PERSISTENCE_ERROR", message=str(exc))
    return ApiError(status_code=500, code="INTERNAL_ERROR", message=str(exc))


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build standard error envelope response."""

    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "trace_id": trace_id or f"trc_{uuid4().hex[:8]}",
        }
    }
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=payload)

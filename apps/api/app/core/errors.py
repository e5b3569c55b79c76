"""Domain error taxonomy and its translation to HTTP responses.

Services raise these exceptions; the handlers registered in ``main`` render
them as ``{"error": ..., **extra}`` JSON bodies so that every rejection
carries enough state for the client to refresh without another round-trip.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a client-visible response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = {k: v for k, v in extra.items() if v is not None}
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class Unauthenticated(AppError):
    status_code = 401
    default_message = "Authentication required"


class AccountInactive(AppError):
    status_code = 403
    default_message = "Account is inactive"


class AccessDenied(AppError):
    status_code = 403
    default_message = "Access denied"


class ChatDisabled(AccessDenied):
    """Case chat is closed until the request leaves PENDING_ADMIN_ASSIGNMENT."""

    default_message = "Chat is disabled until an advisor is assigned"

    def __init__(self, message: str | None = None, **extra: Any):
        super().__init__(message, chatDisabled=True, **extra)


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Duplicate(AppError):
    status_code = 409
    default_message = "Already exists"

    def __init__(self, message: str | None = None, status_code: int | None = None, **extra: Any):
        super().__init__(message, **extra)
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(AppError):
    status_code = 400
    default_message = "Validation failed"


class InvalidTransition(AppError):
    """Rejected state-machine move; carries the current state and permitted targets."""

    status_code = 400
    default_message = "Invalid status transition"

    def __init__(
        self,
        current_status: str,
        allowed_transitions: list[str],
        message: str | None = None,
    ):
        self.current_status = current_status
        self.allowed_transitions = list(allowed_transitions)
        super().__init__(
            message or f"Cannot transition from {current_status}",
            currentStatus=current_status,
            allowedTransitions=self.allowed_transitions,
        )


class PreconditionFailed(AppError):
    status_code = 400
    default_message = "Precondition failed"


class StaleWrite(AppError):
    """Another writer moved the entity first."""

    status_code = 409
    default_message = "The record was modified concurrently, refresh and retry"


class DependencyFailed(AppError):
    """An external collaborator (object store, email) failed on a required path."""

    status_code = 500
    default_message = "Upstream service unavailable"


# =============================================================================
# Exception handlers
# =============================================================================


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed with %s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=400,
        content={"error": ValidationFailed.default_message, "details": details},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""
Error taxonomy and the FastAPI exception handlers that render it.

- TrackerError subclasses render as ``{"error": message}``
- MutationFailed subclasses render as ``{"success": false, "error": message}``
- HTTPException (raised by FastAPI or Starlette) renders as ``{"error": detail}``
- Anything else renders as ``{"error": "Internal error"}`` with status 500
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()


class TrackerError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    message: str = "Internal error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message}


class Unauthenticated(TrackerError):
    status_code = 401
    message = "Unauthorized"


class SearchFailed(TrackerError):
    message = "Failed to search"


class SessionLookupFailed(TrackerError):
    """The session store or user table could not be reached while authenticating."""

    message = "Failed to verify session"


class NotFound(TrackerError):
    """A read target does not exist or is not visible to the caller."""

    status_code = 404
    message = "Not found"


class QueryFailed(TrackerError):
    message = "Failed to load data"


# ---------------------------------------------------------------------------
# Durable mutation failures
# ---------------------------------------------------------------------------


class MutationFailed(TrackerError):
    """A durable mutation did not apply. Clients roll back their optimistic state."""

    message = "Mutation failed"

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "error": self.message}


class InvalidInput(MutationFailed):
    status_code = 422


class PermissionDenied(MutationFailed):
    status_code = 403


class EntityNotFound(MutationFailed):
    status_code = 404


class Conflict(MutationFailed):
    status_code = 409


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error(
        "request.unhandled_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(status_code=500, content={"error": TrackerError.message})


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    log.info("request.invalid", path=request.url.path, errors=len(errors))
    return JSONResponse(status_code=422, content={"success": False, "error": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackerError, tracker_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

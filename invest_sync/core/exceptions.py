"""
Domain exceptions and FastAPI exception handlers.

Every error response shares one JSON envelope::

    {
        "error": true,
        "message": "<human-readable description>"
    }

Calculation and validation code never raises.  The exceptions below cover
programming errors (unknown collection names), upstream failures surfaced by
the API client, and polling refreshes in which some collections failed.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class UnknownCollectionError(NotFoundException):
    """A collection name that the entity store does not manage."""

    def __init__(self, name: Any):
        super().__init__("Collection", name)


class UpstreamError(AppException):
    """
    The upstream REST API failed or answered with ``success: false`` (502).

    ``message`` is always human-readable so it can be stored verbatim as a
    collection's error banner.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.upstream_status = status_code
        super().__init__(status_code=502, message=message)


class RefreshError(AppException):
    """One or more collections failed during a polling refresh (503)."""

    def __init__(self, collections: Iterable[str]):
        self.collections = list(collections)
        super().__init__(
            status_code=503,
            message=f"Refresh failed for: {', '.join(self.collections)}",
            details={"collections": self.collections},
        )


def error_message(exc: BaseException, default: str = "An error occurred") -> str:
    """Best human-readable text for ``exc``: its ``message`` attribute, else ``str()``."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or default


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def _envelope(message: Any, details: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": True, "message": message}
    if details is not None:
        body["details"] = details
    return body


def add_exception_handlers(app: FastAPI) -> None:
    """Map domain, HTTP and validation errors onto the shared envelope."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                "%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message
            )
        return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message, exc.details))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_envelope(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """422 with one ``{field, message}`` entry per rejected value."""
        details = [
            {"field": " -> ".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=422, content=_envelope("Validation failed", details))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_envelope("Internal Server Error. Please contact support."),
        )

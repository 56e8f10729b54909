"""TRC API error handling.

Provides TrcHttpError and the FastAPI exception handlers that turn every
failure into a ``{code, message}`` JSON envelope:

- TrcHttpError: Validation and not-found conditions raised by routes
- HTTPException: Router 404/405 (both reported as "Route not found")
- StorageBackendError: Backend unreachable (503)
- StorageError: Corrupt metadata or other storage faults (500)
- Exception: Catch-all (500, no internals exposed)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from trc.api.error_model import get_error_code_for_status, make_error_response
from trc.storage.errors import StorageBackendError, StorageError

logger = logging.getLogger(__name__)


class TrcHttpError(Exception):
    """Application-level HTTP error with structured error envelope.

    Attributes:
        status_code: HTTP status code (e.g., 400, 404).
        code: Machine-readable error code (e.g., "bad_request", "not_found").
        message: Human-readable error message.
    """

    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def bad_request(message: str) -> TrcHttpError:
    """Build a 400 error."""
    return TrcHttpError(status_code=400, code="bad_request", message=message)


def not_found(message: str) -> TrcHttpError:
    """Build a 404 error."""
    return TrcHttpError(status_code=404, code="not_found", message=message)


async def trc_http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for TrcHttpError."""
    assert isinstance(exc, TrcHttpError)

    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for Starlette HTTP exceptions.

    Unmatched paths and unsupported methods both answer 404 "Route not found".
    """
    assert isinstance(exc, StarletteHTTPException)

    if exc.status_code in (404, 405):
        return make_error_response(
            request, code="not_found", message="Route not found", http_status=404
        )

    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"
    return make_error_response(
        request,
        code=get_error_code_for_status(exc.status_code),
        message=message,
        http_status=exc.status_code,
    )


async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for storage failures.

    Backend errors map to 503; every other storage fault maps to 500. Neither
    leaks backend error details to the client.
    """
    assert isinstance(exc, StorageError)

    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Storage operation failed: %s",
        exc,
        exc_info=exc,
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "error_type": type(exc).__name__,
        },
    )

    if isinstance(exc, StorageBackendError):
        return make_error_response(
            request,
            code="backend_unavailable",
            message="Storage backend unavailable",
            http_status=503,
        )

    return make_error_response(
        request,
        code="internal_error",
        message="An internal error occurred",
        http_status=500,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler for unhandled exceptions.

    Returns 500 with a generic message and logs the exception.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id},
    )

    return make_error_response(
        request,
        code="internal_error",
        message="An internal error occurred",
        http_status=500,
    )

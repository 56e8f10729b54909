"""Shared error response builder for the TRC API.

Every middleware and exception handler produces the same envelope:

    {"code": "<machine-readable code>", "message": "<human-readable message>"}

The request id travels in the X-Request-Id response header.
"""

from __future__ import annotations

import uuid

from starlette.requests import Request
from starlette.responses import JSONResponse

REQUEST_ID_HEADER = "X-Request-Id"

HTTP_STATUS_TO_CODE: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    404: "not_found",
    500: "internal_error",
    503: "backend_unavailable",
}


def get_request_id(request: Request) -> str:
    """Return the request id set by RequestIdMiddleware, or a fresh one."""
    request_id: str | None = getattr(request.state, "request_id", None)
    if request_id is not None:
        return str(request_id)

    header_id = request.headers.get(REQUEST_ID_HEADER)
    if header_id:
        return header_id

    return str(uuid.uuid4())


def make_error_response(
    request: Request,
    *,
    code: str,
    message: str,
    http_status: int,
) -> JSONResponse:
    """Build an error JSON response.

    Args:
        request: Current request (for request id extraction).
        code: Machine-readable error code (e.g., "bad_request").
        message: Human-readable error message.
        http_status: HTTP status code.

    Returns:
        JSONResponse with the error envelope and X-Request-Id header.
    """
    request_id = get_request_id(request)
    response = JSONResponse(status_code=http_status, content={"code": code, "message": message})
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def get_error_code_for_status(status_code: int) -> str:
    """Map an HTTP status code to its envelope code."""
    return HTTP_STATUS_TO_CODE.get(status_code, "internal_error")

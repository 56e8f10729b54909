"""Request ID middleware for the TRC API.

Every request gets an id: the client's X-Request-Id when it is usable, a
fresh uuid4 otherwise. The id is stored on ``request.state``, bound to the
logging context for the duration of the request and echoed on the response.
"""

import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from trc.api.error_model import REQUEST_ID_HEADER
from trc.observability.logs import request_id_var

MAX_REQUEST_ID_LENGTH = 128


def _usable_request_id(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value or len(value) > MAX_REQUEST_ID_LENGTH or not value.isprintable():
        return None
    return value


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to the request, its log records and its response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = _usable_request_id(request.headers.get(REQUEST_ID_HEADER))
        if request_id is None:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response: Response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

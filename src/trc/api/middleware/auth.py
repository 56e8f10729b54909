"""Authentication middleware for the TRC API.

Every request, including unmatched routes, must pass the configured
Authenticator before reaching a route handler.
"""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from trc.api.auth import AuthenticationError, Authenticator
from trc.api.error_model import make_error_response

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Rejects requests without a valid bearer credential with 401."""

    def __init__(self, app: ASGIApp, *, authenticator: Authenticator) -> None:
        super().__init__(app)
        self._authenticator = authenticator

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Authenticate the request, then pass it on."""
        try:
            self._authenticator.authenticate(request.headers.get("Authorization"))
        except AuthenticationError as e:
            logger.warning(
                "Authentication failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "reason": e.reason,
                    "request_id": getattr(request.state, "request_id", None),
                },
            )
            return make_error_response(
                request,
                code="unauthorized",
                message=e.message,
                http_status=401,
            )

        return await call_next(request)

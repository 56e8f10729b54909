"""TRC API middleware package."""

from trc.api.middleware.auth import AuthMiddleware
from trc.api.middleware.request_id import RequestIdMiddleware
from trc.api.middleware.request_log import RequestLogMiddleware

__all__ = ["AuthMiddleware", "RequestIdMiddleware", "RequestLogMiddleware"]

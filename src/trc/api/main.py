"""TRC FastAPI application factory.

This module provides the create_app() factory for bootstrapping the TRC API.
"""

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from trc import __version__
from trc.api.auth import Authenticator, create_authenticator
from trc.api.errors import (
    TrcHttpError,
    generic_exception_handler,
    http_exception_handler,
    storage_error_handler,
    trc_http_error_handler,
)
from trc.api.middleware.auth import AuthMiddleware
from trc.api.middleware.request_id import RequestIdMiddleware
from trc.api.middleware.request_log import RequestLogMiddleware
from trc.api.routes import build_router
from trc.config.models import TrcConfig
from trc.storage.errors import StorageError
from trc.storage.factory import create_storage_provider
from trc.storage.provider import StorageProvider

API_VERSION_PREFIX = "/v8"


def create_app(
    config: TrcConfig,
    *,
    storage: StorageProvider | None = None,
    authenticator: Authenticator | None = None,
) -> FastAPI:
    """Create and configure the TRC FastAPI application.

    This factory:
    - Builds the storage provider and authenticator from config (unless injected)
    - Registers middleware in correct order for request processing
    - Registers exception handlers producing the {code, message} envelope
    - Mounts the artifact routes at the root and under /v8

    Middleware ordering (outermost to innermost):
    1. RequestIdMiddleware - ensures request_id is available everywhere
    2. RequestLogMiddleware - logs every response, including 401s
    3. AuthMiddleware - rejects unauthenticated requests before routing

    Note: Starlette middleware is added in reverse order (last added = outermost).

    Args:
        config: Resolved process configuration.
        storage: Optional StorageProvider for testing. If None, built from config.
        authenticator: Optional Authenticator for testing. If None, built from config.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="TRC Remote Cache",
        description="Remote build cache server",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.config = config
    app.state.storage = storage or create_storage_provider(config.storage)
    authenticator = authenticator or create_authenticator(config.auth)

    app.add_middleware(AuthMiddleware, authenticator=authenticator)
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(TrcHttpError, trc_http_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    router = build_router()
    app.include_router(router)
    app.include_router(router, prefix=API_VERSION_PREFIX)

    return app

"""TRC API routes."""

from fastapi import APIRouter

from trc.api.routes import artifacts, events


def build_router() -> APIRouter:
    """Assemble every TRC route into one router.

    Event routes are registered before ``/artifacts/{hash}`` style routes so
    literal paths win.
    """
    router = APIRouter()
    router.include_router(events.router)
    router.include_router(artifacts.router)
    return router


__all__ = ["build_router"]

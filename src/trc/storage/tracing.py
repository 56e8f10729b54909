"""TRC storage OpenTelemetry tracing integration.

Wraps storage provider operations in spans. Without an SDK tracer provider
installed by the host process the OpenTelemetry API is a no-op.

Span attributes never include filesystem paths, credentials or payloads.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from trc.storage.models import DEFAULT_SCOPE, Artifact, ArtifactMetadata, ArtifactScope

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_tracer = trace.get_tracer("trc.storage")


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace async storage operations with OpenTelemetry.

    The wrapped method must take the artifact hash (or a list of hashes for
    ``query``) as its first argument and the scope as an optional last one.

    Args:
        operation: Operation name (e.g., "head", "get", "put", "query").

    Returns:
        Decorated coroutine function that emits a ``trc.storage.<operation>`` span.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(self: Any, target: Any, *args: Any, **kwargs: Any) -> Any:
            with _tracer.start_as_current_span(f"trc.storage.{operation}") as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                if isinstance(target, list):
                    span.set_attribute("trc.artifact_count", len(target))
                else:
                    span.set_attribute("trc.artifact_hash", str(target))

                scope = kwargs.get("scope")
                if scope is None and args and isinstance(args[-1], ArtifactScope):
                    scope = args[-1]
                span.set_attribute("trc.scope", str(scope or DEFAULT_SCOPE))

                try:
                    result = await func(self, target, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add result-based attributes (hit flag, size) to the span."""
    try:
        metadata: ArtifactMetadata | None = None
        if isinstance(result, ArtifactMetadata):
            metadata = result
        elif isinstance(result, Artifact):
            metadata = result.metadata

        if metadata is not None:
            span.set_attribute("trc.artifact_size", metadata.size)

        if isinstance(result, dict):
            hits = sum(1 for value in result.values() if value is not None)
            span.set_attribute("trc.artifact_hits", hits)
        elif operation in ("head", "get"):
            span.set_attribute("trc.artifact_hit", result is not None)

    except Exception as e:
        logger.debug("Failed to add result attributes to span: %s", e)

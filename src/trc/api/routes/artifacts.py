"""Artifact endpoints for the TRC API.

HEAD/GET/PUT /artifacts/{hash}, POST /artifacts (batch query) and
GET /artifacts/status. All artifact routes accept ``teamId`` / ``slug``
query parameters selecting the storage scope.
"""

import logging
from collections.abc import AsyncIterator
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, ValidationError

from trc.api.errors import bad_request, not_found
from trc.api.routes.validation import (
    get_scope,
    parse_content_length,
    parse_duration,
    require_valid_hash,
)
from trc.storage.models import (
    Artifact,
    ArtifactMetadata,
    ArtifactScope,
    is_valid_hash,
)
from trc.storage.provider import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Artifacts"])

DURATION_HEADER = "x-artifact-duration"
TAG_HEADER = "x-artifact-tag"


class ArtifactQueryRequest(BaseModel):
    """Request body for POST /artifacts."""

    model_config = ConfigDict(extra="ignore")

    hashes: list[Any]


def get_storage(request: Request) -> StorageProvider:
    """FastAPI dependency returning the shared storage provider."""
    storage: StorageProvider = request.app.state.storage
    return storage


Storage = Annotated[StorageProvider, Depends(get_storage)]
Scope = Annotated[ArtifactScope, Depends(get_scope)]


def artifact_headers(metadata: ArtifactMetadata) -> dict[str, str]:
    """Build the response headers describing an artifact."""
    headers = {"content-length": str(metadata.size)}
    if metadata.duration_ms is not None:
        headers[DURATION_HEADER] = str(metadata.duration_ms)
    if metadata.tag:
        headers[TAG_HEADER] = metadata.tag
    return headers


def query_entry(metadata: ArtifactMetadata | None) -> dict[str, Any] | None:
    """Render one batch query result."""
    if metadata is None:
        return None
    entry: dict[str, Any] = {
        "size": metadata.size,
        "taskDurationMs": metadata.duration_ms or 0,
    }
    if metadata.tag:
        entry["tag"] = metadata.tag
    return entry


async def _stream_artifact(
    body: AsyncIterator[bytes],
    artifact_hash: str,
    scope: ArtifactScope,
    request_id: str | None,
) -> AsyncIterator[bytes]:
    """Relay an artifact body, logging a mid-transfer failure before re-raising."""
    try:
        async for chunk in body:
            yield chunk
    except Exception:
        logger.error(
            "Artifact stream aborted",
            exc_info=True,
            extra={
                "artifact_hash": artifact_hash,
                "scope": str(scope),
                "request_id": request_id,
            },
        )
        raise
    finally:
        aclose = getattr(body, "aclose", None)
        if aclose is not None:
            await aclose()


@router.get("/artifacts/status")
async def get_artifacts_status() -> dict[str, str]:
    """Report that remote caching is enabled."""
    return {"status": "enabled"}


@router.head("/artifacts/{artifact_hash}")
async def head_artifact(artifact_hash: str, storage: Storage, scope: Scope) -> Response:
    """Check whether an artifact exists, returning its metadata as headers."""
    require_valid_hash(artifact_hash)

    metadata = await storage.head(artifact_hash, scope)
    if metadata is None:
        raise not_found("Artifact not found")

    return Response(status_code=200, headers=artifact_headers(metadata))


@router.get("/artifacts/{artifact_hash}")
async def get_artifact(
    artifact_hash: str, request: Request, storage: Storage, scope: Scope
) -> StreamingResponse:
    """Download an artifact as a streamed octet-stream body."""
    require_valid_hash(artifact_hash)

    artifact = await storage.get(artifact_hash, scope)
    if artifact is None:
        raise not_found("Artifact not found")

    body = _stream_artifact(
        artifact.body,
        artifact_hash,
        scope,
        getattr(request.state, "request_id", None),
    )
    return StreamingResponse(
        body,
        status_code=200,
        media_type="application/octet-stream",
        headers=artifact_headers(artifact.metadata),
    )


@router.put("/artifacts/{artifact_hash}", status_code=202)
async def put_artifact(
    artifact_hash: str, request: Request, storage: Storage, scope: Scope
) -> dict[str, list[str]]:
    """Upload an artifact.

    The body is streamed straight to storage. ``size`` is recorded from the
    bytes actually stored, not from the declared Content-Length.

    Returns:
        202 with ``{"urls": []}``.
    """
    require_valid_hash(artifact_hash)
    size = parse_content_length(request.headers.get("content-length"))
    duration_ms = parse_duration(request.headers.get(DURATION_HEADER))
    tag = request.headers.get(TAG_HEADER) or None

    metadata = ArtifactMetadata(size=size, duration_ms=duration_ms, tag=tag)
    await storage.put(artifact_hash, Artifact(metadata=metadata, body=request.stream()), scope)

    return {"urls": []}


@router.post("/artifacts")
async def query_artifacts(
    request: Request, storage: Storage, scope: Scope
) -> dict[str, dict[str, Any] | None]:
    """Look up metadata for many hashes; missing artifacts map to null."""
    try:
        payload = ArtifactQueryRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise bad_request("Invalid request body") from e

    if not all(is_valid_hash(artifact_hash) for artifact_hash in payload.hashes):
        raise bad_request("Invalid artifact hashes")

    hashes: list[str] = payload.hashes
    results = await storage.query(hashes, scope)
    return {artifact_hash: query_entry(metadata) for artifact_hash, metadata in results.items()}

"""TRC S3 storage provider.

Stores artifacts in a single S3 (or S3-compatible: MinIO, R2, localstack) bucket
under ``{team}/{slug}/{hash}`` keys. Metadata travels as S3 user metadata:

    size        decimal byte count
    durationms  decimal task duration in milliseconds (optional)
    tag         client tag, verbatim (optional)

boto3 is synchronous; every client call is dispatched with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from trc.storage.errors import InvalidMetadataError, StorageBackendError
from trc.storage.models import (
    DEFAULT_SCOPE,
    Artifact,
    ArtifactMetadata,
    ArtifactScope,
    QueryResult,
)
from trc.storage.provider import StorageProvider
from trc.storage.tracing import traced_storage_operation

if TYPE_CHECKING:
    from trc.config.models import S3StorageSettings

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

METADATA_SIZE = "size"
METADATA_DURATION = "durationms"
METADATA_TAG = "tag"

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_not_found(error: ClientError) -> bool:
    """Return True when a ClientError means the object does not exist."""
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or status == 404


def _parse_decimal(value: str | None) -> int | None:
    """Parse a non-negative decimal string, returning None when malformed."""
    if value is None:
        return None
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


def encode_metadata(metadata: ArtifactMetadata) -> dict[str, str]:
    """Encode artifact metadata as S3 user metadata."""
    encoded = {METADATA_SIZE: str(metadata.size)}
    if metadata.duration_ms is not None:
        encoded[METADATA_DURATION] = str(metadata.duration_ms)
    if metadata.tag:
        encoded[METADATA_TAG] = metadata.tag
    return encoded


def decode_metadata(
    encoded: dict[str, str] | None,
    content_length: int | None,
) -> ArtifactMetadata:
    """Decode S3 user metadata into artifact metadata.

    A missing or unparseable ``size`` falls back to the transport content length.

    Raises:
        ValueError: If ``durationms`` is present but malformed.
    """
    encoded = encoded or {}

    size = _parse_decimal(encoded.get(METADATA_SIZE))
    if size is None:
        size = content_length or 0

    raw_duration = encoded.get(METADATA_DURATION, encoded.get("durationMs"))
    duration_ms = _parse_decimal(raw_duration)
    if raw_duration is not None and duration_ms is None:
        raise ValueError(f"invalid durationms: {raw_duration!r}")

    tag = encoded.get(METADATA_TAG) or None

    return ArtifactMetadata(size=size, duration_ms=duration_ms, tag=tag)


def create_s3_client(config: S3StorageSettings) -> Any:
    """Create a boto3 S3 client from storage settings."""
    client_kwargs: dict[str, Any] = {"region_name": config.region}

    if config.endpoint:
        client_kwargs["endpoint_url"] = config.endpoint

    if config.access_key_id and config.secret_access_key:
        client_kwargs["aws_access_key_id"] = config.access_key_id
        client_kwargs["aws_secret_access_key"] = config.secret_access_key.get_secret_value()

    if config.force_path_style:
        client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

    return boto3.session.Session().client("s3", **client_kwargs)


class S3StorageProvider(StorageProvider):
    """S3-compatible storage implementation of StorageProvider.

    ``put`` buffers the whole body in memory before uploading, since
    ``put_object`` needs the content length up front. Artifact size is
    therefore bounded by available memory.
    """

    def __init__(
        self,
        bucket: str,
        *,
        client: Any,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: Bucket holding all artifacts.
            client: boto3 S3 client (shared by all requests).
            chunk_size: Read size used when streaming artifact bodies.
        """
        self._bucket = bucket
        self._client = client
        self._chunk_size = chunk_size
        logger.debug("S3StorageProvider initialized with bucket=%s", bucket)

    @classmethod
    def from_config(cls, config: S3StorageSettings) -> S3StorageProvider:
        """Build a provider and its client from validated storage settings."""
        return cls(config.bucket, client=create_s3_client(config))

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "s3"

    @property
    def bucket(self) -> str:
        """Return the bucket name."""
        return self._bucket

    async def _call(
        self,
        func: Callable[..., Any],
        artifact_hash: str,
        scope: ArtifactScope,
        **kwargs: Any,
    ) -> Any | None:
        """Run a client call in a worker thread.

        Returns:
            The client response, or None when the object does not exist.

        Raises:
            StorageBackendError: On any other client or transport failure.
        """
        try:
            return await asyncio.to_thread(func, **kwargs)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageBackendError(
                message=f"S3 request failed: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise StorageBackendError(
                message=f"S3 transport failed: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e

    def _decode(
        self, response: dict[str, Any], artifact_hash: str, scope: ArtifactScope
    ) -> ArtifactMetadata:
        try:
            return decode_metadata(response.get("Metadata"), response.get("ContentLength"))
        except ValueError as e:
            raise InvalidMetadataError(
                message=f"Malformed object metadata: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
            ) from e

    async def _head(self, artifact_hash: str, scope: ArtifactScope) -> ArtifactMetadata | None:
        response = await self._call(
            self._client.head_object,
            artifact_hash,
            scope,
            Bucket=self._bucket,
            Key=scope.key_for(artifact_hash),
        )
        if response is None:
            return None
        return self._decode(response, artifact_hash, scope)

    async def _iter_body(self, stream: Any) -> AsyncIterator[bytes]:
        """Yield chunks from a botocore StreamingBody, closing it when done."""
        try:
            while True:
                chunk = await asyncio.to_thread(stream.read, self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            stream.close()

    @traced_storage_operation("head")
    async def head(
        self,
        artifact_hash: str,
        scope: ArtifactScope | None = None,
    ) -> ArtifactMetadata | None:
        """Get artifact metadata from the object's user metadata."""
        return await self._head(artifact_hash, scope or DEFAULT_SCOPE)

    @traced_storage_operation("get")
    async def get(
        self,
        artifact_hash: str,
        scope: ArtifactScope | None = None,
    ) -> Artifact | None:
        """Retrieve an artifact with a streaming body."""
        scope = scope or DEFAULT_SCOPE
        response = await self._call(
            self._client.get_object,
            artifact_hash,
            scope,
            Bucket=self._bucket,
            Key=scope.key_for(artifact_hash),
        )
        if response is None:
            return None

        stream = response.get("Body")
        if stream is None:
            return None

        try:
            metadata = self._decode(response, artifact_hash, scope)
        except InvalidMetadataError:
            stream.close()
            raise

        return Artifact(metadata=metadata, body=self._iter_body(stream))

    @traced_storage_operation("put")
    async def put(
        self,
        artifact_hash: str,
        artifact: Artifact,
        scope: ArtifactScope | None = None,
    ) -> None:
        """Buffer the body, then upload it with its metadata in one request."""
        scope = scope or DEFAULT_SCOPE

        buffer = bytearray()
        async for chunk in artifact.body:
            buffer.extend(chunk)
        payload = bytes(buffer)

        metadata = artifact.metadata
        if len(payload) != metadata.size:
            logger.warning(
                "Declared artifact size does not match stored bytes",
                extra={
                    "artifact_hash": artifact_hash,
                    "declared_size": metadata.size,
                    "stored_size": len(payload),
                },
            )
            metadata = ArtifactMetadata(
                size=len(payload), duration_ms=metadata.duration_ms, tag=metadata.tag
            )

        await self._call(
            self._client.put_object,
            artifact_hash,
            scope,
            Bucket=self._bucket,
            Key=scope.key_for(artifact_hash),
            Body=payload,
            ContentLength=len(payload),
            Metadata=encode_metadata(metadata),
        )

        logger.debug("Stored artifact: scope=%s hash=%s size=%d", scope, artifact_hash, len(payload))

    @traced_storage_operation("query")
    async def query(
        self,
        hashes: list[str],
        scope: ArtifactScope | None = None,
    ) -> QueryResult:
        """Issue one HEAD request per distinct hash, concurrently."""
        scope = scope or DEFAULT_SCOPE
        unique_hashes = list(dict.fromkeys(hashes))
        results = await asyncio.gather(*(self._head(h, scope) for h in unique_hashes))
        return dict(zip(unique_hashes, results, strict=True))

"""TRC filesystem storage provider.

Provides local filesystem storage with:
- Scope isolation via physical directory namespacing
- Atomic writes via temp file + rename (content first, then metadata)
- JSON sidecar metadata next to each artifact
- Path traversal protection
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from collections.abc import AsyncIterator
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO

from trc.storage.errors import (
    InvalidMetadataError,
    PathTraversalError,
    StorageBackendError,
)
from trc.storage.models import (
    DEFAULT_SCOPE,
    Artifact,
    ArtifactMetadata,
    ArtifactScope,
    QueryResult,
)
from trc.storage.provider import StorageProvider
from trc.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

_METADATA_SUFFIX = ".json"
_TEMP_SUFFIX = ".tmp"


def _fsync_and_close(handle: BinaryIO) -> None:
    """Flush a file handle to disk and close it."""
    try:
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()


class FilesystemStorageProvider(StorageProvider):
    """Filesystem-based artifact storage implementation.

    Artifacts are stored in a directory structure:
        {root_dir}/{team}/{slug}/
            {hash}          # content
            {hash}.json     # metadata

    Absent team or slug segments are stored under "_".
    """

    def __init__(self, root_dir: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize filesystem storage.

        Args:
            root_dir: Root directory for storage. Created lazily on first write.
            chunk_size: Read size used when streaming artifact bodies.
        """
        self._root_dir = Path(root_dir).resolve()
        self._chunk_size = chunk_size
        logger.debug("FilesystemStorageProvider initialized with root_dir=%s", self._root_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "local"

    @property
    def root_dir(self) -> Path:
        """Return the root directory path."""
        return self._root_dir

    def _get_scope_dir(self, artifact_hash: str, scope: ArtifactScope) -> Path:
        """Get the directory for a scope, ensuring it stays under the root."""
        team_segment, slug_segment = scope.segments
        scope_dir = self._root_dir / team_segment / slug_segment
        resolved = scope_dir.resolve()
        try:
            resolved.relative_to(self._root_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Scope resolves outside storage root directory",
                artifact_hash=artifact_hash,
                scope=str(scope),
            ) from e
        if resolved == self._root_dir or resolved.parent.parent != self._root_dir:
            raise PathTraversalError(
                message="Scope must resolve to exactly two directory levels",
                artifact_hash=artifact_hash,
                scope=str(scope),
            )
        return scope_dir

    def _read_metadata(
        self, scope_dir: Path, artifact_hash: str, scope: ArtifactScope
    ) -> ArtifactMetadata | None:
        """Read and decode the metadata sidecar for an artifact."""
        meta_file = scope_dir / f"{artifact_hash}{_METADATA_SUFFIX}"
        try:
            raw = meta_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read metadata: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e

        try:
            return ArtifactMetadata.from_dict(json.loads(raw))
        except ValueError as e:
            raise InvalidMetadataError(
                message=f"Corrupt metadata sidecar: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
            ) from e

    def _write_metadata(
        self,
        scope_dir: Path,
        artifact_hash: str,
        metadata: ArtifactMetadata,
        scope: ArtifactScope,
    ) -> None:
        """Write the metadata sidecar atomically."""
        meta_file = scope_dir / f"{artifact_hash}{_METADATA_SUFFIX}"
        tmp_file = scope_dir / f"{artifact_hash}{_METADATA_SUFFIX}.{uuid.uuid4().hex}{_TEMP_SUFFIX}"
        try:
            tmp_file.write_text(json.dumps(metadata.to_dict(), indent=2), encoding="utf-8")
            tmp_file.replace(meta_file)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write metadata: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e

    async def _write_content(
        self,
        scope_dir: Path,
        artifact_hash: str,
        body: AsyncIterator[bytes],
        scope: ArtifactScope,
    ) -> int:
        """Stream a body into a temp file, then rename it into place.

        Returns:
            Number of bytes written.
        """
        content_file = scope_dir / artifact_hash
        tmp_file = scope_dir / f"{artifact_hash}.{uuid.uuid4().hex}{_TEMP_SUFFIX}"
        written = 0
        try:
            handle = await asyncio.to_thread(tmp_file.open, "wb")
            try:
                async for chunk in body:
                    if not chunk:
                        continue
                    await asyncio.to_thread(handle.write, chunk)
                    written += len(chunk)
            finally:
                await asyncio.to_thread(_fsync_and_close, handle)
            await asyncio.to_thread(tmp_file.replace, content_file)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write content: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e
        except BaseException:
            # Body stream failed (e.g. client disconnect); never leave partial temp files.
            tmp_file.unlink(missing_ok=True)
            raise
        return written

    async def _iter_content(self, handle: BinaryIO) -> AsyncIterator[bytes]:
        """Yield chunks from an open content file, closing it when done."""
        try:
            while True:
                chunk = await asyncio.to_thread(handle.read, self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            handle.close()

    @traced_storage_operation("head")
    async def head(
        self,
        artifact_hash: str,
        scope: ArtifactScope | None = None,
    ) -> ArtifactMetadata | None:
        """Get artifact metadata without retrieving content."""
        scope = scope or DEFAULT_SCOPE
        scope_dir = self._get_scope_dir(artifact_hash, scope)
        return await asyncio.to_thread(self._read_metadata, scope_dir, artifact_hash, scope)

    @traced_storage_operation("get")
    async def get(
        self,
        artifact_hash: str,
        scope: ArtifactScope | None = None,
    ) -> Artifact | None:
        """Retrieve an artifact with a streaming body."""
        scope = scope or DEFAULT_SCOPE
        scope_dir = self._get_scope_dir(artifact_hash, scope)

        metadata = await asyncio.to_thread(self._read_metadata, scope_dir, artifact_hash, scope)
        if metadata is None:
            return None

        content_file = scope_dir / artifact_hash
        try:
            handle = await asyncio.to_thread(content_file.open, "rb")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open content: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e

        # The open handle pins this version even if a writer renames over it.
        size = os.fstat(handle.fileno()).st_size
        if size != metadata.size:
            metadata = replace(metadata, size=size)

        return Artifact(metadata=metadata, body=self._iter_content(handle))

    @traced_storage_operation("put")
    async def put(
        self,
        artifact_hash: str,
        artifact: Artifact,
        scope: ArtifactScope | None = None,
    ) -> None:
        """Store an artifact: content first, then its metadata sidecar."""
        scope = scope or DEFAULT_SCOPE
        scope_dir = self._get_scope_dir(artifact_hash, scope)

        try:
            await asyncio.to_thread(scope_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create scope directory: {e}",
                artifact_hash=artifact_hash,
                scope=str(scope),
                cause=e,
            ) from e

        written = await self._write_content(scope_dir, artifact_hash, artifact.body, scope)

        metadata = artifact.metadata
        if written != metadata.size:
            logger.warning(
                "Declared artifact size does not match stored bytes",
                extra={
                    "artifact_hash": artifact_hash,
                    "declared_size": metadata.size,
                    "stored_size": written,
                },
            )
            metadata = replace(metadata, size=written)

        await asyncio.to_thread(self._write_metadata, scope_dir, artifact_hash, metadata, scope)

        logger.debug(
            "Stored artifact: scope=%s hash=%s size=%d",
            scope,
            artifact_hash,
            written,
        )

    @traced_storage_operation("query")
    async def query(
        self,
        hashes: list[str],
        scope: ArtifactScope | None = None,
    ) -> QueryResult:
        """Look up metadata for many artifacts concurrently."""
        scope = scope or DEFAULT_SCOPE
        unique_hashes = list(dict.fromkeys(hashes))

        async def lookup(artifact_hash: str) -> ArtifactMetadata | None:
            scope_dir = self._get_scope_dir(artifact_hash, scope)
            return await asyncio.to_thread(self._read_metadata, scope_dir, artifact_hash, scope)

        results = await asyncio.gather(*(lookup(h) for h in unique_hashes))
        return dict(zip(unique_hashes, results, strict=True))

"""TRC artifact storage error types.

A missing artifact is not an error at this layer: providers return ``None``.
Everything below is raised and propagated to the caller, never retried here.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for storage provider operations.

    Attributes:
        message: Human-readable error message.
        artifact_hash: Artifact hash associated with the operation (if applicable).
        scope: Rendered scope path (``team/slug``) associated with the operation.
    """

    def __init__(
        self,
        message: str,
        *,
        artifact_hash: str | None = None,
        scope: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.artifact_hash = artifact_hash
        self.scope = scope

    def __str__(self) -> str:
        parts = [self.message]
        if self.scope:
            parts.append(f"scope={self.scope}")
        if self.artifact_hash:
            parts.append(f"hash={self.artifact_hash}")
        return " ".join(parts)


class StorageBackendError(StorageError):
    """Raised when the backend cannot complete an operation.

    Covers disk I/O failures, network failures and credential rejections.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        artifact_hash: str | None = None,
        scope: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, artifact_hash=artifact_hash, scope=scope)
        self.cause = cause


class InvalidMetadataError(StorageError):
    """Raised when stored metadata is corrupt or carries malformed fields."""

    def __init__(
        self,
        message: str = "Invalid artifact metadata",
        *,
        artifact_hash: str | None = None,
        scope: str | None = None,
    ) -> None:
        super().__init__(message, artifact_hash=artifact_hash, scope=scope)


class PathTraversalError(StorageError):
    """Raised when a storage path would resolve outside the storage root."""

    def __init__(
        self,
        message: str = "Invalid artifact path: path traversal detected",
        *,
        artifact_hash: str | None = None,
        scope: str | None = None,
    ) -> None:
        super().__init__(message, artifact_hash=artifact_hash, scope=scope)

"""TRC storage provider interface definition.

Provides the StorageProvider interface that all storage backends must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from trc.storage.models import Artifact, ArtifactMetadata, ArtifactScope, QueryResult


class StorageProvider(ABC):
    """Abstract base class for artifact storage backends.

    All implementations must provide:
    - Scope isolation: the same hash under two scopes never shares a location
    - Atomic writes: readers see either the previous artifact or the new one
    - ``None`` for missing artifacts rather than an exception

    Instances are shared by all concurrent requests.

    Implementations:
    - FilesystemStorageProvider: Local filesystem
    - S3StorageProvider: S3 compatible object store
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability (e.g., "local", "s3")."""
        ...

    @abstractmethod
    async def head(
        self,
        artifact_hash: str,
        scope: ArtifactScope | None = None,
    ) -> ArtifactMetadata | None:
        """Get artifact metadata without retrieving content.

        Args:
            artifact_hash: Validated hexadecimal artifact hash.
            scope: Optional team/slug scope.

        Returns:
            Metadata for the artifact, or None if it does not exist.

        Raises:
            StorageBackendError: If the backend cannot complete the operation.
            InvalidMetadataError: If stored metadata is corrupt.
        """
        ...

    @abstractmethod
    async def get(
        self,
        artifact_hash: str,
        scope: ArtifactScope | None = None,
    ) -> Artifact | None:
        """Retrieve an artifact.

        Args:
            artifact_hash: Validated hexadecimal artifact hash.
            scope: Optional team/slug scope.

        Returns:
            Artifact with metadata and a lazy body, or None if it does not exist.

        Raises:
            StorageBackendError: If the backend cannot complete the read.
            InvalidMetadataError: If stored metadata is corrupt.
        """
        ...

    @abstractmethod
    async def put(
        self,
        artifact_hash: str,
        artifact: Artifact,
        scope: ArtifactScope | None = None,
    ) -> None:
        """Store an artifact, replacing any previous artifact under the same key.

        Args:
            artifact_hash: Validated hexadecimal artifact hash.
            artifact: Metadata and body to persist. The body is consumed.
            scope: Optional team/slug scope.

        Raises:
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    async def query(
        self,
        hashes: list[str],
        scope: ArtifactScope | None = None,
    ) -> QueryResult:
        """Look up metadata for many artifacts at once.

        Args:
            hashes: Validated artifact hashes; duplicates collapse to one entry.
            scope: Optional team/slug scope.

        Returns:
            Mapping of every requested hash to its metadata or None.

        Raises:
            StorageBackendError: If the backend cannot complete the lookup.
            InvalidMetadataError: If stored metadata is corrupt.
        """
        ...

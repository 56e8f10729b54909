"""TRC artifact storage.

Provides scoped artifact storage behind a single StorageProvider interface.

Backends:
- FilesystemStorageProvider: Local filesystem with atomic rename writes
- S3StorageProvider: S3 compatible object store (AWS, MinIO, R2, ...)
"""

from trc.storage.errors import (
    InvalidMetadataError,
    PathTraversalError,
    StorageBackendError,
    StorageError,
)
from trc.storage.models import (
    DEFAULT_SCOPE,
    Artifact,
    ArtifactMetadata,
    ArtifactScope,
    QueryResult,
    is_valid_hash,
    is_valid_scope_segment,
)
from trc.storage.provider import StorageProvider

__all__ = [
    "DEFAULT_SCOPE",
    "Artifact",
    "ArtifactMetadata",
    "ArtifactScope",
    "InvalidMetadataError",
    "PathTraversalError",
    "QueryResult",
    "StorageBackendError",
    "StorageError",
    "StorageProvider",
    "is_valid_hash",
    "is_valid_scope_segment",
]

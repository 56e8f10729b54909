"""TRC storage provider factory.

Selects the concrete StorageProvider once at startup from the validated
storage settings.
"""

from __future__ import annotations

import logging

from trc.config.models import LocalStorageConfig, S3StorageConfig, StorageConfig
from trc.storage.filesystem_provider import FilesystemStorageProvider
from trc.storage.provider import StorageProvider
from trc.storage.s3_provider import S3StorageProvider

logger = logging.getLogger(__name__)


def create_storage_provider(config: StorageConfig) -> StorageProvider:
    """Create the storage provider described by a storage config.

    Args:
        config: Validated local or S3 storage settings.

    Returns:
        Configured StorageProvider instance.
    """
    match config:
        case LocalStorageConfig():
            provider: StorageProvider = FilesystemStorageProvider(config.local.root_dir)
        case S3StorageConfig():
            provider = S3StorageProvider.from_config(config.s3)
        case _:
            raise TypeError(f"Unsupported storage config: {type(config).__name__}")

    logger.info("Storage provider initialized", extra={"storage_backend": provider.backend_name})
    return provider

"""TRC configuration: typed schema plus file/environment resolution."""

from trc.config.errors import ConfigError, ConfigIssue
from trc.config.loader import (
    ResolvedConfig,
    ResolvedConfigInput,
    load_config,
    load_resolved_config,
    resolve_config,
    resolve_config_input,
    serialize_config,
)
from trc.config.models import (
    JwtAuthConfig,
    LocalStorageConfig,
    LoggingConfig,
    S3StorageConfig,
    ServerConfig,
    SharedSecretAuthConfig,
    TrcConfig,
)

__all__ = [
    "ConfigError",
    "ConfigIssue",
    "JwtAuthConfig",
    "LocalStorageConfig",
    "LoggingConfig",
    "ResolvedConfig",
    "ResolvedConfigInput",
    "S3StorageConfig",
    "ServerConfig",
    "SharedSecretAuthConfig",
    "TrcConfig",
    "load_config",
    "load_resolved_config",
    "resolve_config",
    "resolve_config_input",
    "serialize_config",
]

"""Environment variables understood by the TRC configuration resolver.

Only the resolver reads these, and always from an explicit mapping passed in
by the caller rather than ``os.environ``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

CONFIG_ENV: Final = "TRC_CONFIG"
CONFIG_PATH_ENV: Final = "TRC_CONFIG_PATH"
DEFAULT_CONFIG_PATH: Final = "./trc.yaml"

CI_ENV: Final = "CI"
RUNTIME_ENV: Final = "TRC_ENV"

ENV_OVERRIDES: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("TRC_SERVER_HOST", ("server", "host")),
    ("TRC_SERVER_PORT", ("server", "port")),
    ("TRC_LOG_LEVEL", ("logging", "level")),
    ("TRC_LOG_PRETTY", ("logging", "pretty")),
    ("TRC_LOG_FILE", ("logging", "file")),
    ("TRC_AUTH_TYPE", ("auth", "type")),
    ("TRC_AUTH_JWT_SECRET", ("auth", "jwt", "secret")),
    ("TRC_AUTH_SHARED_SECRET", ("auth", "sharedSecret", "secret")),
    ("TRC_STORAGE_PROVIDER", ("storage", "provider")),
    ("TRC_STORAGE_LOCAL_ROOT_DIR", ("storage", "local", "rootDir")),
    ("TRC_STORAGE_S3_BUCKET", ("storage", "s3", "bucket")),
    ("TRC_STORAGE_S3_REGION", ("storage", "s3", "region")),
    ("TRC_STORAGE_S3_ENDPOINT", ("storage", "s3", "endpoint")),
    ("TRC_STORAGE_S3_ACCESS_KEY_ID", ("storage", "s3", "accessKeyId")),
    ("TRC_STORAGE_S3_SECRET_ACCESS_KEY", ("storage", "s3", "secretAccessKey")),
    ("TRC_STORAGE_S3_FORCE_PATH_STYLE", ("storage", "s3", "forcePathStyle")),
)

# Sub-block key -> variant it signals, for configs that omit the discriminator.
STORAGE_SIGNALS: Final = {"local": "local", "s3": "s3"}
AUTH_SIGNALS: Final = {"jwt": "jwt", "sharedSecret": "shared-secret"}

_TRUTHY: Final = frozenset({"1", "true"})


def get_env(env: Mapping[str, str], name: str) -> str | None:
    """Return an environment value, treating the empty string as unset."""
    value = env.get(name)
    if value is None or value == "":
        return None
    return value


def default_pretty(env: Mapping[str, str]) -> bool:
    """Human-readable logs unless running in CI or in production."""
    ci = (get_env(env, CI_ENV) or "").strip().lower()
    runtime = (get_env(env, RUNTIME_ENV) or "").strip().lower()
    return ci not in _TRUTHY and runtime != "production"

"""Typed configuration models for the TRC server.

Provides frozen Pydantic models for:
- Server bind address
- Logging output
- Authentication (tagged on ``type``: jwt | shared-secret)
- Storage (tagged on ``provider``: local | s3)

File keys are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from typing import Annotated, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic.alias_generators import to_camel

LogLevel = Literal["fatal", "error", "warn", "info", "debug", "trace", "silent"]

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class ServerConfig(_ConfigModel):
    """HTTP listener settings."""

    host: str = Field(default=DEFAULT_HOST, min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)


class LoggingConfig(_ConfigModel):
    """Log output settings.

    ``pretty`` is filled in by the resolver when absent (human-readable unless
    running in CI or production).
    """

    level: LogLevel = "info"
    pretty: bool = True
    file: str | None = Field(default=None, min_length=1)


class SecretSettings(_ConfigModel):
    """A single non-empty secret value."""

    secret: SecretStr

    @field_validator("secret")
    @classmethod
    def no_empty_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("Secret cannot be empty")
        return v


class JwtAuthConfig(_ConfigModel):
    """Bearer tokens are HMAC-signed JWTs verified against ``jwt.secret``."""

    type: Literal["jwt"] = "jwt"
    jwt: SecretSettings


class SharedSecretAuthConfig(_ConfigModel):
    """Bearer tokens are compared against ``sharedSecret.secret``."""

    type: Literal["shared-secret"] = "shared-secret"
    shared_secret: SecretSettings


AuthConfig = Annotated[JwtAuthConfig | SharedSecretAuthConfig, Field(discriminator="type")]


class LocalStorageSettings(_ConfigModel):
    """Filesystem backend settings."""

    root_dir: str = Field(..., min_length=1)


class S3StorageSettings(_ConfigModel):
    """S3-compatible backend settings.

    Credentials are optional as a pair; without them boto3's default
    credential chain applies.
    """

    bucket: str = Field(..., min_length=1)
    region: str = Field(..., min_length=1)
    endpoint: str | None = None
    access_key_id: str | None = Field(default=None, min_length=1)
    secret_access_key: SecretStr | None = None
    force_path_style: bool = False

    @field_validator("endpoint")
    @classmethod
    def endpoint_is_http_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Endpoint must be an http or https URL")
        return v

    @model_validator(mode="after")
    def validate_credential_pair(self) -> S3StorageSettings:
        has_secret = self.secret_access_key is not None and bool(
            self.secret_access_key.get_secret_value()
        )
        if bool(self.access_key_id) != has_secret:
            raise ValueError("accessKeyId and secretAccessKey must be set together")
        return self


class LocalStorageConfig(_ConfigModel):
    """Artifacts stored on the local filesystem."""

    provider: Literal["local"] = "local"
    local: LocalStorageSettings


class S3StorageConfig(_ConfigModel):
    """Artifacts stored in an S3 bucket."""

    provider: Literal["s3"] = "s3"
    s3: S3StorageSettings


StorageConfig = Annotated[LocalStorageConfig | S3StorageConfig, Field(discriminator="provider")]


class TrcConfig(_ConfigModel):
    """Fully resolved, immutable process configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    auth: AuthConfig
    storage: StorageConfig

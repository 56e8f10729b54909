"""Pytest configuration and fixtures for TRC tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable
from pathlib import Path
from typing import Any

import pytest
from jose import jwt

from trc.config.models import TrcConfig
from trc.storage.models import Artifact, ArtifactMetadata

TEST_JWT_SECRET = "test-jwt-secret"
TEST_SHARED_SECRET = "test-shared-secret"


async def _aiter(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def _collect(body: AsyncIterator[bytes]) -> bytes:
    return b"".join([chunk async for chunk in body])


@pytest.fixture
def make_artifact() -> Callable[..., Artifact]:
    """Return a factory building an Artifact from bytes (optionally chunked)."""

    def factory(
        data: bytes,
        *,
        duration_ms: int | None = None,
        tag: str | None = None,
        size: int | None = None,
        chunk_size: int | None = None,
    ) -> Artifact:
        if chunk_size:
            chunks = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]
        else:
            chunks = [data]
        metadata = ArtifactMetadata(
            size=len(data) if size is None else size,
            duration_ms=duration_ms,
            tag=tag,
        )
        return Artifact(metadata=metadata, body=_aiter(chunks))

    return factory


@pytest.fixture
def read_body() -> Callable[[AsyncIterator[bytes]], bytes]:
    """Return a helper that drains an async artifact body synchronously."""

    def reader(body: AsyncIterator[bytes]) -> bytes:
        return asyncio.run(_collect(body))

    return reader


@pytest.fixture
def sign_token() -> Callable[..., str]:
    """Return a helper that signs a JWT with the test secret."""

    def signer(secret: str = TEST_JWT_SECRET, algorithm: str = "HS256", **claims: Any) -> str:
        payload = {"sub": "turbo-client", **claims}
        return str(jwt.encode(payload, secret, algorithm=algorithm))

    return signer


@pytest.fixture
def local_config_data(tmp_path: Path) -> dict[str, Any]:
    """Raw config mapping for a JWT-protected filesystem-backed server."""
    return {
        "server": {"host": "127.0.0.1", "port": 3000},
        "logging": {"level": "info", "pretty": True},
        "auth": {"type": "jwt", "jwt": {"secret": TEST_JWT_SECRET}},
        "storage": {"provider": "local", "local": {"rootDir": str(tmp_path / "cache")}},
    }


@pytest.fixture
def local_config(local_config_data: dict[str, Any]) -> TrcConfig:
    """Validated TrcConfig for a JWT-protected filesystem-backed server."""
    return TrcConfig.model_validate(local_config_data)

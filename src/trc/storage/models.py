"""TRC artifact storage data models.

Provides typed dataclasses for artifact metadata, scopes and artifacts.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

SCOPE_SENTINEL = "_"

_HASH_PATTERN = re.compile(r"^[a-fA-F0-9]+$")
_SCOPE_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")


def is_valid_hash(value: object) -> bool:
    """Return True when value is a non-empty hexadecimal string."""
    return isinstance(value, str) and bool(_HASH_PATTERN.fullmatch(value))


def is_valid_scope_segment(value: str) -> bool:
    """Return True when value can be used as a single storage path segment."""
    return bool(_SCOPE_SEGMENT_PATTERN.fullmatch(value))


def _is_non_negative_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class ArtifactMetadata:
    """Metadata stored alongside an artifact.

    Attributes:
        size: Exact byte length of the stored payload.
        duration_ms: Execution time of the task that produced the artifact.
        tag: Opaque client-supplied label.
    """

    size: int
    duration_ms: int | None = None
    tag: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert metadata to its JSON sidecar representation."""
        data: dict[str, Any] = {"size": self.size}
        if self.duration_ms is not None:
            data["durationMs"] = self.duration_ms
        if self.tag:
            data["tag"] = self.tag
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ArtifactMetadata:
        """Create metadata from its JSON sidecar representation.

        Raises:
            ValueError: If any field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("metadata must be a JSON object")

        size = data.get("size")
        if not _is_non_negative_int(size):
            raise ValueError(f"invalid size: {size!r}")

        duration_ms = data.get("durationMs")
        if duration_ms is not None and not _is_non_negative_int(duration_ms):
            raise ValueError(f"invalid durationMs: {duration_ms!r}")

        tag = data.get("tag")
        if tag is not None and not isinstance(tag, str):
            raise ValueError(f"invalid tag: {tag!r}")

        return cls(size=size, duration_ms=duration_ms, tag=tag or None)


@dataclass(frozen=True)
class ArtifactScope:
    """Namespace partition for artifacts (team id and project slug)."""

    team_id: str | None = None
    slug: str | None = None

    @property
    def segments(self) -> tuple[str, str]:
        """Return the (team, slug) path segments, substituting the sentinel for blanks."""
        team_id = (self.team_id or "").strip()
        slug = (self.slug or "").strip()
        return (team_id or SCOPE_SENTINEL, slug or SCOPE_SENTINEL)

    def key_for(self, artifact_hash: str) -> str:
        """Return the slash-separated storage key for a hash within this scope."""
        team_segment, slug_segment = self.segments
        return f"{team_segment}/{slug_segment}/{artifact_hash}"

    def __str__(self) -> str:
        return "/".join(self.segments)


DEFAULT_SCOPE = ArtifactScope()


@dataclass(frozen=True)
class Artifact:
    """An artifact: metadata plus a lazy, single-pass body.

    Attributes:
        metadata: Artifact metadata (size, duration, tag).
        body: Async iterator of byte chunks. It can be consumed exactly once.
    """

    metadata: ArtifactMetadata
    body: AsyncIterator[bytes]


QueryResult = dict[str, ArtifactMetadata | None]

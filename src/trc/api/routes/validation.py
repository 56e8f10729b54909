"""Request input validation shared by the artifact routes."""

import re
from typing import Annotated

from fastapi import Query

from trc.api.errors import bad_request
from trc.storage.models import ArtifactScope, is_valid_hash, is_valid_scope_segment

_DECIMAL_PATTERN = re.compile(r"^[0-9]+$")


def require_valid_hash(artifact_hash: str) -> str:
    """Return the hash unchanged, or raise 400 if it is not hexadecimal."""
    if not is_valid_hash(artifact_hash):
        raise bad_request("Invalid artifact hash")
    return artifact_hash


def parse_non_negative_int(value: str) -> int | None:
    """Parse a plain decimal integer header value, or return None."""
    value = value.strip()
    if not _DECIMAL_PATTERN.fullmatch(value):
        return None
    return int(value)


def parse_content_length(header: str | None) -> int:
    """Validate the Content-Length of an upload.

    Raises:
        TrcHttpError: 400 if the header is absent or not a non-negative integer.
    """
    if header is None or not header.strip():
        raise bad_request("Missing Content-Length")
    size = parse_non_negative_int(header)
    if size is None:
        raise bad_request("Invalid Content-Length")
    return size


def parse_duration(header: str | None) -> int | None:
    """Validate the optional x-artifact-duration header (milliseconds)."""
    if header is None:
        return None
    duration = parse_non_negative_int(header)
    if duration is None:
        raise bad_request("Invalid x-artifact-duration")
    return duration


def _normalize_segment(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not is_valid_scope_segment(value):
        raise bad_request("Invalid scope")
    return value


def get_scope(
    team_id: Annotated[str | None, Query(alias="teamId")] = None,
    slug: Annotated[str | None, Query()] = None,
) -> ArtifactScope:
    """FastAPI dependency building the artifact scope from query parameters.

    Raises:
        TrcHttpError: 400 if a non-empty segment contains unsafe characters.
    """
    return ArtifactScope(team_id=_normalize_segment(team_id), slug=_normalize_segment(slug))

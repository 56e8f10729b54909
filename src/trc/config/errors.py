"""TRC configuration errors."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfigIssue:
    """A single configuration problem.

    Attributes:
        path: Dotted config path (e.g. "storage.s3.bucket"), or a parenthesized
            source marker such as "(yaml)", "(json)", "(file)" or "(root)".
        message: Human-readable description of the problem.
    """

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or fails validation.

    All issues found in one resolution pass are aggregated into a single error.
    """

    def __init__(self, message: str, issues: Iterable[ConfigIssue] = ()) -> None:
        self.message = message
        self.issues = list(issues)
        super().__init__(message)

    def format(self) -> str:
        """Render the message followed by one "- path: message" line per issue."""
        lines = [self.message]
        lines.extend(f"- {issue.path}: {issue.message}" for issue in self.issues)
        return "\n".join(lines)

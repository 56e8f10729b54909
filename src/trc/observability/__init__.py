"""TRC observability: logging setup."""

from trc.observability.logs import (
    JsonFormatter,
    PrettyFormatter,
    RequestIdFilter,
    configure_logging,
    request_id_var,
)

__all__ = [
    "JsonFormatter",
    "PrettyFormatter",
    "RequestIdFilter",
    "configure_logging",
    "request_id_var",
]

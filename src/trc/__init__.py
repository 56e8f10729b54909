"""TRC: remote build cache server."""

__version__ = "0.1.0"

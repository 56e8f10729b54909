"""TRC HTTP API."""

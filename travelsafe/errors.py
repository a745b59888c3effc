"""
Exceptions raised by the service and mapped to HTTP responses in app.py.
"""

from __future__ import annotations


class ConfigError(RuntimeError):
    """Settings are missing or invalid; the process must not start."""


class Unauthorized(Exception):
    """The x-api-key header is absent or does not match the configured key."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)
        self.message = message


class ReportValidationError(ValueError):
    """A submitted report does not match the declared field types."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class StoreUnavailable(RuntimeError):
    """The datastore could not be reached or the driver failed."""

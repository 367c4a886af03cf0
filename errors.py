"""Error taxonomy for a pull run.

Every failure that aborts a run derives from ``SyncError``; ``kind`` is the
short label the CLI reports next to the message.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all run-aborting failures."""

    kind = "sync_error"


class TransportError(SyncError):
    """Network or HTTP-layer failure (connection refused, timeout, ...)."""

    kind = "transport_error"


class ApiError(SyncError):
    """The remote API answered with a non-success status."""

    kind = "api_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimited(SyncError):
    kind = "rate_limited"

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(f"Rate limited, retry after {retry_after_seconds} seconds")
        self.retry_after_seconds = retry_after_seconds


class NotFound(SyncError):
    kind = "not_found"

    def __init__(self, identity: str) -> None:
        super().__init__(f"Article not found: {identity}")
        self.identity = identity


class StateCorrupt(SyncError):
    """The state file exists but cannot be read or parsed."""

    kind = "state_corrupt"


class StateWriteError(SyncError):
    kind = "state_write_error"


class WriteError(SyncError):
    """The sink could not store an article."""

    kind = "write_error"


class InvalidFilter(SyncError):
    kind = "invalid_filter"


class ConfigError(SyncError):
    """Missing credential or unsupported platform name."""

    kind = "config_error"

"""
Exception hierarchy for the sync engine.

Only ConfigurationError is allowed to abort a pass. The others are caught at
their isolation boundary (record, operation, status write) and reported.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Operation


class SyncError(Exception):
    """Base class for sync engine errors."""


class ConfigurationError(SyncError):
    """Fatal setup problem, e.g. missing API key. Raised before any mutation."""


class SourceReadError(SyncError):
    """Snapshot could not be read or parsed."""


class GeneratorError(SyncError):
    """The note generator failed for a single record."""

    def __init__(self, key: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{key}: {message}")
        self.key = key
        self.cause = cause


class ApplyError(SyncError):
    """A single file operation failed against the sink."""

    def __init__(self, operation: "Operation", cause: BaseException):
        super().__init__(f"{operation.describe()} failed: {cause}")
        self.operation = operation
        self.cause = cause


class StatusWriteError(SyncError):
    """The status map could not be persisted."""

"""Error taxonomy shared by platform clients, the sync executor and the job queue.

Item-level errors (transient / permanent) are contained inside the item's
SyncResult. Only ``JobSetupError`` fails a whole job.
"""
from __future__ import annotations

from typing import Optional


class StoreSyncError(Exception):
    """Base class for all domain errors."""


class ValidationError(StoreSyncError):
    """Malformed or missing input, rejected before any network call."""


class PlatformError(StoreSyncError):
    kind = "platform"

    def __init__(self, message: str, *, platform: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.platform = platform
        self.status_code = status_code


class TransientError(PlatformError):
    """Timeouts, connection failures, 429 and 5xx. Safe to retry with backoff."""

    kind = "transient"


class PermanentError(PlatformError):
    """Business-rule rejection by the platform. Never retried."""

    kind = "permanent"


class NotFoundError(PermanentError):
    kind = "not_found"


class IncompleteListingError(PlatformError):
    """A paged listing could not be drained to the end (runaway or looping pagination).

    A partial listing would make present entities look missing, so callers
    must not diff against one.
    """

    kind = "incomplete_listing"


class JobSetupError(StoreSyncError):
    """A job could not start at all (e.g. a platform client cannot be built)."""


class JobNotFoundError(StoreSyncError):
    pass


def classify_http_status(status_code: int, message: str, *, platform: str) -> PlatformError:
    """Map an HTTP failure status onto the error taxonomy."""
    if status_code == 429 or status_code >= 500:
        return TransientError(message, platform=platform, status_code=status_code)
    if status_code == 404:
        return NotFoundError(message, platform=platform, status_code=status_code)
    return PermanentError(message, platform=platform, status_code=status_code)


__all__ = [
    "StoreSyncError",
    "ValidationError",
    "PlatformError",
    "TransientError",
    "PermanentError",
    "NotFoundError",
    "IncompleteListingError",
    "JobSetupError",
    "JobNotFoundError",
    "classify_http_status",
]

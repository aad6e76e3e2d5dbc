"""
errors.py
─────────
Exception taxonomy shared by the generator, the booking reconciler,
the storage clients and the HTTP layer.
"""

from __future__ import annotations

from typing import Any, List, Optional


class SchedulerError(Exception):
    """Base class for every error the scheduler raises on purpose."""

    status_code = 500

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.message or self.__class__.__name__}
        if self.details:
            body["details"] = self.details
        return body


# ── Input errors ─────────────────────────────────────────
class ValidationError(SchedulerError):
    status_code = 400


class InvalidTimeFormat(ValidationError):
    """Time string is not a 24-hour HH:MM value."""


class InvalidRecurrence(ValidationError):
    """Week count or weekday outside the allowed range."""


class AuthError(SchedulerError):
    status_code = 401


class Forbidden(SchedulerError):
    status_code = 403


# ── Lookup / state errors ────────────────────────────────
class NotFound(SchedulerError):
    status_code = 404


class AlreadyRegistered(SchedulerError):
    status_code = 409


# ── Storage errors ───────────────────────────────────────
class StorageError(SchedulerError):
    """Any failed call to the storage collaborator."""

    status_code = 502

    def __init__(self, message: str = "", status: Optional[int] = None, **details: Any):
        super().__init__(message, **details)
        self.status = status


class NetworkError(StorageError):
    pass


class StorageTimeout(StorageError):
    status_code = 504


class PartialBatchFailure(SchedulerError):
    """Weekly batch creation stopped part-way; earlier rows stay persisted."""

    status_code = 207

    def __init__(self, created: List[Any], failed_index: int, cause: Exception):
        super().__init__(
            f"Created {len(created)} classes before instance {failed_index} failed: {cause}",
        )
        self.created = created
        self.failed_index = failed_index
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "error": self.message,
            "created": [getattr(c, "id", c) for c in self.created],
            "failed_index": self.failed_index,
        }

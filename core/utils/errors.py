"""Custom exceptions for core publish logic."""

from __future__ import annotations


class PublishError(Exception):
    """Base class for edit/publish failures."""


class StoreWriteError(PublishError):
    """Raised when the snapshot store rejects or fails a save."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidationError(PublishError):
    """Raised when the published page could not be regenerated after a save."""

    def __init__(self, message: str, *, snapshot_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.snapshot_id = snapshot_id


class SnapshotLookupError(PublishError, LookupError):
    """Raised when a requested snapshot is missing or not accessible."""

    def __init__(self, message: str, *, snapshot_id: str, forbidden: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.snapshot_id = snapshot_id
        self.forbidden = forbidden


class EditCaptureError(PublishError):
    """Raised when an editable control cannot be resolved to a field id."""

    def __init__(self, message: str, *, position: int) -> None:
        super().__init__(message)
        self.position = position

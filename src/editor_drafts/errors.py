from __future__ import annotations


class DraftError(Exception):
    """Base class for every failure the draft store reports."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LocalPersistenceError(DraftError):
    """Snapshot storage is unavailable, corrupt, or holds an unsupported format."""


class RemoteCallError(DraftError):
    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class ValidationError(DraftError):
    """A required input was empty; raised before any network call."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


__all__ = ["DraftError", "LocalPersistenceError", "RemoteCallError", "ValidationError"]

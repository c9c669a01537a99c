# src/taskpulse/errors.py

from __future__ import annotations


class TrackerError(Exception):
    """Base class for taskpulse errors."""


class BackendError(TrackerError):
    """A data collaborator request failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"


class AuthError(BackendError):
    """The identity collaborator rejected a request."""

    @property
    def is_session_not_found(self) -> bool:
        return "session not found" in (self.message or "").lower()

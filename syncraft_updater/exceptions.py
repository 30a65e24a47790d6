"""
Defines custom exceptions for the updater so each failure class can be handled
at the point where the update pipeline decides its outcome.
"""


class UpdaterError(Exception):
    """Base exception for all application-specific errors."""


class ProtocolError(UpdaterError):
    """Raised when the update manifest cannot be decoded or contains invalid paths."""


class NetworkError(UpdaterError):
    """Raised when an artifact cannot be fetched from the update server."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ArtifactIntegrityError(NetworkError):
    """Raised when a downloaded artifact does not match its manifest hash."""


class FileSystemError(UpdaterError):
    """
    Raised when the apply phase cannot delete or install a file.

    `applied` lists the relative paths already changed when the error occurred,
    `pending` the ones left untouched.
    """

    def __init__(
        self,
        message: str,
        applied: list[str] | None = None,
        pending: list[str] | None = None,
    ):
        super().__init__(message)
        self.applied = applied or []
        self.pending = pending or []


class UpdateCancelledError(UpdaterError):
    """Raised inside the worker once the user has requested cancellation."""


class ConfigurationError(UpdaterError):
    """Raised for issues related to configuration loading or validation."""

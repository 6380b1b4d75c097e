"""
Exception hierarchy for pressmark.

Failures are split by how far they propagate: not-found downloads and
derivative errors are handled per image, everything wrapped in
NodeProcessingError aborts the current record.
"""

from typing import Any


class PressmarkError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RemoteFileError(PressmarkError):
    """Raised when a remote file could not be downloaded."""

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message, details={"url": url, "status_code": status_code})
        self.url = url
        self.status_code = status_code


class RemoteFileNotFoundError(RemoteFileError):
    """Raised when the remote server reports the file does not exist."""


class MediaFetchError(PressmarkError):
    """Raised when the media item lookup against WPGraphQL fails."""


class DerivativeError(PressmarkError):
    """Raised when a responsive image derivative cannot be generated."""


class NodeProcessingError(PressmarkError):
    """Fatal error that aborts processing of a single record."""

    def __init__(self, message: str, *, node_id: str | None = None) -> None:
        super().__init__(message, details={"node_id": node_id})
        self.node_id = node_id

"""Custom exception hierarchy for ab2."""

from __future__ import annotations


class Ab2Error(Exception):
    """Base exception for all ab2-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(Ab2Error):
    """Raised when configuration is invalid or missing."""
    pass


class FetchError(Ab2Error):
    """Raised when a source file cannot be fetched or staged."""
    pass


class UnsupportedProtocolError(FetchError):
    """Raised when a fetch target names an unknown protocol."""
    pass


class StorageError(Ab2Error):
    """Raised when storage operations fail."""
    pass


class UploadError(StorageError):
    """Raised when an object upload fails."""
    pass


class TriggerError(Ab2Error):
    """Raised when the processing trigger cannot be delivered."""
    pass


class SigningError(TriggerError):
    """Raised when signing credentials or region cannot be resolved."""
    pass

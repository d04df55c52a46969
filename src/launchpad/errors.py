"""Exception hierarchy for the launch dashboard."""

from typing import Dict, Optional


class LaunchpadError(Exception):
    """Base exception for all dashboard errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(LaunchpadError):
    """Raised when a form or project fails validation; no write is attempted."""


class ConfigurationError(LaunchpadError):
    """Raised when an environment setting cannot be parsed."""


class OperationFailed(LaunchpadError):
    """Generic document store failure."""


class StoreReadError(OperationFailed):
    """Raised when the project subscription fails."""


class StoreWriteError(OperationFailed):
    """Raised when a create or update does not reach the store."""


class NotificationError(LaunchpadError):
    """Raised when the mail boundary rejects or fails a send."""

"""Exceptions raised by the draftsync client and engine."""

from typing import Optional


class DraftAPIError(Exception):
    """Base exception for all draftsync errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DraftConfigError(DraftAPIError):
    """Raised when the client is missing required configuration."""


class DraftAuthenticationError(DraftAPIError):
    """Raised when the server rejects the API key (HTTP 401)."""


class DraftPermissionError(DraftAPIError):
    """Raised when access to the encounter is forbidden (HTTP 403)."""


class DraftNotFoundError(DraftAPIError):
    """Raised when the encounter does not exist on the server (HTTP 404)."""


class DraftRateLimitError(DraftAPIError):
    """Raised when the server throttles requests (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class DraftNetworkError(DraftAPIError):
    """Raised when the request never produced an HTTP response."""


class DraftInvalidResponseError(DraftAPIError):
    """Raised when the server answers with something that is not JSON."""


class DraftSerializationError(DraftAPIError):
    """Raised when draft fields cannot be encoded for the server."""

# src/timesync_client/errors.py

from typing import Optional


class TimesyncError(Exception):
    """Base class for every error raised by the client data layer."""


class InvalidInput(TimesyncError):
    """Empty or malformed parameters; the caller can correct them."""


class AuthRequired(TimesyncError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class InvalidCredentials(TimesyncError):
    def __init__(self, message: str = "Invalid login credentials"):
        super().__init__(message)


class ConcurrentOperation(TimesyncError):
    """Another exclusive auth operation (login, initialize, refresh) is in flight."""


class UpstreamFailure(TimesyncError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status: int, message: str, data: Optional[dict] = None):
        self.status = status
        self.message = message
        self.data = data or {}
        super().__init__(f"{status}: {message}")


class NetworkException(TimesyncError):
    """Transport-level failure: the request never got a response."""

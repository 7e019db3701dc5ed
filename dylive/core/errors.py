"""
dylive - Errors
Typed failure conditions shared by the scraping pipeline, the CLI and the web API.
"""

from typing import Any, Dict, Optional


class DyliveError(Exception):
    """
    Base class for every error raised by dylive.

    Args:
        message: Human-readable error message
        url: The URL being processed when the error happened (if any)
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for structured logging and API replies."""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self),
            'url': self.url,
        }


class NoUrlError(DyliveError):
    """Input text contained no recognizable share link or ID."""

    def __init__(self, message: str = "No URL found", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(DyliveError):
    """The platform affirmatively reports that the target does not exist."""


class NoRoomError(NotFoundError):
    def __init__(self, message: str = "No room found", **kwargs):
        super().__init__(message, **kwargs)


class NoUserError(NotFoundError):
    def __init__(self, message: str = "No user found", **kwargs):
        super().__init__(message, **kwargs)


class TransportError(DyliveError):
    """
    Connection failure, timeout or non-2xx response.

    Never retried here; polling callers decide whether to try again.
    """

    def __init__(self, message: str = "HTTP request failed",
                 status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['status_code'] = self.status_code
        return result


class TooManyRedirectsError(TransportError):
    """A short link kept redirecting past the configured hop limit."""

    def __init__(self, message: str = "Too many redirects", **kwargs):
        super().__init__(message, **kwargs)


class InvalidPageDataError(DyliveError):
    """A page was fetched but carried no payload in any known page shape."""

    def __init__(self, message: str = "Invalid page data", **kwargs):
        super().__init__(message, **kwargs)


class CredentialRejectedError(DyliveError):
    """
    The profile endpoint refused the device ID.

    Device IDs expire; callers may rotate to another one and try again.
    """

    def __init__(self, message: str = "Device ID rejected",
                 device_id: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.device_id = device_id

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['device_id'] = self.device_id
        return result

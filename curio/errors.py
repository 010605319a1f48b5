"""Error types raised by the Curio client."""
from typing import Optional


class CurioError(Exception):
    """Base class for client errors"""
    pass


class AuthRequiredError(CurioError):
    """Raised when an action needs a logged-in session and there is none.

    Raised before any request is sent.
    """
    pass


class APIError(CurioError):
    """Network or server failure talking to the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(CurioError):
    """Input rejected client-side before submission"""
    pass


class MutationInFlightError(CurioError):
    """A toggle for the same entity and kind is still waiting on the server."""

    def __init__(self, key):
        super().__init__(f"mutation already in flight for {key!r}")
        self.key = key

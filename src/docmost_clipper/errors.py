"""Error taxonomy for the clipper.

The API client and the bridge only ever raise these classes; raw httpx and
Playwright exceptions are wrapped at the boundary. The controller is the
single place that maps a class to a view transition and a status message.
"""

from __future__ import annotations

SESSION_INVALID_STATUSES = frozenset({401, 403})


class ClipperError(Exception):
    """Base class for every classified clipper failure."""


class ConfigError(ClipperError, ValueError):
    """Configuration file is unreadable or invalid."""


class ValidationError(ClipperError, ValueError):
    """User input rejected before any network call."""


class NetworkError(ClipperError):
    """The request never received a response."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: network error: {reason}")


class ApiError(ClipperError):
    """The server answered with a non-success status."""

    label = "API Error"

    def __init__(self, operation: str, status: int | None, body: str = "") -> None:
        self.operation = operation
        self.status = status
        self.body = body
        message = f"{self.label} {status}"
        super().__init__(f"{message}: {body}" if body else message)

    @property
    def is_session_invalid(self) -> bool:
        """401/403 mean the cookie session is gone or was never valid."""
        return self.status in SESSION_INVALID_STATUSES


class LoginError(ApiError):
    """Login was refused (bad credentials, disabled account, ...)."""

    label = "Login Error"


class ExtractionError(ClipperError):
    """The page yielded neither a readable article nor a selection."""

    UNPARSEABLE = "unparseable"

    def __init__(self, message: str = "Could not parse page content", kind: str = UNPARSEABLE) -> None:
        self.kind = kind
        super().__init__(message)


class BridgeError(ClipperError):
    """The in-page agent could not be reached."""

    UNREACHABLE = "unreachable"
    TRANSPORT = "transport"

    def __init__(self, message: str, kind: str = UNREACHABLE) -> None:
        self.kind = kind
        super().__init__(message)


def is_session_invalid(error: BaseException) -> bool:
    """Return True if the error proves the session cookie is not valid."""
    return isinstance(error, ApiError) and error.is_session_invalid


def is_retryable(error: BaseException) -> bool:
    """Network failures and non-auth API failures are worth retrying."""
    if isinstance(error, NetworkError):
        return True
    return isinstance(error, ApiError) and not isinstance(error, LoginError) and not error.is_session_invalid

"""Error taxonomy shared by the token, project and quota layers."""

from __future__ import annotations


class UsageGoogleError(RuntimeError):
    """Base error for remote calls; carries the HTTP status and endpoint."""

    def __init__(self, message: str, status: int = 0, endpoint: str = ""):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class InvalidGrantError(UsageGoogleError):
    """The refresh token is dead; the user must log in again."""

    def __init__(
        self,
        message: str,
        status: int = 400,
        endpoint: str = "",
        error: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message, status=status, endpoint=endpoint)
        self.error = error
        self.error_description = error_description


class ForbiddenError(UsageGoogleError):
    """HTTP 403 from a quota endpoint. Never retried."""


class TransientError(UsageGoogleError):
    """Network or HTTP failure that may succeed on a later attempt."""


class RequestTimeoutError(TransientError):
    """An outbound request exceeded its time budget."""


class MalformedResponseError(UsageGoogleError):
    """A mandatory field is missing from an otherwise successful response."""


class LoginError(UsageGoogleError):
    """Interactive OAuth login failed."""

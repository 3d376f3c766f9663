"""
bunq client exception hierarchy.

All exceptions inherit from BunqClientError for easy catching. Errors that
callers are expected to branch on carry a stable ErrorCode.
"""

from enum import StrEnum
from typing import Any

import httpx


class ErrorCode(StrEnum):
    """Stable error kinds attached to raised errors."""

    SESSION_CREATION_FAILED = "SESSION_CREATION_FAILED"
    # Name used by older callers for the same failure.
    INSTALLATION_HAS_SESSION = "SESSION_CREATION_FAILED"
    SIGNATURE_VERIFICATION_FAILED = "SIGNATURE_VERIFICATION_FAILED"
    UNSUPPORTED_PRINCIPAL = "UNSUPPORTED_PRINCIPAL"
    MISSING_KEY_PAIR = "MISSING_KEY_PAIR"
    MISSING_INSTALLATION = "MISSING_INSTALLATION"
    UNKNOWN_ENVIRONMENT = "UNKNOWN_ENVIRONMENT"


class BunqClientError(Exception):
    """Base exception for all bunq_client errors."""

    error_code: ErrorCode | None = None

    def __init__(
        self, message: str, *, error_code: ErrorCode | None = None, **context: Any
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context
        if error_code is not None:
            self.error_code = error_code

    @property
    def cause(self) -> BaseException | None:
        """The error this one was raised from, if any."""
        return self.__cause__

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(BunqClientError):
    """Client setup is incomplete or invalid."""


class NetworkError(BunqClientError):
    """Network-level error (connection failed, timeout)."""


class APIError(BunqClientError):
    """The API answered with an error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        endpoint: str | None = None,
        description: str | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, endpoint=endpoint)
        self.status_code = status_code
        self.endpoint = endpoint
        self.description = description
        self.response = response

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, message: str, *, endpoint: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, status_code=404, endpoint=endpoint, **kwargs)


class RateLimitError(APIError):
    """Rate limited by the API."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        endpoint: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, status_code=429, endpoint=endpoint, **kwargs)


class ServerError(APIError):
    """Server-side error (5xx)."""


class SessionCreationError(BunqClientError):
    """The session-server call failed."""

    error_code = ErrorCode.SESSION_CREATION_FAILED


class SignatureVerificationError(BunqClientError):
    """A response signature did not match the server public key."""

    error_code = ErrorCode.SIGNATURE_VERIFICATION_FAILED


class UnsupportedPrincipalError(BunqClientError):
    """The API returned a principal shape this client does not know."""

    error_code = ErrorCode.UNSUPPORTED_PRINCIPAL

"""
Exception hierarchy for the storage client core.

Every error raised by the request pipeline derives from `StorageError`, so
callers can catch a single base class while still distinguishing transport
failures, signing failures, and unsuccessful HTTP responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .clients.pipeline import StorageResponse


class StorageError(Exception):
    """Base exception for all storage client errors."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        response: StorageResponse | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.response = response

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"(status {self.status_code})")
        if self.error_code:
            parts.append(f"[{self.error_code}]")
        return " ".join(parts)


class ConfigurationError(StorageError):
    """Client configuration is missing or invalid."""


class SigningError(StorageError):
    """Credentials are missing or malformed; the request was not sent."""


# =============================================================================
# Transport errors (raised by the HTTP transport, retryable)
# =============================================================================


class TransportError(StorageError):
    """The request could not be delivered (connection, DNS, TLS)."""


class StorageTimeoutError(TransportError):
    """The request timed out before a response was received."""


# =============================================================================
# HTTP errors (a response was received but was not successful)
# =============================================================================


class StorageHTTPError(StorageError):
    """A response was received with a non-success status code."""


class BadRequestError(StorageHTTPError):
    """400 Bad Request."""


class AuthenticationError(StorageHTTPError):
    """401 Unauthorized."""


class AuthorizationError(StorageHTTPError):
    """403 Forbidden; for shared key requests this usually means a bad signature."""


class NotFoundError(StorageHTTPError):
    """404 Not Found."""


class ConflictError(StorageHTTPError):
    """409 Conflict."""


class PreconditionFailedError(StorageHTTPError):
    """412 Precondition Failed."""


class ServerError(StorageHTTPError):
    """5xx response."""


class ServerBusyError(ServerError):
    """503 Server Busy."""


_STATUS_ERRORS: dict[int, type[StorageHTTPError]] = {
    400: BadRequestError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
    412: PreconditionFailedError,
    503: ServerBusyError,
}


def error_from_response(
    status_code: int,
    *,
    reason: str = "",
    error_code: str | None = None,
    response: StorageResponse | None = None,
) -> StorageHTTPError:
    """
    Build the `StorageHTTPError` subclass matching a response status.

    Args:
        status_code: HTTP status code of the response
        reason: Reason phrase, used as the message when present
        error_code: Service error code (from the `x-ms-error-code` header)
        response: The response the error describes
    """
    cls = _STATUS_ERRORS.get(status_code)
    if cls is None:
        cls = ServerError if status_code >= 500 else StorageHTTPError
    message = reason or f"HTTP {status_code}"
    return cls(message, status_code=status_code, error_code=error_code, response=response)

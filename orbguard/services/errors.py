"""
Normalized API errors surfaced by the request pipeline.
"""

import asyncio
from enum import Enum
from typing import Any

import httpx

from orbguard.services.models import ApiResponse


class ErrorKind(str, Enum):
    """Failure taxonomy."""

    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


class ApiError(Exception):
    """Base exception for every failure returned to application code."""

    kind = ErrorKind.UNKNOWN
    default_message = "An unexpected error occurred."

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.code = code or self.kind.value
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"ApiError({self.status_code}): {self.message}"

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    @classmethod
    def from_response(cls, response: ApiResponse) -> "ApiError":
        """Build the error matching a non-2xx response."""
        error_cls = _class_for_status(response.status_code)
        body = response.try_parse()

        if isinstance(body, dict):
            details = body.get("details")
            return error_cls(
                message=body.get("message") or body.get("error"),
                status_code=response.status_code,
                code=body.get("code"),
                details=details if isinstance(details, dict) else None,
            )

        return error_cls(status_code=response.status_code)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ApiError":
        """Build the error matching a transport-level exception."""
        if isinstance(exc, ApiError):
            return exc
        if isinstance(exc, httpx.TimeoutException):
            return RequestTimeoutError()
        if isinstance(exc, httpx.NetworkError):
            return ConnectionFailedError()
        if isinstance(exc, asyncio.CancelledError):
            return RequestCancelledError()
        if isinstance(exc, httpx.DecodingError):
            return MalformedResponseError(f"Malformed response: {exc}")
        return UnknownApiError(str(exc) or None)


class RequestTimeoutError(ApiError):
    """Connect, send or receive timed out."""

    kind = ErrorKind.TIMEOUT
    default_message = "Connection timed out. Please check your internet connection."


class ConnectionFailedError(ApiError):
    """The server could not be reached."""

    kind = ErrorKind.CONNECTION_ERROR
    default_message = (
        "Unable to connect to server. Please check your internet connection."
    )


class UnauthorizedError(ApiError):
    """Credentials were rejected and could not be refreshed."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required. Please sign in again."


class RateLimitError(ApiError):
    """Rate limit exceeded."""

    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests. Please try again later."


class ServerError(ApiError):
    """The server failed (5xx)."""

    kind = ErrorKind.SERVER_ERROR
    default_message = "The server encountered an error. Please try again later."


class ClientError(ApiError):
    """The request was rejected (4xx other than 401 and 429)."""

    kind = ErrorKind.CLIENT_ERROR
    default_message = "The request could not be processed."


class RequestCancelledError(ApiError):
    """The request was cancelled before it completed."""

    kind = ErrorKind.CANCELLED
    default_message = "Request was cancelled."


class UnknownApiError(ApiError):
    """Anything not covered by the other kinds."""

    kind = ErrorKind.UNKNOWN


class MalformedResponseError(UnknownApiError):
    """A response body could not be decoded."""

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(
            message=message or "The server returned a malformed response.",
            status_code=status_code,
            code="MALFORMED_RESPONSE",
        )


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.TIMEOUT,
        ErrorKind.CONNECTION_ERROR,
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER_ERROR,
    }
)


def _class_for_status(status_code: int) -> type[ApiError]:
    if status_code == 401:
        return UnauthorizedError
    if status_code == 429:
        return RateLimitError
    if 500 <= status_code < 600:
        return ServerError
    if 400 <= status_code < 500:
        return ClientError
    return UnknownApiError

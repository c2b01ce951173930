"""Error taxonomy and normalization for the ScoreAPI SDK.

Every failure that crosses the SDK boundary is a ScoreAPIError carrying a
machine-readable code, an optional HTTP status and optional server details.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx


class ErrorCode(str, Enum):
    """Machine-readable error kinds."""

    # Authentication
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_REQUIRED = "TOKEN_REQUIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"

    # Server-reported user errors
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    USER_ENROLLMENT_FAILED = "USER_ENROLLMENT_FAILED"
    USER_THIN_FILE = "USER_THIN_FILE"

    # Identity verification
    IDENTITY_VERIFICATION_FAILED = "IDENTITY_VERIFICATION_FAILED"
    DIT_VERIFICATION_FAILED = "DIT_VERIFICATION_FAILED"
    SMFA_VERIFICATION_FAILED = "SMFA_VERIFICATION_FAILED"

    # Transport
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_PARAMETER = "INVALID_PARAMETER"

    # Server
    SERVER_ERROR = "SERVER_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ScoreAPIError(Exception):
    """Base exception for all ScoreAPI SDK errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"code={self.code.value}, status_code={self.status_code})"
        )


_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.USER_NOT_FOUND,
    408: ErrorCode.TIMEOUT_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
    504: ErrorCode.TIMEOUT_ERROR,
}


def map_status_to_error_code(status_code: int) -> ErrorCode:
    """Map an HTTP status code to the closest error kind."""
    if status_code in _STATUS_CODES:
        return _STATUS_CODES[status_code]
    if status_code >= 500:
        return ErrorCode.SERVER_ERROR
    return ErrorCode.UNKNOWN_ERROR


def error_from_response(response: httpx.Response) -> ScoreAPIError:
    """Build a normalized error from a non-success HTTP response.

    Prefers the server's own ``message``/``error`` and ``code`` fields when
    the body is a JSON object; falls back to the status code otherwise.
    """
    try:
        data = response.json()
    except ValueError:
        data = response.text or None

    message = None
    code = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
        server_code = data.get("code")
        if isinstance(server_code, str):
            try:
                code = ErrorCode(server_code)
            except ValueError:
                # Unknown server code stays visible in details
                code = None

    if not isinstance(message, str) or not message:
        message = f"Request failed with status code {response.status_code}"

    return ScoreAPIError(
        message,
        code or map_status_to_error_code(response.status_code),
        status_code=response.status_code,
        details=data,
    )


def error_from_transport(exc: httpx.TransportError) -> ScoreAPIError:
    """Build a normalized error for a request that got no response."""
    if isinstance(exc, httpx.TimeoutException):
        return ScoreAPIError(
            f"Request timed out: {exc}", ErrorCode.TIMEOUT_ERROR
        )
    return ScoreAPIError(
        f"No response received from server: {exc}", ErrorCode.NETWORK_ERROR
    )

"""Shared error helpers, codes and the verification error taxonomy."""

from __future__ import annotations

from typing import Any

from starlette.responses import JSONResponse


class ErrorCode:
    FORBIDDEN = "forbidden"
    MISSING_HEADER = "missing_header"
    BAD_ENCODING = "bad_encoding"
    NOT_FOUND = "not_found"
    UNKNOWN_APPLICATION_KEY = "unknown_application_key"
    BAD_SIGNATURE = "bad_signature"


class VerificationError(Exception):
    """A webhook delivery failed verification.

    Every subclass is caller-facing and terminal for the request.
    """

    status_code = 400
    code = ErrorCode.BAD_SIGNATURE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(VerificationError):
    """Delivery arrived over an insecure connection."""

    status_code = 403
    code = ErrorCode.FORBIDDEN


class MissingHeaderError(VerificationError):
    """A required header is absent, repeated or empty."""

    code = ErrorCode.MISSING_HEADER


class MalformedEncodingError(VerificationError):
    """The signature header is not valid hex."""

    code = ErrorCode.BAD_ENCODING


class UnconfiguredReceiverError(VerificationError):
    """No secret keys exist for the receiver at all."""

    status_code = 404
    code = ErrorCode.NOT_FOUND


class UnknownApplicationKeyError(VerificationError):
    """The application key has no usable secret."""

    code = ErrorCode.UNKNOWN_APPLICATION_KEY


class SignatureMismatchError(VerificationError):
    """The computed digest does not match the supplied one."""

    code = ErrorCode.BAD_SIGNATURE


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        payload["error"]["details"] = details
    return JSONResponse(payload, status_code=status_code)

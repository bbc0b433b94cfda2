"""Error taxonomy shared by the gateway and its clients.

Every failure the relay can surface maps to one ``ErrorKind``. The gateway
serializes errors as ``{"error": <message>, "kind": <kind>}`` with the
matching HTTP status, and the client maps status + kind back to the same
exception class.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable, caller-facing error identifiers."""

    AUTHENTICATION_REQUIRED = "authentication_required"
    RATE_LIMITED = "rate_limited"
    CREDITS_EXHAUSTED = "credits_exhausted"
    UPSTREAM_FAILURE = "upstream_failure"
    CONFIGURATION_ERROR = "configuration_error"
    MALFORMED_STREAM_FRAME = "malformed_stream_frame"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    INVALID_FILE = "invalid_file"
    INVALID_REQUEST = "invalid_request"


class RelayError(Exception):
    """Base exception for all relay errors."""

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE
    status_code: int = 500
    default_message = "AI service error. Please try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict[str, str]:
        """JSON body the gateway returns for this error."""
        return {"error": self.message, "kind": str(self.kind)}


class AuthenticationRequired(RelayError):
    """No bearer credential, or the credential was rejected."""

    kind = ErrorKind.AUTHENTICATION_REQUIRED
    status_code = 401
    default_message = "Authentication required. Please sign in."


class RateLimited(RelayError):
    """Upstream answered 429. Callers must not retry automatically."""

    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class CreditsExhausted(RelayError):
    """Upstream answered 402."""

    kind = ErrorKind.CREDITS_EXHAUSTED
    status_code = 402
    default_message = "AI credits exhausted. Please contact admin."


class UpstreamFailure(RelayError):
    """Any other upstream or transport failure."""

    kind = ErrorKind.UPSTREAM_FAILURE
    status_code = 500


class ConfigurationError(RelayError):
    """Server misconfiguration, e.g. the upstream API key is not set."""

    kind = ErrorKind.CONFIGURATION_ERROR
    status_code = 500
    default_message = "AI service is not configured."


class MalformedStreamFrame(RelayError):
    """A ``data:`` line that never became valid JSON before the stream ended."""

    kind = ErrorKind.MALFORMED_STREAM_FRAME
    status_code = 502
    default_message = "The response stream ended with an incomplete frame."

    def __init__(self, raw: str, message: str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class PayloadTooLarge(RelayError):
    """Analysis content exceeds the character ceiling."""

    kind = ErrorKind.PAYLOAD_TOO_LARGE
    status_code = 413
    default_message = "Content is too large to analyze."


class FileValidationError(RelayError):
    """An uploaded file failed size, type or name checks."""

    kind = ErrorKind.INVALID_FILE
    status_code = 400
    default_message = "Invalid file."


class InvalidRequest(RelayError):
    """The request body is missing required input."""

    kind = ErrorKind.INVALID_REQUEST
    status_code = 400
    default_message = "Content is required."


_BY_KIND: dict[str, type[RelayError]] = {
    str(cls.kind): cls
    for cls in (
        AuthenticationRequired,
        RateLimited,
        CreditsExhausted,
        UpstreamFailure,
        ConfigurationError,
        PayloadTooLarge,
        FileValidationError,
        InvalidRequest,
    )
}

_BY_STATUS: dict[int, type[RelayError]] = {
    400: InvalidRequest,
    401: AuthenticationRequired,
    402: CreditsExhausted,
    413: PayloadTooLarge,
    429: RateLimited,
}


def error_from_response(status_code: int, body: object) -> RelayError:
    """Rebuild the gateway's error from an HTTP status and decoded JSON body.

    The ``kind`` field wins when present; otherwise the status code decides,
    and anything unrecognised becomes ``UpstreamFailure``.
    """
    message: str | None = None
    kind: str | None = None
    if isinstance(body, dict):
        raw_message = body.get("error")
        if isinstance(raw_message, str):
            message = raw_message
        raw_kind = body.get("kind")
        if isinstance(raw_kind, str):
            kind = raw_kind

    cls = _BY_KIND.get(kind or "") or _BY_STATUS.get(status_code, UpstreamFailure)
    return cls(message)

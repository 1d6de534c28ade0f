"""Error taxonomy and the translation of failures into client responses.

Every failure is reduced to a ``(stage, upstream_status)`` pair and looked up
in one static table, so the HTTP mapping can be audited and tested without a
running server.
"""
from __future__ import annotations
from enum import Enum
from typing import Optional

from ludus_gateway.common.schema import ErrorEnvelope, ErrorKind


class Stage(str, Enum):
    """Where in the request lifecycle a failure happened."""

    VALIDATION = "validation"
    BODY_LIMIT = "body_limit"
    RATE_LIMIT = "rate_limit"
    UPSTREAM = "upstream"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    INTERNAL = "internal"


_KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM_AUTH_FAILURE: 500,
    ErrorKind.UPSTREAM_BAD_REQUEST: 400,
    ErrorKind.UPSTREAM_UNAVAILABLE: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.INTERNAL: 500,
}

# kind -> (error label, default message)
_LABELS: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.INVALID_INPUT: ("Invalid input", "Request validation failed"),
    ErrorKind.RATE_LIMITED: ("Rate limit exceeded", "Too many requests, please try again later."),
    ErrorKind.UPSTREAM_AUTH_FAILURE: ("Authentication failed with upstream API", "Invalid API key configuration"),
    ErrorKind.UPSTREAM_BAD_REQUEST: ("Invalid request to upstream API", "Upstream API rejected the request"),
    ErrorKind.UPSTREAM_UNAVAILABLE: ("Upstream API server error", "External service temporarily unavailable"),
    ErrorKind.TIMEOUT: ("Request timeout", "Upstream API request took too long"),
    ErrorKind.INTERNAL: ("Internal server error", "Failed to process request"),
}


def classify(stage: Stage, upstream_status: Optional[int] = None) -> tuple[ErrorKind, int]:
    """
    Map a failure to its error kind and client-facing HTTP status.

    Args:
        stage: Lifecycle stage that failed.
        upstream_status: HTTP status returned by the upstream, for
            ``Stage.UPSTREAM`` only.

    Returns:
        (ErrorKind, http_status)
    """
    if stage is Stage.VALIDATION:
        kind = ErrorKind.INVALID_INPUT
    elif stage is Stage.BODY_LIMIT:
        return ErrorKind.INVALID_INPUT, 413
    elif stage is Stage.RATE_LIMIT:
        kind = ErrorKind.RATE_LIMITED
    elif stage is Stage.TIMEOUT:
        kind = ErrorKind.TIMEOUT
    elif stage is Stage.UPSTREAM and upstream_status is not None:
        if upstream_status == 401:
            kind = ErrorKind.UPSTREAM_AUTH_FAILURE
        elif upstream_status == 429:
            kind = ErrorKind.RATE_LIMITED
        elif 400 <= upstream_status < 500:
            kind = ErrorKind.UPSTREAM_BAD_REQUEST
        elif upstream_status >= 500:
            kind = ErrorKind.UPSTREAM_UNAVAILABLE
        else:
            kind = ErrorKind.INTERNAL
    else:
        kind = ErrorKind.INTERNAL
    return kind, _KIND_STATUS[kind]


def build_envelope(
    stage: Stage,
    upstream_status: Optional[int] = None,
    *,
    error: Optional[str] = None,
    message: Optional[str] = None,
    details: Optional[list[str]] = None,
    retry_after: Optional[int] = None,
) -> ErrorEnvelope:
    kind, status = classify(stage, upstream_status)
    label, default_message = _LABELS[kind]
    return ErrorEnvelope(
        kind=kind,
        status=status,
        error=error or label,
        message=message or default_message,
        details=details,
        retry_after=retry_after,
    )


class GatewayError(Exception):
    """Base for failures that already carry their client-facing envelope."""

    def __init__(self, envelope: ErrorEnvelope) -> None:
        super().__init__(envelope.message)
        self.envelope = envelope

    @property
    def kind(self) -> ErrorKind:
        return self.envelope.kind

    @property
    def status(self) -> int:
        return self.envelope.status


class InvalidInputError(GatewayError):
    def __init__(self, details: list[str]) -> None:
        super().__init__(build_envelope(Stage.VALIDATION, details=details))
        self.details = details


class PayloadTooLargeError(GatewayError):
    def __init__(self, limit_bytes: int) -> None:
        super().__init__(
            build_envelope(
                Stage.BODY_LIMIT,
                error="Payload too large",
                message=f"Request body exceeds {limit_bytes} bytes",
            )
        )


class RateLimitedError(GatewayError):
    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(build_envelope(Stage.RATE_LIMIT, message=message, retry_after=retry_after))


class UpstreamError(GatewayError):
    """Upstream answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        upstream_message: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        kind, _ = classify(Stage.UPSTREAM, status_code)
        message = None
        if kind is ErrorKind.UPSTREAM_BAD_REQUEST:
            message = upstream_message
        elif kind is ErrorKind.RATE_LIMITED:
            message = "Too many requests to upstream API"
        # Auth and 5xx messages stay generic; upstream text may echo credentials.
        super().__init__(
            build_envelope(
                Stage.UPSTREAM,
                status_code,
                message=message,
                retry_after=retry_after if kind is ErrorKind.RATE_LIMITED else None,
            )
        )
        self.upstream_status = status_code
        self.upstream_message = upstream_message


class UpstreamTimeoutError(GatewayError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(build_envelope(Stage.TIMEOUT))
        self.timeout_seconds = timeout_seconds


class UpstreamTransportError(GatewayError):
    """Network failure or unreadable upstream payload."""

    def __init__(self, reason: str) -> None:
        super().__init__(build_envelope(Stage.TRANSPORT))
        self.reason = reason


def internal_envelope() -> ErrorEnvelope:
    """Envelope for faults that escaped every other handler."""
    return build_envelope(Stage.INTERNAL, message="Something went wrong")

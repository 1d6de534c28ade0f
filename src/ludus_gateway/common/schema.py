"""Pydantic models and dataclasses for request/response types."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

MAX_PROMPT_CHARS = 10_000
MAX_SYSTEM_PROMPT_CHARS = 5_000
MIN_TOKENS, MAX_TOKENS = 1, 4096
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ErrorKind(str, Enum):
    """Client-facing error taxonomy."""

    INVALID_INPUT = "InvalidInput"
    RATE_LIMITED = "RateLimited"
    UPSTREAM_AUTH_FAILURE = "UpstreamAuthFailure"
    UPSTREAM_BAD_REQUEST = "UpstreamBadRequest"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    TIMEOUT = "Timeout"
    INTERNAL = "Internal"


class _StrictBody(BaseModel):
    # Wrong types and unknown keys are rejected instead of coerced.
    model_config = ConfigDict(strict=True, extra="forbid", protected_namespaces=())


class GenerationRequest(_StrictBody):
    """Body of POST /api/generate-sentence.

    The allow-list and default model are supplied through the validation
    context (``allowed_models``, ``default_model``) because both are
    configurable at runtime.
    """

    prompt: str = Field(min_length=1, max_length=MAX_PROMPT_CHARS)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=MIN_TOKENS, le=MAX_TOKENS)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)
    system_prompt: Optional[str] = Field(default=None, min_length=1, max_length=MAX_SYSTEM_PROMPT_CHARS)
    model: Optional[str] = None

    @field_validator("model")
    @classmethod
    def _model_allowed(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        allowed = tuple((info.context or {}).get("allowed_models") or ())
        if value is not None and allowed and value not in allowed:
            raise ValueError(f"must be one of [{', '.join(allowed)}]")
        return value

    @model_validator(mode="after")
    def _default_model(self, info: ValidationInfo) -> "GenerationRequest":
        if self.model is None:
            self.model = (info.context or {}).get("default_model")
        return self


class ChatMessage(_StrictBody):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class PassthroughRequest(_StrictBody):
    """Body of POST /api/claude, forwarded to the upstream as-is."""

    model: str = Field(min_length=1)
    max_tokens: int = Field(ge=MIN_TOKENS, le=MAX_TOKENS)
    messages: list[ChatMessage]
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    system: Optional[str] = Field(default=None, min_length=1)


@dataclass
class GenerationResult:
    """Normalized outcome of a successful sentence generation."""
    generated_text: str
    model_used: str
    usage: Any = None
    success: bool = True
    timestamp: str = field(default_factory=utc_timestamp)

    def to_body(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": {
                "generated_text": self.generated_text,
                "model_used": self.model_used,
                "tokens_used": self.usage,
            },
            "timestamp": self.timestamp,
        }


@dataclass
class ErrorEnvelope:
    """Sanitized error description rendered to the client."""
    kind: ErrorKind
    status: int
    error: str
    message: str
    details: list[str] | None = None
    retry_after: int | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = list(self.details)
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        body["timestamp"] = self.timestamp
        return body

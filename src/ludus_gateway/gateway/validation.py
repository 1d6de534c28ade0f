"""Request validation for the generation endpoints."""
from __future__ import annotations
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from ludus_gateway.common.schema import GenerationRequest, PassthroughRequest
from ludus_gateway.gateway.errors import InvalidInputError


def format_errors(exc: ValidationError) -> list[str]:
    """Flatten pydantic errors into one message per violated field."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
        messages.append(f'"{loc}" {err.get("msg", "is invalid")}')
    return messages


def _validate(model: type[BaseModel], raw: Any, context: dict[str, Any] | None = None) -> Any:
    if not isinstance(raw, dict):
        raise InvalidInputError(['"body" must be a JSON object'])
    try:
        return model.model_validate(raw, context=context)
    except ValidationError as exc:
        raise InvalidInputError(format_errors(exc)) from exc


def validate_generation(
    raw: Any,
    *,
    allowed_models: Iterable[str],
    default_model: str,
) -> GenerationRequest:
    """
    Validate a sentence-generation body.

    Args:
        raw: Decoded JSON body.
        allowed_models: Model identifiers the caller may request.
        default_model: Model used when the body names none.

    Raises:
        InvalidInputError: listing every violated field.
    """
    context = {"allowed_models": tuple(allowed_models), "default_model": default_model}
    return _validate(GenerationRequest, raw, context)


def validate_passthrough(raw: Any) -> PassthroughRequest:
    """Validate a raw Messages API body for the passthrough endpoint."""
    return _validate(PassthroughRequest, raw)

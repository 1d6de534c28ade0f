from __future__ import annotations

from typing import Any

import pytest

from ludus_gateway.common.schema import ErrorKind
from ludus_gateway.gateway.errors import InvalidInputError
from ludus_gateway.gateway.validation import validate_generation, validate_passthrough

ALLOWED = ("model-a", "model-b")


def _generation(raw: Any):
    return validate_generation(raw, allowed_models=ALLOWED, default_model="model-a")


def test_defaults_applied() -> None:
    req = _generation({"prompt": "Salve"})
    assert req.max_tokens == 1000
    assert req.temperature == 0.7
    assert req.system_prompt is None
    assert req.model == "model-a"


def test_prompt_bounds() -> None:
    assert _generation({"prompt": "a" * 10_000}).prompt == "a" * 10_000
    for prompt in ("", "a" * 10_001):
        with pytest.raises(InvalidInputError) as exc:
            _generation({"prompt": prompt})
        assert exc.value.kind is ErrorKind.INVALID_INPUT
        assert exc.value.status == 400


def test_missing_prompt() -> None:
    with pytest.raises(InvalidInputError) as exc:
        _generation({})
    assert exc.value.details == ['"prompt" Field required']


@pytest.mark.parametrize("value", [0, 4097, -1, 10.5, "100", True, None])
def test_max_tokens_rejected(value: Any) -> None:
    with pytest.raises(InvalidInputError):
        _generation({"prompt": "x", "max_tokens": value})


@pytest.mark.parametrize("value", [-0.1, 1.01, "0.5", False])
def test_temperature_rejected(value: Any) -> None:
    with pytest.raises(InvalidInputError):
        _generation({"prompt": "x", "temperature": value})


def test_bounds_accepted() -> None:
    assert _generation({"prompt": "x", "max_tokens": 1}).max_tokens == 1
    assert _generation({"prompt": "x", "max_tokens": 4096}).max_tokens == 4096
    assert _generation({"prompt": "x", "temperature": 0.0}).temperature == 0.0
    assert _generation({"prompt": "x", "temperature": 1.0}).temperature == 1.0


def test_system_prompt_length() -> None:
    assert _generation({"prompt": "x", "system_prompt": "s" * 5000}).system_prompt == "s" * 5000
    with pytest.raises(InvalidInputError):
        _generation({"prompt": "x", "system_prompt": "s" * 5001})


def test_model_allow_list() -> None:
    assert _generation({"prompt": "x", "model": "model-b"}).model == "model-b"
    with pytest.raises(InvalidInputError) as exc:
        _generation({"prompt": "x", "model": "model-z"})
    assert "model-a, model-b" in exc.value.details[0]


def test_all_violations_reported_together() -> None:
    with pytest.raises(InvalidInputError) as exc:
        _generation({"prompt": "", "max_tokens": 5000, "temperature": 3, "model": "nope", "extra": 1})
    fields = [d.split('"')[1] for d in exc.value.details]
    assert sorted(fields) == ["extra", "max_tokens", "model", "prompt", "temperature"]
    assert exc.value.envelope.to_body()["details"] == exc.value.details


@pytest.mark.parametrize("raw", [None, [], "prompt", 3])
def test_non_object_body(raw: Any) -> None:
    with pytest.raises(InvalidInputError) as exc:
        _generation(raw)
    assert exc.value.details == ['"body" must be a JSON object']


def test_passthrough_valid() -> None:
    req = validate_passthrough(
        {"model": "anything", "max_tokens": 10, "messages": [{"role": "user", "content": "hi"}]}
    )
    assert req.model_dump(exclude_none=True) == {
        "model": "anything",
        "max_tokens": 10,
        "messages": [{"role": "user", "content": "hi"}],
    }


def test_passthrough_empty_messages_allowed() -> None:
    assert validate_passthrough({"model": "m", "max_tokens": 1, "messages": []}).messages == []


def test_passthrough_violations() -> None:
    with pytest.raises(InvalidInputError) as exc:
        validate_passthrough(
            {
                "max_tokens": 0,
                "messages": [{"role": "user", "content": 5}, {"role": "robot", "content": "x"}],
                "temperature": 2,
            }
        )
    locs = {d.split('"')[1] for d in exc.value.details}
    assert locs == {"model", "max_tokens", "messages.0.content", "messages.1.role", "temperature"}

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from ludus_gateway.common.schema import GenerationRequest, PassthroughRequest
from ludus_gateway.common.settings import Settings
from ludus_gateway.gateway.errors import UpstreamError, UpstreamTimeoutError, UpstreamTransportError
from ludus_gateway.gateway.forwarder import Forwarder, build_payload, extract_text


def _forwarder(handler: Any, **overrides: Any) -> Forwarder:
    settings = Settings(anthropic_api_key="k", **overrides)
    return Forwarder(settings, transport=httpx.MockTransport(handler))


def _request(**kw: Any) -> GenerationRequest:
    values: dict[str, Any] = {"prompt": "Describe Rome.", "model": "claude-3-haiku-20240307"}
    values.update(kw)
    return GenerationRequest(**values)


def test_build_payload_without_system() -> None:
    payload = build_payload(_request(max_tokens=50, temperature=0.5))
    assert payload == {
        "model": "claude-3-haiku-20240307",
        "max_tokens": 50,
        "temperature": 0.5,
        "messages": [{"role": "user", "content": "Describe Rome."}],
    }


def test_build_payload_with_system() -> None:
    assert build_payload(_request(system_prompt="Be brief."))["system"] == "Be brief."


@pytest.mark.parametrize(
    "data, expected",
    [
        ({"content": [{"type": "text", "text": "Salve"}]}, "Salve"),
        ({"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}, "a"),
        ({"content": []}, ""),
        ({"content": [{"type": "tool_use"}]}, ""),
        ({"content": None}, ""),
        ({}, ""),
    ],
)
def test_extract_text(data: dict[str, Any], expected: str) -> None:
    assert extract_text(data) == expected


def test_generate_success() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"content": [{"text": "Roma"}], "usage": {"output_tokens": 2}})

    result = asyncio.run(_forwarder(handler).generate(_request()))
    assert result.success
    assert result.generated_text == "Roma"
    assert result.model_used == "claude-3-haiku-20240307"
    assert result.usage == {"output_tokens": 2}
    assert str(seen[0].url) == "https://api.anthropic.com/v1/messages"
    assert seen[0].headers["x-api-key"] == "k"


def test_passthrough_omits_unset_fields() -> None:
    seen: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "msg"})

    req = PassthroughRequest(model="m", max_tokens=5, messages=[{"role": "user", "content": "hi"}])
    assert asyncio.run(_forwarder(handler).passthrough(req)) == {"id": "msg"}
    assert seen == [{"model": "m", "max_tokens": 5, "messages": [{"role": "user", "content": "hi"}]}]


def test_upstream_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(529, json={"error": {"type": "overloaded_error", "message": "Overloaded"}})

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_forwarder(handler).generate(_request()))
    assert exc.value.upstream_status == 529
    assert exc.value.upstream_message == "Overloaded"
    assert exc.value.status == 502


def test_upstream_error_without_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad")

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_forwarder(handler).generate(_request()))
    assert exc.value.upstream_message is None


def test_httpx_timeout_translated() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(UpstreamTimeoutError):
        asyncio.run(_forwarder(handler).generate(_request()))


def test_overall_deadline_enforced() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(2)
        return httpx.Response(200, json={})

    with pytest.raises(UpstreamTimeoutError) as exc:
        asyncio.run(_forwarder(handler, upstream_timeout_seconds=0.1).generate(_request()))
    assert exc.value.timeout_seconds == 0.1


def test_malformed_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})

    with pytest.raises(UpstreamTransportError):
        asyncio.run(_forwarder(handler).generate(_request()))


def test_non_object_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "an", "object"])

    with pytest.raises(UpstreamTransportError):
        asyncio.run(_forwarder(handler).generate(_request()))


def test_single_attempt_on_failure() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(503, json={})

    with pytest.raises(UpstreamError):
        asyncio.run(_forwarder(handler).generate(_request()))
    assert len(attempts) == 1

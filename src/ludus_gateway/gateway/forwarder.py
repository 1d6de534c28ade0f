"""Forwarding of validated requests to the Anthropic Messages API.

One attempt per request: generative calls are billable and not idempotent,
so failures are surfaced to the caller rather than retried.
"""
from __future__ import annotations
import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from ludus_gateway.common.schema import GenerationRequest, GenerationResult, PassthroughRequest
from ludus_gateway.common.settings import Settings
from ludus_gateway.gateway.errors import UpstreamError, UpstreamTimeoutError, UpstreamTransportError

LOGGER = logging.getLogger("ludus.gateway.forwarder")


def build_payload(req: GenerationRequest) -> dict[str, Any]:
    """Messages API payload for a sentence-generation request."""
    payload: dict[str, Any] = {
        "model": req.model,
        "max_tokens": req.max_tokens,
        "temperature": req.temperature,
        "messages": [{"role": "user", "content": req.prompt}],
    }
    if req.system_prompt:
        payload["system"] = req.system_prompt
    return payload


def extract_text(data: dict[str, Any]) -> str:
    """Text of the first content block; empty when the upstream sent none."""
    content = data.get("content")
    if not isinstance(content, list) or not content:
        return ""
    first = content[0]
    if not isinstance(first, dict):
        return ""
    text = first.get("text")
    return text if isinstance(text, str) else ""


def _upstream_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        message = data["error"].get("message")
        return str(message) if message else None
    return None


def _retry_after(response: httpx.Response) -> Optional[int]:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(1, int(float(raw)))
    except (ValueError, OverflowError):
        return None


class Forwarder:
    """
    Issue single upstream calls with a bounded overall duration.

    Args:
        settings: Gateway settings (URL, credential, version, timeout).
        transport: Optional httpx transport, used by tests to stub the upstream.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = settings.anthropic_api_url
        self.timeout = settings.upstream_timeout_seconds
        self._headers = {
            "Content-Type": "application/json",
            "x-api-key": settings.anthropic_api_key,
            "anthropic-version": settings.anthropic_version,
        }
        self._transport = transport

    async def generate(self, req: GenerationRequest) -> GenerationResult:
        data = await self.post(build_payload(req))
        if not isinstance(data, dict):
            raise UpstreamTransportError("upstream payload is not a JSON object")
        return GenerationResult(
            generated_text=extract_text(data),
            model_used=req.model or "",
            usage=data.get("usage"),
        )

    async def passthrough(self, req: PassthroughRequest) -> Any:
        return await self.post(req.model_dump(exclude_none=True))

    async def post(self, payload: dict[str, Any]) -> Any:
        """Send ``payload`` upstream and return the decoded JSON body.

        Raises:
            UpstreamTimeoutError: the call did not finish within the timeout.
            UpstreamError: the upstream answered with a non-2xx status.
            UpstreamTransportError: network failure or undecodable body.
        """
        start = time.monotonic()
        try:
            data = await asyncio.wait_for(self._send(payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            LOGGER.warning("Upstream call timed out after %.1fs", time.monotonic() - start)
            raise UpstreamTimeoutError(self.timeout) from exc
        except httpx.HTTPError as exc:
            LOGGER.error("Upstream request failed: %s", exc.__class__.__name__)
            raise UpstreamTransportError(str(exc)) from exc
        LOGGER.info(
            "Upstream call ok model=%s latency_ms=%d",
            payload.get("model"),
            int((time.monotonic() - start) * 1000),
        )
        return data

    async def _send(self, payload: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            r = await client.post(self.url, headers=self._headers, json=payload)

        if r.status_code >= 400:
            message = _upstream_message(r)
            if r.status_code == 401:
                LOGGER.error("Upstream rejected the configured API key (401)")
            else:
                LOGGER.error("Upstream returned %s: %s", r.status_code, message)
            raise UpstreamError(r.status_code, message, _retry_after(r))

        try:
            return r.json()
        except ValueError as exc:
            LOGGER.error("Malformed upstream response: %s", exc)
            raise UpstreamTransportError("malformed upstream response") from exc

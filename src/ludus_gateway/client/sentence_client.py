"""HTTP client for the gateway's sentence-generation endpoints."""
from __future__ import annotations
import argparse
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ludus_gateway.client.prompts import SentenceParseError, StudySettings, build_prompt, parse_sentence
from ludus_gateway.common.logging_setup import setup_logging

LOGGER = logging.getLogger("ludus.client")

DEFAULT_BASE_URL = "http://localhost:3000"


@dataclass
class SentenceResult:
    success: bool
    sentence: str = ""
    translation: str = ""
    explanation: str = ""
    error: str | None = None


class SentenceClient:
    """
    Talk to a running gateway.

    Args:
        base_url: Gateway root URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def health(self) -> dict[str, Any]:
        with self._client() as client:
            r = client.get("/health")
            r.raise_for_status()
            return r.json()

    def generate_sentence(
        self,
        settings: StudySettings,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> SentenceResult:
        """Generate and parse one Latin sentence; failures come back as success=False."""
        payload = {
            "prompt": build_prompt(settings),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            with self._client() as client:
                r = client.post("/api/generate-sentence", json=payload)
                r.raise_for_status()
                body = r.json()
        except httpx.HTTPStatusError as e:
            LOGGER.error("Sentence generation failed: HTTP %s", e.response.status_code)
            return SentenceResult(success=False, error=f"HTTP error! status: {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            LOGGER.error("Sentence generation failed: %s", e)
            return SentenceResult(success=False, error=str(e) or "Unknown error occurred")

        if not isinstance(body, dict):
            body = {}
        if not body.get("success"):
            return SentenceResult(success=False, error=body.get("error") or "Failed to generate sentence")
        try:
            parsed = parse_sentence(body["data"]["generated_text"])
        except (SentenceParseError, KeyError, TypeError):
            return SentenceResult(success=False, error="Failed to parse generated content")
        return SentenceResult(
            success=True,
            sentence=parsed.sentence,
            translation=parsed.translation,
            explanation=parsed.explanation,
        )

    def raw_request(
        self,
        messages: list[dict[str, str]],
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 1000,
        temperature: float | None = None,
        system: str | None = None,
    ) -> Any:
        """Send a Messages API body through the passthrough endpoint; returns the upstream payload."""
        payload: dict[str, Any] = {"model": model, "max_tokens": max_tokens, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        if system:
            payload["system"] = system
        with self._client() as client:
            r = client.post("/api/claude", json=payload)
            r.raise_for_status()
            return r.json()["data"]


def main() -> None:
    setup_logging()
    ap = argparse.ArgumentParser(description="Generate a Latin practice sentence via the gateway")
    ap.add_argument("--url", default=DEFAULT_BASE_URL, help="Gateway base URL")
    ap.add_argument("--mode", choices=["study", "learn"], default="study")
    ap.add_argument("--difficulty", choices=["easy", "medium", "hard"], default="easy")
    ap.add_argument("--vocab", nargs="*", default=[], help="Vocabulary to focus on")
    ap.add_argument("--grammar", nargs="*", default=[], help="Grammar concepts to emphasize")
    ap.add_argument("--prompt", default=None, help="Extra instructions")
    args = ap.parse_args()

    settings = StudySettings(
        words_mode=args.mode,
        difficulty=args.difficulty,
        focus_vocab=args.vocab,
        focus_grammar=args.grammar,
        custom_prompt=args.prompt,
    )
    resp = SentenceClient(args.url).generate_sentence(settings)
    if not resp.success:
        LOGGER.error("Generation failed: %s", resp.error)
        raise SystemExit(1)
    print(resp.sentence)
    print(resp.translation)
    if resp.explanation:
        print(resp.explanation)

if __name__ == "__main__":
    main()

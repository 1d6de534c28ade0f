"""FastAPI gateway in front of the Anthropic Messages API.

Endpoints:
- GET  /health
- POST /api/generate-sentence  { "prompt": "...", "max_tokens"?, "temperature"?, "system_prompt"?, "model"? }
- POST /api/claude             raw Messages API body, forwarded as-is
"""
from __future__ import annotations
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ludus_gateway.common.schema import ErrorEnvelope, ErrorKind, utc_timestamp
from ludus_gateway.common.settings import Settings
from ludus_gateway.gateway.errors import (
    GatewayError,
    InvalidInputError,
    PayloadTooLargeError,
    RateLimitedError,
    internal_envelope,
)
from ludus_gateway.gateway.forwarder import Forwarder
from ludus_gateway.gateway.rate_limit import CounterStore, FixedWindowLimiter
from ludus_gateway.gateway.validation import validate_generation, validate_passthrough

LOGGER = logging.getLogger("ludus.gateway.app")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}

UNLIMITED_PATHS = frozenset({"/health"})


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def error_response(envelope: ErrorEnvelope) -> JSONResponse:
    headers = {}
    if envelope.retry_after is not None:
        headers["Retry-After"] = str(envelope.retry_after)
    return JSONResponse(envelope.to_body(), status_code=envelope.status, headers=headers)


async def read_json(request: Request, max_bytes: int) -> Any:
    """Decode the request body, enforcing the configured size cap.

    The body is read chunk by chunk and reading stops as soon as the cap is
    exceeded, so a chunked upload without Content-Length is never buffered
    past ``max_bytes``.
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(max_bytes)
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            raise PayloadTooLargeError(max_bytes)
        chunks.append(chunk)
    try:
        return json.loads(b"".join(chunks))
    except ValueError as exc:
        raise InvalidInputError(['"body" must be valid JSON']) from exc


def create_app(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    store: CounterStore | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Validated settings; the credential is already known to exist.
        transport: Optional httpx transport for the upstream (tests).
        store: Shared counter store for both limiters; each limiter gets its
            own in-memory store when omitted.
        clock: Time source for the limiters and uptime.
    """
    started = clock()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        LOGGER.info(
            "Gateway starting env=%s upstream=%s default_model=%s",
            settings.environment,
            settings.anthropic_api_url,
            settings.default_model,
        )
        yield
        LOGGER.info("Gateway shutting down")

    app = FastAPI(title="Ludus gateway", lifespan=lifespan)
    app.state.settings = settings
    app.state.forwarder = Forwarder(settings, transport=transport)
    app.state.global_limiter = FixedWindowLimiter(
        settings.global_rate_limit,
        settings.global_rate_window_seconds,
        store=store,
        clock=clock,
        name="global",
    )
    app.state.generation_limiter = FixedWindowLimiter(
        settings.generation_rate_limit,
        settings.generation_rate_window_seconds,
        store=store,
        clock=clock,
        name="generation",
    )

    @app.middleware("http")
    async def global_rate_limit(request: Request, call_next):
        if request.url.path not in UNLIMITED_PATHS and request.method != "OPTIONS":
            decision = app.state.global_limiter.check(client_key(request))
            if not decision.allowed:
                LOGGER.warning("Global rate limit hit for %s", client_key(request))
                return error_response(
                    RateLimitedError(
                        "Too many requests from this IP, please try again later.",
                        decision.retry_after,
                    ).envelope
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_log(request: Request, call_next):
        req_id = (request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            # Sanitized 500 rendered inside the header and CORS layers.
            LOGGER.exception("Unhandled error on %s %s id=%s", request.method, request.url.path, req_id)
            response = error_response(internal_envelope())
        response.headers["X-Request-Id"] = req_id
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        LOGGER.info(
            "%s %s %s %dms id=%s",
            request.method,
            request.url.path,
            response.status_code,
            int((time.monotonic() - start) * 1000),
            req_id,
        )
        return response

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    if settings.environment == "development":
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.kind is ErrorKind.INTERNAL:
            LOGGER.error("Request %s failed: %s", request.url.path, exc)
        return error_response(exc.envelope)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # A path served under another method is still an unmatched route.
        if exc.status_code in (404, 405):
            body = {"error": "Not found", "message": "The requested endpoint does not exist"}
            status, headers = 404, None
        else:
            body = {"error": str(exc.detail), "message": f"{request.method} {request.url.path} is not supported"}
            status, headers = exc.status_code, getattr(exc, "headers", None)
        body["timestamp"] = utc_timestamp()
        return JSONResponse(body, status_code=status, headers=headers)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(internal_envelope())

    def generation_limit(request: Request) -> None:
        decision = app.state.generation_limiter.check(client_key(request))
        if not decision.allowed:
            LOGGER.warning("Generation rate limit hit for %s", client_key(request))
            raise RateLimitedError("Too many generation requests, please slow down.", decision.retry_after)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": utc_timestamp(),
            "uptime": max(0.0, clock() - started),
            "environment": settings.environment,
        }

    @app.post("/api/generate-sentence", dependencies=[Depends(generation_limit)])
    async def generate_sentence(request: Request) -> JSONResponse:
        raw = await read_json(request, settings.max_body_bytes)
        req = validate_generation(
            raw,
            allowed_models=settings.allowed_models,
            default_model=settings.default_model,
        )
        result = await app.state.forwarder.generate(req)
        return JSONResponse(result.to_body())

    @app.post("/api/claude", dependencies=[Depends(generation_limit)])
    async def claude_passthrough(request: Request) -> JSONResponse:
        raw = await read_json(request, settings.max_body_bytes)
        req = validate_passthrough(raw)
        data = await app.state.forwarder.passthrough(req)
        return JSONResponse({"success": True, "data": data, "timestamp": utc_timestamp()})

    return app

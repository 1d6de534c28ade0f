"""Gateway configuration.

Values are merged in order: built-in defaults, an optional YAML file, then
environment variables. The upstream credential is mandatory; loading fails
fast without it so the process never starts half-configured.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_CONFIG_PATH = "configs/gateway.yaml"

DEFAULT_MODELS = (
    "claude-3-5-sonnet-20241022",
    "claude-3-haiku-20240307",
    "claude-3-opus-20240229",
)

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:8081",
)


class ConfigurationError(RuntimeError):
    """Raised when the gateway cannot be configured from its inputs."""


@dataclass(frozen=True)
class Settings:
    """Immutable gateway settings."""

    anthropic_api_key: str
    anthropic_api_url: str = "https://api.anthropic.com/v1/messages"
    anthropic_version: str = "2023-06-01"
    upstream_timeout_seconds: float = 30.0
    default_model: str = DEFAULT_MODELS[0]
    allowed_models: tuple[str, ...] = DEFAULT_MODELS
    global_rate_limit: int = 100
    global_rate_window_seconds: int = 15 * 60
    generation_rate_limit: int = 20
    generation_rate_window_seconds: int = 60
    max_body_bytes: int = 10 * 1024 * 1024
    environment: str = "development"
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    def __repr__(self) -> str:
        # Keep the credential out of logs and tracebacks.
        return (
            f"Settings(anthropic_api_url={self.anthropic_api_url!r}, "
            f"default_model={self.default_model!r}, environment={self.environment!r})"
        )


# env var -> (field, kind)
ENV_FIELDS: dict[str, tuple[str, str]] = {
    "ANTHROPIC_API_KEY": ("anthropic_api_key", "str"),
    "ANTHROPIC_API_URL": ("anthropic_api_url", "str"),
    "ANTHROPIC_VERSION": ("anthropic_version", "str"),
    "UPSTREAM_TIMEOUT_SECONDS": ("upstream_timeout_seconds", "float"),
    "DEFAULT_MODEL": ("default_model", "str"),
    "ALLOWED_MODELS": ("allowed_models", "list"),
    "GLOBAL_RATE_LIMIT": ("global_rate_limit", "int"),
    "GLOBAL_RATE_WINDOW_SECONDS": ("global_rate_window_seconds", "int"),
    "GENERATION_RATE_LIMIT": ("generation_rate_limit", "int"),
    "GENERATION_RATE_WINDOW_SECONDS": ("generation_rate_window_seconds", "int"),
    "MAX_BODY_BYTES": ("max_body_bytes", "int"),
    "ENVIRONMENT": ("environment", "str"),
    "CORS_ORIGINS": ("cors_origins", "list"),
    "HOST": ("host", "str"),
    "PORT": ("port", "int"),
    "LOG_LEVEL": ("log_level", "str"),
}


def load_cfg(path: str | Path) -> dict[str, Any]:
    """Read a YAML config file; an empty file yields an empty mapping."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _coerce(name: str, kind: str, value: Any) -> Any:
    try:
        if kind == "int":
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if kind == "float":
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)
        if kind == "list":
            if isinstance(value, str):
                items = value.split(",")
            else:
                items = list(value)
            return tuple(str(item).strip() for item in items if str(item).strip())
        return str(value).strip()
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from exc


def _resolve_path(env: Mapping[str, str], path: str | Path | None) -> Path | None:
    if path is not None:
        return Path(path)
    from_env = env.get("GATEWAY_CONFIG", "").strip()
    if from_env:
        return Path(from_env)
    default = Path(DEFAULT_CONFIG_PATH)
    return default if default.exists() else None


def load_settings(
    env: Mapping[str, str] | None = None,
    path: str | Path | None = None,
) -> Settings:
    """
    Build settings from defaults, an optional YAML file and the environment.

    Args:
        env: Environment mapping; defaults to os.environ.
        path: Explicit YAML path. Falls back to GATEWAY_CONFIG, then
            configs/gateway.yaml when it exists.

    Raises:
        ConfigurationError: credential missing or a value is malformed.
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = {}

    cfg_path = _resolve_path(env, path)
    if cfg_path is not None:
        if not cfg_path.exists():
            raise ConfigurationError(f"Config file not found at {cfg_path}")
        kinds = {field: kind for field, kind in ENV_FIELDS.values()}
        for key, raw in load_cfg(cfg_path).items():
            if key not in kinds:
                raise ConfigurationError(f"Unknown config key {key!r} in {cfg_path}")
            values[key] = _coerce(key, kinds[key], raw)

    for env_key, (field, kind) in ENV_FIELDS.items():
        raw = env.get(env_key)
        if raw is not None and raw != "":
            values[field] = _coerce(env_key, kind, raw)

    if not values.get("anthropic_api_key"):
        raise ConfigurationError("ANTHROPIC_API_KEY environment variable is required")

    settings = Settings(**values)
    _check(settings)
    return settings


def _check(settings: Settings) -> None:
    if not settings.allowed_models:
        raise ConfigurationError("At least one allowed model must be configured")
    if settings.default_model not in settings.allowed_models:
        raise ConfigurationError(
            f"Default model {settings.default_model!r} is not in the allowed models"
        )
    if settings.upstream_timeout_seconds <= 0:
        raise ConfigurationError("UPSTREAM_TIMEOUT_SECONDS must be positive")
    for name in (
        "global_rate_limit",
        "global_rate_window_seconds",
        "generation_rate_limit",
        "generation_rate_window_seconds",
        "max_body_bytes",
    ):
        if getattr(settings, name) < 1:
            raise ConfigurationError(f"{name} must be at least 1")

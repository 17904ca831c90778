"""Application settings module using Pydantic and EnvYAML.

Loads configuration from YAML file with environment variables support.
Without a configuration file every section falls back to environment
variables and built-in defaults.
"""

import os
from functools import cache
from pathlib import Path

from envyaml import EnvYAML
from pydantic import BaseModel, Field


def _env(name: str, default: str | None = None) -> str | None:
    """Return environment variable value with optional default."""

    value = os.environ.get(name)
    if value is None:
        return default
    return value


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = _env(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float | None) -> float | None:
    raw = _env(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class OpenRouterConfig(BaseModel):
    """OpenRouter API settings."""

    api_key: str = Field(default_factory=lambda: _env("OPENROUTER_API_KEY", ""), description="API key")
    base_url: str = Field(
        default_factory=lambda: _env("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
        description="Base URL",
    )
    model: str = Field(
        default_factory=lambda: _env("OPENROUTER_MODEL", "openai/gpt-4o-mini"),
        description="Default model for CLI requests",
    )
    max_tokens: int | None = Field(
        default_factory=lambda: _env_int("OPENROUTER_MAX_TOKENS"),
        description="Maximum number of tokens",
    )
    temperature: float | None = Field(
        default_factory=lambda: _env_float("OPENROUTER_TEMPERATURE", None),
        ge=0.0,
        le=2.0,
        description="Generation temperature",
    )
    proxy: str = Field(
        default_factory=lambda: _env("OPENROUTER_PROXY", ""),
        description="Proxy URL (e.g., socks5://127.0.0.1:1081 or http://127.0.0.1:8080)",
    )
    timeout: float | None = Field(
        default_factory=lambda: _env_float("OPENROUTER_TIMEOUT", 120.0),
        gt=0.0,
        description="HTTP timeout in seconds",
    )


class StreamingConfig(BaseModel):
    """Streaming settings."""

    max_error_body_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Upper bound on bytes read from a failed streaming response",
    )


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO"), description="Root log level")


class AppConfig(BaseModel):
    """Main application configuration."""

    openrouter: OpenRouterConfig = Field(default_factory=OpenRouterConfig, description="OpenRouter settings")
    streaming: StreamingConfig = Field(default_factory=StreamingConfig, description="Streaming settings")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging settings")


@cache
def get_config() -> AppConfig:
    app_config_env: str = os.environ.get("APP_CONFIG", "config.yaml")

    # If path has no directory part, assume it's in current working directory
    if os.path.basename(app_config_env) == app_config_env:
        app_config_path = Path.cwd() / app_config_env
    else:
        app_config_path = Path(app_config_env)

    if not app_config_path.is_file():
        return AppConfig()
    return AppConfig.model_validate(dict(EnvYAML(str(app_config_path))))

from __future__ import annotations

import httpx

from openrouter_kit.core.llm.client import OpenRouterClient
from openrouter_kit.settings import AppConfig, get_config


def create_client(config: AppConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> OpenRouterClient:
    """Create OpenRouter client instance based on configuration."""

    config = config or get_config()
    return OpenRouterClient(
        api_key=config.openrouter.api_key,
        base_url=config.openrouter.base_url,
        timeout=config.openrouter.timeout,
        proxy=config.openrouter.proxy or None,
        transport=transport,
        max_error_body_bytes=config.streaming.max_error_body_bytes,
    )

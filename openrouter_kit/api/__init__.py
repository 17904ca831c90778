"""OpenRouter wire models."""

from openrouter_kit.api.models import *  # noqa: F403

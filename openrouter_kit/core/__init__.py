"""Core modules for openrouter-kit."""

from openrouter_kit.core.llm import *  # noqa: F403
from openrouter_kit.core.llm import __all__  # noqa: F401

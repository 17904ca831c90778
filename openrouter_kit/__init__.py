"""
openrouter-kit - typed async client for the OpenRouter API

Structured output decoded straight into your types, and cancellable
Server-Sent Events streaming of chat completions.
"""

from openrouter_kit.core import *  # noqa: F403
from openrouter_kit.api import *  # noqa: F403

__version__ = "0.1.0"
__author__ = "openrouter-kit-team"


__all__ = [
    "__version__",
    "__author__",
]

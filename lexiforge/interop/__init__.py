"""Interoperability layer for external model providers.

Provides clients for:
- OpenRouter (or any OpenAI-compatible chat completions endpoint)
"""

from .model_client import ModelClientConfig, OpenRouterClient

__all__ = [
    "ModelClientConfig",
    "OpenRouterClient",
]

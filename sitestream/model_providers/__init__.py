"""Provider abstractions for streaming model backends."""

from .base import ModelProvider
from .adapters import (
    LlamaCppProvider,
    OpenAICompatProvider,
    ReplayProvider,
    resolve_provider,
)

__all__ = [
    "ModelProvider",
    "OpenAICompatProvider",
    "LlamaCppProvider",
    "ReplayProvider",
    "resolve_provider",
]

# FILE: ragcore/embeddings/__init__.py
"""
Embedding providers and the batched embedding client.
"""

from .client import EmbeddingClient
from .providers import EmbeddingProvider
from .registry import EmbeddingProviderRegistry, ProviderConfig, PROVIDERS, build_default_registry

__all__ = [
    "EmbeddingClient",
    "EmbeddingProvider",
    "EmbeddingProviderRegistry",
    "ProviderConfig",
    "PROVIDERS",
    "build_default_registry",
]

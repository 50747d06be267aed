# FILE: ragcore/embeddings/providers.py
"""
Embedding provider capability.

A provider turns a list of texts into a list of equal-length float vectors,
one per text, in input order. Failures must be raised as one of the
ProviderError subclasses so the client can tell retryable from fatal.
"""

from abc import ABC, abstractmethod
from typing import List


class EmbeddingProvider(ABC):
    """Base class for embedding backends."""

    provider_id: str = ""
    model: str = ""

    @property
    def identity(self) -> str:
        """Provider/model pair recorded against a corpus."""
        return f"{self.provider_id}:{self.model}"

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed texts. Raises AuthError, RateLimitedError, ProviderInvalidInputError or ProviderUnavailableError."""
        ...

# FILE: ragcore/embeddings/registry.py
"""
Embedding provider registry.

Maps a provider id ("openai", "gemini", ...) to a provider instance. Instances
are built lazily from a factory on first resolve and then reused. A registry is
an ordinary object handed to EmbeddingClient; there is no module-level one.
"""

import logging
import os
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ragcore.embeddings.providers import EmbeddingProvider
from ragcore.errors import InvalidConfigError, UnknownProviderError

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], EmbeddingProvider]


@dataclass
class ProviderConfig:
    provider_id: str
    display_name: str
    env_key_name: str


PROVIDERS: Dict[str, ProviderConfig] = {
    "openai": ProviderConfig("openai", "OpenAI", "OPENAI_API_KEY"),
    "gemini": ProviderConfig("gemini", "Google (Gemini)", "GOOGLE_API_KEY"),
}


class EmbeddingProviderRegistry:
    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}
        self._instances: Dict[str, EmbeddingProvider] = {}
        self._lock = threading.Lock()

    def register(self, provider: EmbeddingProvider, provider_id: Optional[str] = None) -> None:
        """Register a ready-made provider under provider_id (defaults to provider.provider_id)."""
        key = provider_id or provider.provider_id
        if not key:
            raise InvalidConfigError("provider must have a provider_id")
        with self._lock:
            self._instances[key] = provider
            self._factories.pop(key, None)

    def register_factory(self, provider_id: str, factory: ProviderFactory) -> None:
        with self._lock:
            self._factories[provider_id] = factory
            self._instances.pop(provider_id, None)

    def provider_ids(self) -> List[str]:
        with self._lock:
            return sorted(set(self._factories) | set(self._instances))

    def is_available(self, provider_id: str) -> bool:
        """True if provider_id is registered and, for known backends, its API key is set."""
        with self._lock:
            registered = provider_id in self._instances or provider_id in self._factories
            built = provider_id in self._instances
        if not registered:
            return False
        if built:
            return True
        config = PROVIDERS.get(provider_id)
        if config is None:
            return True
        return bool(os.getenv(config.env_key_name))

    def resolve(self, provider_id: str) -> EmbeddingProvider:
        """Return the provider for provider_id, building it on first use."""
        with self._lock:
            provider = self._instances.get(provider_id)
            if provider is not None:
                return provider
            factory = self._factories.get(provider_id)
            if factory is None:
                raise UnknownProviderError(f"Unknown embedding provider: {provider_id!r}")
            provider = factory()
            self._instances[provider_id] = provider
        logger.info(f"[embedding_registry] Initialised provider {provider.identity}")
        return provider

    __call__ = resolve


def _require_key(config: ProviderConfig) -> str:
    api_key = os.getenv(config.env_key_name)
    if not api_key:
        raise InvalidConfigError(f"{config.env_key_name} not set; cannot use {config.display_name} embeddings")
    return api_key


def _openai_factory() -> EmbeddingProvider:
    from ragcore.embeddings.openai_provider import OpenAIEmbeddingProvider

    return OpenAIEmbeddingProvider(api_key=_require_key(PROVIDERS["openai"]))


def _gemini_factory() -> EmbeddingProvider:
    from ragcore.embeddings.gemini_provider import GeminiEmbeddingProvider

    return GeminiEmbeddingProvider(api_key=_require_key(PROVIDERS["gemini"]))


def build_default_registry() -> EmbeddingProviderRegistry:
    """Registry with the OpenAI and Gemini backends, keyed from the environment."""
    registry = EmbeddingProviderRegistry()
    registry.register_factory("openai", _openai_factory)
    registry.register_factory("gemini", _gemini_factory)
    return registry

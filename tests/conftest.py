# FILE: tests/conftest.py
"""
Pytest configuration for the ragcore test suite.

Provides:
- In-memory SQLite session factory and ChunkStore
- Deterministic fake embedding providers
- A RagService wired to both
"""

import hashlib
import sys
import threading
from pathlib import Path
from typing import Callable, List, Optional

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from ragcore.config import RagSettings
from ragcore.db import create_session_factory, init_db
from ragcore.embeddings.client import EmbeddingClient
from ragcore.embeddings.providers import EmbeddingProvider
from ragcore.embeddings.registry import EmbeddingProviderRegistry
from ragcore.errors import ProviderUnavailableError
from ragcore.service import RagService
from ragcore.store.service import ChunkStore


class HashingEmbeddingProvider(EmbeddingProvider):
    """Bag-of-words vectors: each word adds 1.0 to an md5-chosen slot."""

    provider_id = "hashing"

    def __init__(self, dim: int = 256, provider_id: Optional[str] = None):
        self.dim = dim
        self.model = f"hash-{dim}"
        if provider_id:
            self.provider_id = provider_id
        self.calls: List[List[str]] = []
        self._lock = threading.Lock()

    def vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        for word in text.lower().split():
            slot = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dim
            vec[slot] += 1.0
        return vec

    def embed(self, texts: List[str]) -> List[List[float]]:
        with self._lock:
            self.calls.append(list(texts))
        return [self.vector(t) for t in texts]


class FlakyEmbeddingProvider(HashingEmbeddingProvider):
    """Fails `failures` times for any batch matching `fails_on`, then succeeds."""

    provider_id = "flaky"

    def __init__(
        self,
        failures: int,
        fails_on: Callable[[List[str]], bool],
        error_factory: Callable[[], Exception] = lambda: ProviderUnavailableError("upstream 503"),
        dim: int = 8,
    ):
        super().__init__(dim=dim)
        self.remaining_failures = failures
        self.fails_on = fails_on
        self.error_factory = error_factory
        self.failed_calls = 0

    def embed(self, texts: List[str]) -> List[List[float]]:
        with self._lock:
            self.calls.append(list(texts))
            should_fail = self.fails_on(texts) and self.remaining_failures > 0
            if should_fail:
                self.remaining_failures -= 1
                self.failed_calls += 1
        if should_fail:
            raise self.error_factory()
        return [self.vector(t) for t in texts]


@pytest.fixture
def session_factory():
    factory = create_session_factory("sqlite://")
    init_db(factory)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def store(session_factory):
    return ChunkStore(session_factory)


@pytest.fixture
def provider():
    return HashingEmbeddingProvider(dim=256)


@pytest.fixture
def registry(provider):
    reg = EmbeddingProviderRegistry()
    reg.register(provider)
    return reg


@pytest.fixture
def embedding_client(registry):
    return EmbeddingClient(registry.resolve, initial_backoff=0.0, max_backoff=0.0)


@pytest.fixture
def settings():
    return RagSettings(chunk_size=10, chunk_overlap=2, batch_size=4, max_concurrency=2, rank_workers=1)


@pytest.fixture
def service(store, embedding_client, settings):
    return RagService(store, embedding_client, settings)


@pytest.fixture
def project(service):
    return service.create_project("Test Project")

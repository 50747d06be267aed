# FILE: tests/test_providers.py
"""
Tests for ragcore/embeddings providers and registry.
SDK clients are mocked; no network access.
"""

from unittest.mock import MagicMock, Mock, patch

import httpx
import openai
import pytest
from google.api_core import exceptions as google_exceptions

from conftest import HashingEmbeddingProvider
from ragcore.embeddings.client import EmbeddingClient
from ragcore.embeddings.openai_provider import OpenAIEmbeddingProvider
from ragcore.embeddings.registry import EmbeddingProviderRegistry, build_default_registry
from ragcore.errors import (
    AuthError,
    EmbeddingFailedError,
    InvalidConfigError,
    ProviderInvalidInputError,
    ProviderUnavailableError,
    RateLimitedError,
    UnknownProviderError,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _response(status: int, headers=None) -> httpx.Response:
    return httpx.Response(status, request=_REQUEST, headers=headers or {})


def _openai_provider(side_effect=None, return_value=None) -> OpenAIEmbeddingProvider:
    client = MagicMock()
    client.embeddings.create.side_effect = side_effect
    if return_value is not None:
        client.embeddings.create.return_value = return_value
    return OpenAIEmbeddingProvider(api_key="sk-test", model="text-embedding-3-small", client=client)


class TestOpenAIProvider:
    """OpenAI embeddings and error mapping."""

    def test_returns_vectors_in_index_order(self):
        data = [Mock(index=1, embedding=[0.0, 1.0]), Mock(index=0, embedding=[1.0, 0.0])]
        provider = _openai_provider(return_value=Mock(data=data))

        assert provider.embed(["first", "second"]) == [[1.0, 0.0], [0.0, 1.0]]
        provider._client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", input=["first", "second"]
        )

    def test_identity(self):
        provider = _openai_provider(return_value=Mock(data=[]))
        assert provider.identity == "openai:text-embedding-3-small"

    def test_auth_error(self):
        exc = openai.AuthenticationError("bad key", response=_response(401), body=None)
        with pytest.raises(AuthError):
            _openai_provider(side_effect=exc).embed(["x"])

    def test_rate_limit_carries_retry_after(self):
        exc = openai.RateLimitError("slow down", response=_response(429, {"retry-after": "2"}), body=None)
        with pytest.raises(RateLimitedError) as exc_info:
            _openai_provider(side_effect=exc).embed(["x"])
        assert exc_info.value.retry_after == 2.0

    def test_bad_request(self):
        exc = openai.BadRequestError("too long", response=_response(400), body=None)
        with pytest.raises(ProviderInvalidInputError):
            _openai_provider(side_effect=exc).embed(["x"])

    def test_timeout_is_unavailable(self):
        exc = openai.APITimeoutError(request=_REQUEST)
        with pytest.raises(ProviderUnavailableError):
            _openai_provider(side_effect=exc).embed(["x"])

    def test_connection_error_is_unavailable(self):
        exc = openai.APIConnectionError(request=_REQUEST)
        with pytest.raises(ProviderUnavailableError):
            _openai_provider(side_effect=exc).embed(["x"])

    def test_server_error_is_unavailable(self):
        exc = openai.InternalServerError("oops", response=_response(503), body=None)
        with pytest.raises(ProviderUnavailableError):
            _openai_provider(side_effect=exc).embed(["x"])

    @pytest.mark.parametrize(
        "exc_cls,status",
        [(openai.NotFoundError, 404), (openai.ConflictError, 409)],
    )
    def test_other_client_errors_are_invalid_input(self, exc_cls, status):
        exc = exc_cls("no such model", response=_response(status), body=None)
        with pytest.raises(ProviderInvalidInputError):
            _openai_provider(side_effect=exc).embed(["x"])

    def test_unmapped_server_status_is_unavailable(self):
        exc = openai.APIStatusError("bad gateway", response=_response(502), body=None)
        with pytest.raises(ProviderUnavailableError):
            _openai_provider(side_effect=exc).embed(["x"])

    def test_unknown_model_surfaces_typed_from_embed_batch(self):
        exc = openai.NotFoundError("model not found", response=_response(404), body=None)
        provider = _openai_provider(side_effect=exc)
        registry = EmbeddingProviderRegistry()
        registry.register(provider)
        client = EmbeddingClient(registry.resolve, initial_backoff=0.0, max_backoff=0.0)

        with pytest.raises(EmbeddingFailedError) as exc_info:
            client.embed_batch("openai", ["a", "b", "c"], batch_size=1, max_concurrency=3)

        assert exc_info.value.retryable is False
        assert isinstance(exc_info.value.__cause__, ProviderInvalidInputError)


class TestGeminiProvider:
    """Gemini embeddings and error mapping."""

    def _provider(self, **kwargs):
        from ragcore.embeddings.gemini_provider import GeminiEmbeddingProvider

        return GeminiEmbeddingProvider(
            api_key="g-test", model="models/text-embedding-004", timeout=5.0, client=MagicMock(), **kwargs
        )

    def test_returns_vectors(self):
        provider = self._provider()
        with patch("google.generativeai.embed_content", return_value={"embedding": [[1.0, 2.0], [3.0, 4.0]]}) as mock_embed:
            assert provider.embed(["a", "b"]) == [[1.0, 2.0], [3.0, 4.0]]

        kwargs = mock_embed.call_args.kwargs
        assert kwargs["model"] == "models/text-embedding-004"
        assert kwargs["content"] == ["a", "b"]
        assert kwargs["task_type"] == "retrieval_document"
        assert kwargs["client"] is provider._client
        assert kwargs["request_options"] == {"timeout": 5.0}

    def test_query_task_type(self):
        provider = self._provider(task_type="retrieval_query")
        with patch("google.generativeai.embed_content", return_value={"embedding": [[1.0]]}) as mock_embed:
            provider.embed(["what is it"])
        assert mock_embed.call_args.kwargs["task_type"] == "retrieval_query"

    def test_single_flat_vector_wrapped(self):
        provider = self._provider()
        with patch("google.generativeai.embed_content", return_value={"embedding": [0.5, 0.5]}):
            assert provider.embed(["a"]) == [[0.5, 0.5]]

    def test_each_instance_keeps_its_own_key(self):
        from ragcore.embeddings.gemini_provider import GeminiEmbeddingProvider

        with patch("google.generativeai.configure") as mock_configure, \
                patch("google.ai.generativelanguage.GenerativeServiceClient") as mock_client_cls:
            mock_client_cls.side_effect = lambda **kw: Mock(api_key=kw["client_options"].api_key)
            first = GeminiEmbeddingProvider(api_key="key-one")
            second = GeminiEmbeddingProvider(api_key="key-two")

        mock_configure.assert_not_called()
        assert first._client.api_key == "key-one"
        assert second._client.api_key == "key-two"

    @pytest.mark.parametrize(
        "raised,expected",
        [
            (google_exceptions.Unauthenticated("no"), AuthError),
            (google_exceptions.PermissionDenied("no"), AuthError),
            (google_exceptions.ResourceExhausted("quota"), RateLimitedError),
            (google_exceptions.InvalidArgument("bad"), ProviderInvalidInputError),
            (google_exceptions.ServiceUnavailable("down"), ProviderUnavailableError),
            (google_exceptions.DeadlineExceeded("slow"), ProviderUnavailableError),
            (google_exceptions.NotFound("no such model"), ProviderInvalidInputError),
            (google_exceptions.BadGateway("proxy"), ProviderUnavailableError),
            (google_exceptions.GoogleAPIError("opaque"), ProviderUnavailableError),
        ],
    )
    def test_error_mapping(self, raised, expected):
        provider = self._provider()
        with patch("google.generativeai.embed_content", side_effect=raised):
            with pytest.raises(expected):
                provider.embed(["a"])


class TestRegistry:
    """Provider lookup."""

    def test_register_and_resolve(self):
        registry = EmbeddingProviderRegistry()
        provider = HashingEmbeddingProvider(dim=4)
        registry.register(provider)

        assert registry.resolve("hashing") is provider
        assert registry("hashing") is provider
        assert registry.provider_ids() == ["hashing"]

    def test_register_under_alias(self):
        registry = EmbeddingProviderRegistry()
        provider = HashingEmbeddingProvider(dim=4)
        registry.register(provider, provider_id="local")
        assert registry.resolve("local") is provider

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError):
            EmbeddingProviderRegistry().resolve("missing")

    def test_factory_is_lazy_and_cached(self):
        registry = EmbeddingProviderRegistry()
        factory = Mock(return_value=HashingEmbeddingProvider(dim=4))
        registry.register_factory("lazy", factory)

        factory.assert_not_called()
        first = registry.resolve("lazy")
        second = registry.resolve("lazy")

        assert first is second
        factory.assert_called_once()

    def test_registries_are_independent(self):
        a = EmbeddingProviderRegistry()
        b = EmbeddingProviderRegistry()
        a.register(HashingEmbeddingProvider(dim=4))
        assert b.provider_ids() == []

    def test_default_registry_availability_follows_env(self):
        registry = build_default_registry()
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test", "GOOGLE_API_KEY": ""}):
            assert registry.is_available("openai") is True
            assert registry.is_available("gemini") is False
        assert registry.is_available("unknown") is False

    def test_default_registry_missing_key(self):
        registry = build_default_registry()
        with patch.dict("os.environ", {"OPENAI_API_KEY": ""}):
            with pytest.raises(InvalidConfigError):
                registry.resolve("openai")

    def test_default_registry_builds_openai(self):
        registry = build_default_registry()
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}):
            provider = registry.resolve("openai")
        assert isinstance(provider, OpenAIEmbeddingProvider)

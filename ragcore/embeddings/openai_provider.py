# FILE: ragcore/embeddings/openai_provider.py
"""
OpenAI embeddings backend.

The SDK's own retries are switched off; EmbeddingClient owns retry and backoff.
"""

import logging
from typing import List, Optional

import openai
from openai import OpenAI

from ragcore.config import EMBEDDING_TIMEOUT, OPENAI_EMBEDDING_MODEL
from ragcore.embeddings.providers import EmbeddingProvider
from ragcore.errors import (
    AuthError,
    ProviderInvalidInputError,
    ProviderUnavailableError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)


def _retry_after(exc: openai.APIStatusError) -> Optional[float]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenAIEmbeddingProvider(EmbeddingProvider):
    provider_id = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_EMBEDDING_MODEL,
        timeout: float = EMBEDDING_TIMEOUT,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            resp = self._client.embeddings.create(model=self.model, input=list(texts))
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AuthError(f"OpenAI rejected credentials: {e}") from e
        except openai.RateLimitError as e:
            raise RateLimitedError(f"OpenAI rate limit: {e}", retry_after=_retry_after(e)) from e
        except (openai.BadRequestError, openai.UnprocessableEntityError) as e:
            raise ProviderInvalidInputError(f"OpenAI refused input: {e}") from e
        except openai.APITimeoutError as e:
            raise ProviderUnavailableError(f"OpenAI request timed out: {e}") from e
        except openai.APIConnectionError as e:
            raise ProviderUnavailableError(f"OpenAI unreachable: {e}") from e
        except openai.InternalServerError as e:
            raise ProviderUnavailableError(f"OpenAI server error: {e}") from e
        except openai.APIStatusError as e:
            # Remaining statuses: 404 unknown model, 409 conflict, 5xx from a proxy
            if 400 <= e.status_code < 500:
                raise ProviderInvalidInputError(f"OpenAI rejected request ({e.status_code}): {e}") from e
            raise ProviderUnavailableError(f"OpenAI error ({e.status_code}): {e}") from e
        except openai.APIError as e:
            raise ProviderUnavailableError(f"OpenAI error: {e}") from e

        # Keep order by index in case the API ever reorders
        items = sorted(resp.data, key=lambda item: item.index)
        logger.debug(f"[openai_embeddings] {len(items)} vectors from {self.model}")
        return [list(item.embedding) for item in items]

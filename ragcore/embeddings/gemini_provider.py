# FILE: ragcore/embeddings/gemini_provider.py
"""
Google Gemini embeddings backend (google.generativeai).

Each instance owns its own GenerativeServiceClient built from its API key, so
two providers with different keys never share credentials. genai.configure()
is not called.

Gemini embeds documents and queries with different task types. One instance
uses one task type for everything it embeds; register a second instance with
task_type="retrieval_query" under its own id to embed queries asymmetrically.
"""

import logging
from typing import List, Optional

from google.api_core import exceptions as google_exceptions

from ragcore.config import EMBEDDING_TIMEOUT, GEMINI_EMBEDDING_MODEL, GEMINI_TASK_TYPE
from ragcore.embeddings.providers import EmbeddingProvider
from ragcore.errors import (
    AuthError,
    ProviderInvalidInputError,
    ProviderUnavailableError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)


class GeminiEmbeddingProvider(EmbeddingProvider):
    provider_id = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_EMBEDDING_MODEL,
        timeout: float = EMBEDDING_TIMEOUT,
        task_type: str = GEMINI_TASK_TYPE,
        client=None,
    ):
        import google.generativeai as genai

        if client is None:
            from google.ai import generativelanguage as glm
            from google.api_core.client_options import ClientOptions

            client = glm.GenerativeServiceClient(client_options=ClientOptions(api_key=api_key))

        self._genai = genai
        self._client = client
        self.model = model
        self.timeout = timeout
        self.task_type = task_type

    def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            result = self._genai.embed_content(
                model=self.model,
                content=list(texts),
                task_type=self.task_type,
                client=self._client,
                request_options={"timeout": self.timeout},
            )
        except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied) as e:
            raise AuthError(f"Gemini rejected credentials: {e}") from e
        except (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests) as e:
            raise RateLimitedError(f"Gemini rate limit: {e}") from e
        except google_exceptions.InvalidArgument as e:
            raise ProviderInvalidInputError(f"Gemini refused input: {e}") from e
        except (
            google_exceptions.DeadlineExceeded,
            google_exceptions.ServiceUnavailable,
            google_exceptions.InternalServerError,
        ) as e:
            raise ProviderUnavailableError(f"Gemini unavailable: {e}") from e
        except google_exceptions.ClientError as e:
            # Remaining 4xx: unknown model, bad request shape
            raise ProviderInvalidInputError(f"Gemini rejected request: {e}") from e
        except google_exceptions.GoogleAPIError as e:
            raise ProviderUnavailableError(f"Gemini error: {e}") from e

        vectors = result["embedding"]
        # A single string comes back as one flat vector
        if vectors and not isinstance(vectors[0], (list, tuple)):
            vectors = [vectors]
        logger.debug(f"[gemini_embeddings] {len(vectors)} vectors from {self.model} ({self.task_type})")
        return [list(v) for v in vectors]

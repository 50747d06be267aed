# FILE: ragcore/embeddings/client.py
"""
Batched, concurrent, retrying embedding client.

embed_batch splits its input into consecutive batches, runs up to
max_concurrency of them at once on a thread pool, and writes each batch's
vectors back into the index range it came from, so output[i] always embeds
input[i] whatever order the batches finish in.

Each batch gets a bounded retry loop:
  - RateLimitedError / ProviderUnavailableError: back off and retry, up to
    max_attempts attempts in total
  - AuthError / ProviderInvalidInputError: fail at once
Any batch failure fails the whole call with EmbeddingFailedError; no partial
result is ever returned.
"""

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, Tuple

from ragcore.config import (
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_INITIAL_BACKOFF,
    EMBEDDING_MAX_ATTEMPTS,
    EMBEDDING_MAX_BACKOFF,
    EMBEDDING_MAX_CONCURRENCY,
)
from ragcore.embeddings.providers import EmbeddingProvider
from ragcore.errors import (
    DimensionMismatchError,
    EmbeddingFailedError,
    InvalidConfigError,
    ProviderError,
    RateLimitedError,
    RETRYABLE_PROVIDER_ERRORS,
)

logger = logging.getLogger(__name__)

ProviderLookup = Callable[[str], EmbeddingProvider]
Vector = List[float]


class EmbeddingClient:
    def __init__(
        self,
        resolve_provider: ProviderLookup,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        max_concurrency: int = EMBEDDING_MAX_CONCURRENCY,
        max_attempts: int = EMBEDDING_MAX_ATTEMPTS,
        initial_backoff: float = EMBEDDING_INITIAL_BACKOFF,
        max_backoff: float = EMBEDDING_MAX_BACKOFF,
    ):
        if max_attempts < 1:
            raise InvalidConfigError(f"max_attempts must be >= 1, got {max_attempts}")
        self._resolve_provider = resolve_provider
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff

    def resolve(self, provider_id: str) -> EmbeddingProvider:
        return self._resolve_provider(provider_id)

    def embed_batch(
        self,
        provider_id: str,
        texts: Sequence[str],
        batch_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> List[Vector]:
        """
        Embed texts with the provider registered as provider_id.

        Returns:
            One vector per input text, in input order, all of one dimension.

        Raises:
            InvalidConfigError: batch_size or max_concurrency < 1, unknown provider
            EmbeddingFailedError: any batch failed after its retries
            DimensionMismatchError: provider returned vectors of mixed dimension
        """
        batch_size = self.batch_size if batch_size is None else batch_size
        max_concurrency = self.max_concurrency if max_concurrency is None else max_concurrency
        if batch_size < 1:
            raise InvalidConfigError(f"batch_size must be >= 1, got {batch_size}")
        if max_concurrency < 1:
            raise InvalidConfigError(f"max_concurrency must be >= 1, got {max_concurrency}")

        texts = list(texts)
        if not texts:
            return []

        provider = self._resolve_provider(provider_id)
        batches: List[Tuple[int, List[str]]] = [
            (start, texts[start:start + batch_size]) for start in range(0, len(texts), batch_size)
        ]
        results: List[Optional[Vector]] = [None] * len(texts)

        logger.info(
            f"[embedding_client] Embedding {len(texts)} texts with {provider.identity} "
            f"({len(batches)} batches, concurrency {max_concurrency})"
        )

        workers = min(max_concurrency, len(batches))
        if workers == 1:
            for batch_no, (start, batch) in enumerate(batches, 1):
                results[start:start + len(batch)] = self._embed_with_retry(provider, batch, batch_no)
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as pool:
                futures = {
                    pool.submit(self._embed_with_retry, provider, batch, batch_no): (start, batch)
                    for batch_no, (start, batch) in enumerate(batches, 1)
                }
                done, pending = wait(futures, return_when=FIRST_EXCEPTION)
                for future in pending:
                    future.cancel()
                # Raise the first failure in batch order so errors are reproducible
                for future in sorted(done, key=lambda f: futures[f][0]):
                    if future.exception() is not None:
                        raise future.exception()
                for future, (start, batch) in futures.items():
                    results[start:start + len(batch)] = future.result()

        _check_uniform_dimension(results)
        return results

    def _embed_with_retry(self, provider: EmbeddingProvider, texts: List[str], batch_no: int) -> List[Vector]:
        backoff = self.initial_backoff
        last_error: Optional[ProviderError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                vectors = provider.embed(texts)
            except RETRYABLE_PROVIDER_ERRORS as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                delay = backoff
                if isinstance(e, RateLimitedError) and e.retry_after is not None:
                    delay = min(e.retry_after, self.max_backoff)
                logger.warning(
                    f"[embedding_client] Batch {batch_no} attempt {attempt}/{self.max_attempts} "
                    f"failed ({type(e).__name__}: {e}), backing off {delay:.2f}s"
                )
                time.sleep(delay)
                backoff = min(backoff * 2, self.max_backoff)
                continue
            except ProviderError as e:
                logger.error(f"[embedding_client] Batch {batch_no} failed, not retryable: {e}")
                raise EmbeddingFailedError(
                    f"Embedding batch {batch_no} failed: {e}", attempts=attempt, retryable=False
                ) from e

            if len(vectors) != len(texts):
                raise EmbeddingFailedError(
                    f"Provider returned {len(vectors)} vectors for {len(texts)} texts in batch {batch_no}",
                    attempts=attempt,
                )
            logger.debug(f"[embedding_client] Batch {batch_no} done on attempt {attempt}")
            return vectors

        error_msg = f"Embedding batch {batch_no} failed after {self.max_attempts} attempts: {last_error}"
        logger.error(f"[embedding_client] {error_msg}")
        raise EmbeddingFailedError(error_msg, attempts=self.max_attempts, retryable=True) from last_error


def _check_uniform_dimension(vectors: List[Vector]) -> None:
    if not vectors:
        return
    dim = len(vectors[0])
    if dim == 0:
        raise DimensionMismatchError("Provider returned an empty vector", expected=None, actual=0)
    for i, vec in enumerate(vectors):
        if len(vec) != dim:
            raise DimensionMismatchError(
                f"Vector {i} has dimension {len(vec)}, expected {dim}", expected=dim, actual=len(vec)
            )

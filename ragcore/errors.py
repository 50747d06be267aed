# FILE: ragcore/errors.py
"""
Exception hierarchy for the RAG pipeline.

Every failure raised by ragcore derives from RagError so callers can catch the
whole family at one seam, or pick out the specific condition they care about.
"""

from typing import Optional


class RagError(Exception):
    """Base exception for all RAG pipeline errors."""
    pass


# ============ CONFIGURATION / INPUT ============

class InvalidConfigError(RagError):
    """A tunable (chunk size, overlap, batch size, ...) is out of range."""
    pass


class UnknownProviderError(InvalidConfigError):
    """No embedding provider is registered under the requested id."""
    pass


class InvalidInputError(RagError):
    """Caller-supplied text, name, or parameter failed validation."""
    pass


class DimensionMismatchError(RagError):
    """Vectors of different dimensions were compared or mixed in one corpus."""

    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class EmbeddingFailedError(RagError):
    """An embed_batch call failed as a whole; no partial result is returned."""

    def __init__(self, message: str, attempts: int = 0, retryable: bool = False):
        super().__init__(message)
        self.attempts = attempts
        self.retryable = retryable


# ============ PROVIDER ============

class ProviderError(RagError):
    """Base for failures reported by an embedding provider."""
    pass


class AuthError(ProviderError):
    """Provider rejected the credentials. Never retried."""
    pass


class RateLimitedError(ProviderError):
    """Provider throttled the request. Retryable."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderInvalidInputError(ProviderError):
    """Provider refused the input itself. Never retried."""
    pass


class ProviderUnavailableError(ProviderError):
    """Provider unreachable, timed out, or returned a server error. Retryable."""
    pass


RETRYABLE_PROVIDER_ERRORS = (RateLimitedError, ProviderUnavailableError)


# ============ STORAGE ============

class StorageError(RagError):
    """Base for chunk store failures."""
    pass


class NotFoundError(StorageError):
    """Project, document, or chunk does not exist."""
    pass


class ConstraintViolationError(StorageError):
    """A write violated an integrity constraint."""
    pass


class StorageUnavailableError(StorageError):
    """The database could not be reached or stayed locked."""
    pass

# FILE: ragcore/config.py
"""
RAG pipeline configuration.

Centralised tunables. Every constant can be overridden through an environment
variable of the same name prefixed with RAG_. RagSettings bundles them for a
single service instance.
"""

import os
from dataclasses import dataclass

from ragcore.errors import InvalidConfigError


# =============================================================================
# CHUNKING
# =============================================================================

# Words per chunk window
CHUNK_SIZE = int(os.getenv("RAG_CHUNK_SIZE", "512"))

# Words shared between consecutive chunks
CHUNK_OVERLAP = int(os.getenv("RAG_CHUNK_OVERLAP", "50"))


# =============================================================================
# EMBEDDING
# =============================================================================

# Texts per provider call
EMBEDDING_BATCH_SIZE = int(os.getenv("RAG_EMBEDDING_BATCH_SIZE", "32"))

# Provider calls in flight at once
EMBEDDING_MAX_CONCURRENCY = int(os.getenv("RAG_EMBEDDING_MAX_CONCURRENCY", "4"))

# Total attempts per batch, first call included
EMBEDDING_MAX_ATTEMPTS = int(os.getenv("RAG_EMBEDDING_MAX_ATTEMPTS", "3"))

# Seconds; doubles after each retry up to the max
EMBEDDING_INITIAL_BACKOFF = float(os.getenv("RAG_EMBEDDING_INITIAL_BACKOFF", "0.5"))
EMBEDDING_MAX_BACKOFF = float(os.getenv("RAG_EMBEDDING_MAX_BACKOFF", "8.0"))

# Per provider call, seconds
EMBEDDING_TIMEOUT = float(os.getenv("RAG_EMBEDDING_TIMEOUT", "30.0"))

OPENAI_EMBEDDING_MODEL = os.getenv("RAG_OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
GEMINI_EMBEDDING_MODEL = os.getenv("RAG_GEMINI_EMBEDDING_MODEL", "models/text-embedding-004")
# retrieval_document or retrieval_query; one task type per provider instance
GEMINI_TASK_TYPE = os.getenv("RAG_GEMINI_TASK_TYPE", "retrieval_document")


# =============================================================================
# RETRIEVAL
# =============================================================================

DEFAULT_TOP_K = int(os.getenv("RAG_DEFAULT_TOP_K", "5"))
MAX_TOP_K = 100

# Threads used to score a project's chunks
RANK_WORKERS = int(os.getenv("RAG_RANK_WORKERS", str(os.cpu_count() or 1)))

# Below this many candidates per worker, ranking stays on the calling thread
RANK_MIN_PARTITION_SIZE = int(os.getenv("RAG_RANK_MIN_PARTITION_SIZE", "20000"))

# Re-rank defaults
RERANK_CANDIDATE_MULTIPLIER = 3
RERANK_DIVERSITY_PENALTY = 0.3

# Token budget for assembled prompt context
CONTEXT_MAX_TOKENS = int(os.getenv("RAG_CONTEXT_MAX_TOKENS", "4000"))


# =============================================================================
# INPUT LIMITS
# =============================================================================

MAX_DOCUMENT_CHARS = 10 * 1024 * 1024
MAX_QUERY_CHARS = 10_000
MAX_NAME_CHARS = 200


# =============================================================================
# STORAGE
# =============================================================================

DATABASE_URL = os.getenv("RAG_DATABASE_URL", "sqlite:///./data/rag.db")

# SQLite "database is locked" handling on writes
STORE_LOCK_MAX_RETRIES = int(os.getenv("RAG_STORE_LOCK_MAX_RETRIES", "5"))
STORE_LOCK_INITIAL_BACKOFF = 0.25
STORE_LOCK_MAX_BACKOFF = 4.0


@dataclass
class RagSettings:
    """Per-instance tunables for RagService. Defaults come from the module constants."""
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    batch_size: int = EMBEDDING_BATCH_SIZE
    max_concurrency: int = EMBEDDING_MAX_CONCURRENCY
    rank_workers: int = RANK_WORKERS
    rank_min_partition_size: int = RANK_MIN_PARTITION_SIZE

    def validate(self) -> "RagSettings":
        if self.chunk_size < 1:
            raise InvalidConfigError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise InvalidConfigError(
                f"chunk_overlap must be in [0, chunk_size), got {self.chunk_overlap} "
                f"with chunk_size {self.chunk_size}"
            )
        if self.batch_size < 1:
            raise InvalidConfigError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_concurrency < 1:
            raise InvalidConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.rank_workers < 1:
            raise InvalidConfigError(f"rank_workers must be >= 1, got {self.rank_workers}")
        if self.rank_min_partition_size < 1:
            raise InvalidConfigError(
                f"rank_min_partition_size must be >= 1, got {self.rank_min_partition_size}"
            )
        return self

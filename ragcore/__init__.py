# FILE: ragcore/__init__.py
"""
ragcore: project-scoped retrieval-augmented generation core.

Documents are chunked, embedded through a pluggable provider and stored per
project; queries are answered by exact cosine ranking over a project's chunks.
"""

from .chunking import chunk_text
from .config import RagSettings
from .context import AssembledContext, ContextAssembler, build_system_prompt
from .embeddings import EmbeddingClient, EmbeddingProvider, EmbeddingProviderRegistry, build_default_registry
from .ranking import cosine_similarity, rank, rerank_diverse
from .schemas import ChunkMatch, ChunkOut, DocumentOut, IngestResult, ProjectOut
from .service import RagService
from .store import ChunkStore

__version__ = "0.1.0"

__all__ = [
    "AssembledContext",
    "ChunkMatch",
    "ChunkOut",
    "ChunkStore",
    "ContextAssembler",
    "DocumentOut",
    "EmbeddingClient",
    "EmbeddingProvider",
    "EmbeddingProviderRegistry",
    "IngestResult",
    "ProjectOut",
    "RagService",
    "RagSettings",
    "build_default_registry",
    "build_system_prompt",
    "chunk_text",
    "cosine_similarity",
    "rank",
    "rerank_diverse",
]

# FILE: ragcore/service.py
"""
RAG orchestration: document ingestion and query-time retrieval.

Ingestion (write path):
    validate -> chunk -> embed all chunks in one call -> write document + chunks
Retrieval (read path):
    validate -> embed query -> load project vectors -> rank -> hydrate

The two paths share the embedding client and chunk store but never run
embedding and ranking in the same call.
"""

import logging
from typing import List, Optional

from ragcore.chunking import chunk_text
from ragcore.config import RERANK_CANDIDATE_MULTIPLIER, RERANK_DIVERSITY_PENALTY, RagSettings
from ragcore.embeddings.client import EmbeddingClient
from ragcore.errors import DimensionMismatchError, InvalidInputError
from ragcore.ranking import rank, rerank_diverse
from ragcore.schemas import ChunkMatch, ChunkOut, DocumentOut, IngestResult, NewChunk, ProjectOut
from ragcore.store.service import ChunkStore
from ragcore.validation import (
    validate_document_content,
    validate_name,
    validate_provider_id,
    validate_query,
    validate_top_k,
)

logger = logging.getLogger(__name__)


class RagService:
    def __init__(self, store: ChunkStore, embeddings: EmbeddingClient, settings: Optional[RagSettings] = None):
        self.store = store
        self.embeddings = embeddings
        self.settings = (settings or RagSettings()).validate()

    # ============ INGESTION ============

    def ingest_document(
        self,
        project_id: int,
        name: str,
        text: str,
        embedding_provider_id: str,
        source_path: Optional[str] = None,
    ) -> IngestResult:
        """
        Chunk, embed and store a document.

        Nothing is written unless every chunk was embedded; the document and
        its chunks are then stored in a single transaction.

        Raises:
            InvalidInputError: bad name, empty or oversized text, missing provider id
            NotFoundError: project does not exist
            EmbeddingFailedError: provider failed after retries
            DimensionMismatchError: vectors differ from the project's dimension
            StorageError: persistence failed
        """
        validate_name(name, "Document name")
        validate_document_content(text)
        validate_provider_id(embedding_provider_id)

        project = self.store.get_project(project_id)

        texts = chunk_text(text, self.settings.chunk_size, self.settings.chunk_overlap)
        if not texts:
            raise InvalidInputError("Document content produced no chunks")

        logger.info(
            f"[rag.ingest] Document {name!r} -> {len(texts)} chunks for project {project_id}"
        )

        vectors = self.embeddings.embed_batch(
            embedding_provider_id,
            texts,
            batch_size=self.settings.batch_size,
            max_concurrency=self.settings.max_concurrency,
        )

        dim = len(vectors[0])
        if project.embedding_dim is not None and project.embedding_dim != dim:
            raise DimensionMismatchError(
                f"Project {project_id} stores {project.embedding_dim}-dim vectors, "
                f"provider {embedding_provider_id!r} produced {dim}",
                expected=project.embedding_dim,
                actual=dim,
            )

        identity = self.embeddings.resolve(embedding_provider_id).identity
        chunks = [
            NewChunk(chunk_index=i, content=chunk, embedding=vec)
            for i, (chunk, vec) in enumerate(zip(texts, vectors))
        ]

        document_id = self.store.put_document_with_chunks(
            project_id, name, text, chunks, identity, source_path=source_path
        )

        logger.info(f"[rag.ingest] Stored document {document_id} ({len(chunks)} chunks)")
        return IngestResult(document_id=document_id, chunk_count=len(chunks))

    # ============ RETRIEVAL ============

    def _embed_query(self, project: ProjectOut, query_text: str, embedding_provider_id: str) -> List[float]:
        provider = self.embeddings.resolve(embedding_provider_id)
        if project.embedding_provider and project.embedding_provider != provider.identity:
            logger.warning(
                f"[rag.retrieve] Project {project.id} was embedded with {project.embedding_provider}, "
                f"querying with {provider.identity}"
            )
        return self.embeddings.embed_batch(embedding_provider_id, [query_text], batch_size=1, max_concurrency=1)[0]

    def _rank(self, query_vector: List[float], project_id: int, top_k: int):
        candidates = self.store.get_all_chunk_vectors(project_id)
        if not candidates:
            return []
        return rank(
            query_vector,
            candidates,
            top_k,
            workers=self.settings.rank_workers,
            min_partition_size=self.settings.rank_min_partition_size,
        )

    def retrieve(
        self,
        project_id: int,
        query_text: str,
        top_k: int,
        embedding_provider_id: str,
    ) -> List[ChunkMatch]:
        """
        Top-k chunks of a project by cosine similarity to query_text.

        Returns an empty list for a project with no chunks.

        Raises:
            InvalidInputError: empty or oversized query, top_k out of range
            NotFoundError: project does not exist
            EmbeddingFailedError: query embedding failed
            DimensionMismatchError: query dimension differs from the corpus
        """
        validate_query(query_text)
        validate_top_k(top_k)
        validate_provider_id(embedding_provider_id)

        project = self.store.get_project(project_id)
        query_vector = self._embed_query(project, query_text, embedding_provider_id)

        ranked = self._rank(query_vector, project_id, top_k)
        if not ranked:
            logger.info(f"[rag.retrieve] Project {project_id} has no chunks")
            return []

        matches = self._hydrate(ranked)
        logger.info(f"[rag.retrieve] {len(matches)} matches for project {project_id}")
        return matches

    def retrieve_diverse(
        self,
        project_id: int,
        query_text: str,
        top_k: int,
        embedding_provider_id: str,
        candidate_multiplier: int = RERANK_CANDIDATE_MULTIPLIER,
        diversity_penalty: float = RERANK_DIVERSITY_PENALTY,
    ) -> List[ChunkMatch]:
        """
        Like retrieve, but re-ranks top_k * candidate_multiplier candidates to
        avoid returning near-duplicate chunks.
        """
        validate_query(query_text)
        validate_top_k(top_k)
        validate_provider_id(embedding_provider_id)
        if candidate_multiplier < 1:
            raise InvalidInputError(f"candidate_multiplier must be >= 1, got {candidate_multiplier}")

        project = self.store.get_project(project_id)
        query_vector = self._embed_query(project, query_text, embedding_provider_id)

        ranked = self._rank(query_vector, project_id, top_k * candidate_multiplier)
        if not ranked:
            return []

        hydrated = {m.chunk.id: m for m in self._hydrate(ranked)}
        reranked = rerank_diverse(
            [(cid, m.similarity, m.chunk.embedding) for cid, m in hydrated.items()],
            top_k,
            diversity_penalty=diversity_penalty,
        )
        return [hydrated[cid] for cid, _ in reranked]

    def _hydrate(self, ranked) -> List[ChunkMatch]:
        scores = dict(ranked)
        chunks: List[ChunkOut] = self.store.hydrate_chunks([cid for cid, _ in ranked])
        return [
            ChunkMatch(chunk=chunk, similarity=scores[chunk.id], document_name=chunk.document_name)
            for chunk in chunks
        ]

    # ============ CORPUS MANAGEMENT ============

    def create_project(self, name: str) -> ProjectOut:
        validate_name(name, "Project name")
        return self.store.create_project(name.strip())

    def list_projects(self) -> List[ProjectOut]:
        return self.store.list_projects()

    def delete_project(self, project_id: int) -> None:
        self.store.delete_project(project_id)

    def list_documents(self, project_id: int) -> List[DocumentOut]:
        return self.store.list_documents(project_id)

    def delete_document(self, document_id: int) -> None:
        self.store.delete_document(document_id)

# FILE: ragcore/store/service.py
"""
Chunk store: durable Project / Document / Chunk records over SQLAlchemy.

Every public method runs in its own session and transaction. Writes retry
SQLite "database is locked" errors with exponential backoff; everything else
is translated into the StorageError family:

  IntegrityError   -> ConstraintViolationError
  OperationalError -> StorageUnavailableError
"""

import json
import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ragcore.config import STORE_LOCK_INITIAL_BACKOFF, STORE_LOCK_MAX_BACKOFF, STORE_LOCK_MAX_RETRIES
from ragcore.errors import ConstraintViolationError, NotFoundError, StorageUnavailableError
from ragcore.schemas import ChunkOut, DocumentOut, NewChunk, ProjectOut
from ragcore.store.models import Chunk, Document, Project

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_sqlite_lock_error(exc: Exception) -> bool:
    error_str = str(exc).lower()
    return "database is locked" in error_str or "database_is_locked" in error_str


def _document_out(doc: Document, include_content: bool = False) -> DocumentOut:
    out = DocumentOut.model_validate(doc)
    if not include_content:
        out.content = None
    return out


class ChunkStore:
    def __init__(self, session_factory: sessionmaker, lock_max_retries: int = STORE_LOCK_MAX_RETRIES):
        self._session_factory = session_factory
        self.lock_max_retries = lock_max_retries

    # ============ SESSION HANDLING ============

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConstraintViolationError(str(e.orig)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _read(self, fn: Callable[[Session], T]) -> T:
        try:
            with self._session() as db:
                return fn(db)
        except OperationalError as e:
            raise StorageUnavailableError(str(e.orig)) from e

    def _write(self, op_name: str, fn: Callable[[Session], T]) -> T:
        backoff = STORE_LOCK_INITIAL_BACKOFF
        last_error: Optional[OperationalError] = None

        for attempt in range(1, self.lock_max_retries + 1):
            try:
                with self._session() as db:
                    return fn(db)
            except OperationalError as e:
                if not _is_sqlite_lock_error(e):
                    raise StorageUnavailableError(str(e.orig)) from e
                last_error = e
                logger.warning(
                    f"[chunk_store] SQLite lock during {op_name} on attempt "
                    f"{attempt}/{self.lock_max_retries}, backing off {backoff:.2f}s"
                )
                time.sleep(backoff)
                backoff = min(backoff * 2, STORE_LOCK_MAX_BACKOFF)

        error_msg = f"SQLite lock persisted through {op_name} after {self.lock_max_retries} attempts"
        logger.error(f"[chunk_store] {error_msg}")
        raise StorageUnavailableError(error_msg) from last_error

    # ============ PROJECTS ============

    def create_project(self, name: str) -> ProjectOut:
        def op(db: Session) -> ProjectOut:
            project = Project(name=name)
            db.add(project)
            db.flush()
            return ProjectOut.model_validate(project)

        project = self._write("create_project", op)
        logger.info(f"[chunk_store] Created project {project.id} ({name!r})")
        return project

    def get_project(self, project_id: int) -> ProjectOut:
        def op(db: Session) -> ProjectOut:
            project = db.get(Project, project_id)
            if project is None:
                raise NotFoundError(f"Project {project_id} not found")
            return ProjectOut.model_validate(project)

        return self._read(op)

    def list_projects(self) -> List[ProjectOut]:
        return self._read(
            lambda db: [
                ProjectOut.model_validate(p)
                for p in db.query(Project).order_by(Project.created_at.desc(), Project.id.desc()).all()
            ]
        )

    def delete_project(self, project_id: int) -> None:
        def op(db: Session) -> Tuple[int, int]:
            project = db.get(Project, project_id)
            if project is None:
                raise NotFoundError(f"Project {project_id} not found")
            chunk_count = db.query(Chunk).filter(Chunk.project_id == project_id).delete(synchronize_session=False)
            doc_count = db.query(Document).filter(Document.project_id == project_id).delete(synchronize_session=False)
            db.delete(project)
            return doc_count, chunk_count

        doc_count, chunk_count = self._write("delete_project", op)
        logger.info(
            f"[chunk_store] Deleted project {project_id} with {doc_count} documents, {chunk_count} chunks"
        )

    # ============ DOCUMENTS ============

    def put_document(self, project_id: int, name: str, text: str, source_path: Optional[str] = None) -> int:
        """Insert a document record (no chunks yet) and return its id."""
        def op(db: Session) -> int:
            if db.get(Project, project_id) is None:
                raise NotFoundError(f"Project {project_id} not found")
            doc = Document(project_id=project_id, name=name, content=text, source_path=source_path)
            db.add(doc)
            db.flush()
            return doc.id

        return self._write("put_document", op)

    def get_document(self, document_id: int, include_content: bool = False) -> DocumentOut:
        def op(db: Session) -> DocumentOut:
            doc = db.get(Document, document_id)
            if doc is None:
                raise NotFoundError(f"Document {document_id} not found")
            return _document_out(doc, include_content)

        return self._read(op)

    def list_documents(self, project_id: int) -> List[DocumentOut]:
        def op(db: Session) -> List[DocumentOut]:
            if db.get(Project, project_id) is None:
                raise NotFoundError(f"Project {project_id} not found")
            docs = (
                db.query(Document)
                .filter(Document.project_id == project_id)
                .order_by(Document.created_at.desc(), Document.id.desc())
                .all()
            )
            return [_document_out(d) for d in docs]

        return self._read(op)

    def delete_document(self, document_id: int) -> None:
        """Delete a document and all of its chunks."""
        def op(db: Session) -> int:
            doc = db.get(Document, document_id)
            if doc is None:
                raise NotFoundError(f"Document {document_id} not found")
            removed = db.query(Chunk).filter(Chunk.document_id == document_id).delete(synchronize_session=False)
            db.delete(doc)
            return removed

        removed = self._write("delete_document", op)
        logger.info(f"[chunk_store] Deleted document {document_id} and {removed} chunks")

    # ============ CHUNKS ============

    @staticmethod
    def _check_chunks(chunks: Sequence[NewChunk]) -> int:
        """Validate ordinals and vector dimension; return the dimension."""
        if not chunks:
            raise ConstraintViolationError("A document needs at least one chunk")
        ordinals = sorted(c.chunk_index for c in chunks)
        if ordinals != list(range(len(chunks))):
            raise ConstraintViolationError(f"Chunk ordinals must be 0..{len(chunks) - 1}, got {ordinals}")
        dim = len(chunks[0].embedding)
        if dim == 0 or any(len(c.embedding) != dim for c in chunks):
            raise ConstraintViolationError("All chunk embeddings must share one non-zero dimension")
        return dim

    @staticmethod
    def _add_chunks(db: Session, doc: Document, chunks: Sequence[NewChunk], dim: int, embedding_provider: str) -> None:
        project = db.get(Project, doc.project_id)
        if project.embedding_dim is None:
            project.embedding_dim = dim
            project.embedding_provider = embedding_provider
        elif project.embedding_dim != dim:
            raise ConstraintViolationError(
                f"Project {project.id} stores {project.embedding_dim}-dim vectors, got {dim}"
            )

        db.add_all(
            Chunk(
                document_id=doc.id,
                project_id=doc.project_id,
                chunk_index=c.chunk_index,
                content=c.content,
                embedding=json.dumps(c.embedding),
                embedding_dim=dim,
            )
            for c in chunks
        )
        doc.chunk_count = len(chunks)
        db.flush()

    def put_document_with_chunks(
        self,
        project_id: int,
        name: str,
        text: str,
        chunks: Sequence[NewChunk],
        embedding_provider: str,
        source_path: Optional[str] = None,
    ) -> int:
        """
        Insert a document and all of its chunks in one transaction.

        Readers see either the document with its full chunk set or nothing.

        Returns:
            The new document id.

        Raises:
            NotFoundError: project does not exist
            ConstraintViolationError: bad ordinals or dimension mismatch
        """
        dim = self._check_chunks(chunks)

        def op(db: Session) -> int:
            if db.get(Project, project_id) is None:
                raise NotFoundError(f"Project {project_id} not found")
            doc = Document(project_id=project_id, name=name, content=text, source_path=source_path)
            db.add(doc)
            db.flush()
            self._add_chunks(db, doc, chunks, dim, embedding_provider)
            return doc.id

        document_id = self._write("put_document_with_chunks", op)
        logger.info(f"[chunk_store] Stored document {document_id} with {len(chunks)} chunks")
        return document_id

    def put_chunks(self, document_id: int, chunks: Sequence[NewChunk], embedding_provider: str) -> int:
        """
        Write all chunks of an existing document in one transaction.

        chunk_index values must be exactly 0..n-1 and the document must have no
        chunks yet. The first write to a project records its embedding provider
        and dimension; later writes must use the same dimension.

        Returns:
            Number of chunks written.

        Raises:
            NotFoundError: document does not exist
            ConstraintViolationError: bad ordinals, existing chunks, or dimension mismatch
        """
        dim = self._check_chunks(chunks)

        def op(db: Session) -> int:
            doc = db.get(Document, document_id)
            if doc is None:
                raise NotFoundError(f"Document {document_id} not found")
            if db.query(Chunk.id).filter(Chunk.document_id == document_id).first() is not None:
                raise ConstraintViolationError(f"Document {document_id} already has chunks")
            self._add_chunks(db, doc, chunks, dim, embedding_provider)
            return len(chunks)

        written = self._write("put_chunks", op)
        logger.info(f"[chunk_store] Stored {written} chunks for document {document_id}")
        return written

    def get_all_chunk_vectors(self, project_id: int) -> List[Tuple[int, List[float]]]:
        """(chunk_id, vector) for every chunk in the project, ordered by chunk id."""
        def op(db: Session) -> List[Tuple[int, List[float]]]:
            rows = (
                db.query(Chunk.id, Chunk.embedding)
                .filter(Chunk.project_id == project_id)
                .order_by(Chunk.id)
                .all()
            )
            return [(chunk_id, json.loads(embedding)) for chunk_id, embedding in rows]

        return self._read(op)

    def count_chunks(self, project_id: int) -> int:
        return self._read(lambda db: db.query(Chunk).filter(Chunk.project_id == project_id).count())

    def hydrate_chunks(self, chunk_ids: Sequence[int]) -> List[ChunkOut]:
        """
        Load full chunk records, in the order of chunk_ids.

        Ids that no longer exist (deleted since ranking) are skipped.
        """
        if not chunk_ids:
            return []

        def op(db: Session) -> Dict[int, ChunkOut]:
            rows = (
                db.query(Chunk, Document.name)
                .join(Document, Chunk.document_id == Document.id)
                .filter(Chunk.id.in_(list(chunk_ids)))
                .all()
            )
            return {
                chunk.id: ChunkOut(
                    id=chunk.id,
                    document_id=chunk.document_id,
                    project_id=chunk.project_id,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    embedding=json.loads(chunk.embedding),
                    document_name=doc_name,
                )
                for chunk, doc_name in rows
            }

        by_id = self._read(op)
        missing = [cid for cid in chunk_ids if cid not in by_id]
        if missing:
            logger.debug(f"[chunk_store] Skipped {len(missing)} chunk ids that no longer exist")
        return [by_id[cid] for cid in chunk_ids if cid in by_id]

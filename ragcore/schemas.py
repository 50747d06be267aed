# FILE: ragcore/schemas.py
"""
Pydantic schemas for values returned by the store and the RAG service.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    embedding_provider: Optional[str] = None
    embedding_dim: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class DocumentOut(BaseModel):
    """Document metadata. Raw content is left out; fetch it with get_document(include_content=True)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    name: str
    source_path: Optional[str] = None
    chunk_count: int
    created_at: datetime
    content: Optional[str] = None


class NewChunk(BaseModel):
    """Chunk to be written by put_chunks."""
    chunk_index: int = Field(ge=0)
    content: str
    embedding: List[float]


class ChunkOut(BaseModel):
    """Hydrated chunk: text, vector, and owning document's name."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    document_id: int
    project_id: int
    chunk_index: int
    content: str
    embedding: List[float]
    document_name: str


class ChunkMatch(BaseModel):
    """Single retrieval result."""
    chunk: ChunkOut
    similarity: float = Field(ge=-1.0, le=1.0)  # Cosine similarity
    document_name: str


class IngestResult(BaseModel):
    document_id: int
    chunk_count: int

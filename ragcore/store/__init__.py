# FILE: ragcore/store/__init__.py
"""
Persistent chunk store.
"""

from .models import Chunk, Document, Project
from .service import ChunkStore

__all__ = ["Chunk", "ChunkStore", "Document", "Project"]

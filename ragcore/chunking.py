# FILE: ragcore/chunking.py
"""
Word-window chunker.

Splits text on whitespace into tokens and emits fixed-size windows that
advance by (chunk_size - overlap) tokens. The last window is truncated, never
padded. Output depends only on the input and the two parameters.
"""

import math
from typing import List

from ragcore.config import CHUNK_OVERLAP, CHUNK_SIZE
from ragcore.errors import InvalidConfigError


def split_tokens(text: str) -> List[str]:
    """Whitespace-delimited tokens. Empty for None or blank text."""
    if not text:
        return []
    return text.split()


def _check_params(chunk_size: int, overlap: int) -> None:
    if chunk_size < 1:
        raise InvalidConfigError(f"chunk_size must be >= 1, got {chunk_size}")
    if overlap < 0:
        raise InvalidConfigError(f"overlap must be >= 0, got {overlap}")
    if overlap >= chunk_size:
        raise InvalidConfigError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def estimate_chunk_count(token_count: int, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> int:
    """Number of chunks chunk_text produces for token_count tokens."""
    _check_params(chunk_size, overlap)
    if token_count <= 0:
        return 0
    step = chunk_size - overlap
    return max(1, math.ceil((token_count - overlap) / step))


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> List[str]:
    """
    Split text into overlapping word windows.

    Args:
        text: Source text
        chunk_size: Tokens per window
        overlap: Tokens shared by consecutive windows, must be < chunk_size

    Returns:
        Chunk texts in document order, tokens joined by single spaces.
        Empty list for empty or whitespace-only text.

    Raises:
        InvalidConfigError: if chunk_size < 1 or overlap not in [0, chunk_size)
    """
    _check_params(chunk_size, overlap)

    tokens = split_tokens(text)
    if not tokens:
        return []

    step = chunk_size - overlap
    chunks = []
    start = 0
    while True:
        end = min(start + chunk_size, len(tokens))
        chunks.append(" ".join(tokens[start:end]))
        if end >= len(tokens):
            break
        start += step

    return chunks

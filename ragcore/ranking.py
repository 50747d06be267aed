# FILE: ragcore/ranking.py
"""
Exact cosine-similarity ranking.

rank() scores every candidate against the query and returns the top-k,
ordered by score descending with ties broken by ascending id. Large candidate
sets are cut into contiguous partitions scored on a thread pool (the numpy
kernel releases the GIL); each partition keeps its own top-k and the sorted
partition lists are merged. Per-row scoring does not depend on how rows are
partitioned, so the result is identical to ranking on one thread.
"""

import heapq
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np

from ragcore.config import (
    RANK_MIN_PARTITION_SIZE,
    RANK_WORKERS,
    RERANK_DIVERSITY_PENALTY,
)
from ragcore.errors import DimensionMismatchError, InvalidInputError

logger = logging.getLogger(__name__)

Candidate = Tuple[Hashable, Sequence[float]]
Scored = Tuple[Hashable, float]


def _order_key(item: Scored):
    return (-item[1], item[0])


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, in [-1, 1].

    Zero-norm input scores 0. Vectors of different length raise
    DimensionMismatchError.
    """
    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(
            f"Cannot compare {len(vec_a)}-dim and {len(vec_b)}-dim vectors",
            expected=len(vec_a),
            actual=len(vec_b),
        )

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return max(-1.0, min(1.0, dot_product / (norm_a * norm_b)))


def _score_rows(matrix: np.ndarray, query: np.ndarray, query_norm: float) -> np.ndarray:
    # Row-wise reductions so a row's score never depends on its neighbours
    dots = (matrix * query).sum(axis=1)
    norms = np.sqrt((matrix * matrix).sum(axis=1))
    denom = norms * query_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denom > 0, dots / denom, 0.0)
    return np.clip(scores, -1.0, 1.0)


def _partition_top_k(
    ids: Sequence[Hashable],
    vectors: Sequence[Sequence[float]],
    query: np.ndarray,
    query_norm: float,
    top_k: int,
) -> List[Scored]:
    matrix = np.asarray(vectors, dtype=np.float64)
    scores = _score_rows(matrix, query, query_norm)

    n = len(scores)
    if top_k < n:
        # Keep everything tied with the k-th best so the id tie-break stays exact
        kth_best = np.partition(scores, n - top_k)[n - top_k]
        keep = np.nonzero(scores >= kth_best)[0]
    else:
        keep = range(n)

    picked = [(ids[i], float(scores[i])) for i in keep]
    picked.sort(key=_order_key)
    return picked[:top_k]


def _partition_bounds(n: int, workers: int, min_partition_size: int) -> List[Tuple[int, int]]:
    parts = max(1, min(workers, n // min_partition_size))
    size, extra = divmod(n, parts)
    bounds = []
    start = 0
    for i in range(parts):
        end = start + size + (1 if i < extra else 0)
        bounds.append((start, end))
        start = end
    return bounds


def rank(
    query_vector: Sequence[float],
    candidates: Sequence[Candidate],
    top_k: int,
    workers: Optional[int] = None,
    min_partition_size: Optional[int] = None,
) -> List[Scored]:
    """
    Top-k candidates by cosine similarity to query_vector.

    Args:
        query_vector: Query embedding
        candidates: (id, vector) pairs; ids must be mutually comparable
        top_k: Number of results wanted, >= 1
        workers: Max scoring threads (default RANK_WORKERS)
        min_partition_size: Fewest candidates worth a thread of their own

    Returns:
        min(top_k, len(candidates)) (id, score) pairs, score descending,
        ties by ascending id.

    Raises:
        InvalidInputError: top_k < 1
        DimensionMismatchError: any candidate differs from the query's dimension
    """
    if top_k < 1:
        raise InvalidInputError(f"top_k must be >= 1, got {top_k}")
    if not candidates:
        return []

    dim = len(query_vector)
    for cid, vec in candidates:
        if len(vec) != dim:
            raise DimensionMismatchError(
                f"Chunk {cid} has dimension {len(vec)}, query has {dim}",
                expected=dim,
                actual=len(vec),
            )

    workers = RANK_WORKERS if workers is None else workers
    min_partition_size = RANK_MIN_PARTITION_SIZE if min_partition_size is None else min_partition_size

    query = np.asarray(query_vector, dtype=np.float64)
    query_norm = float(np.sqrt((query * query).sum()))

    ids = [cid for cid, _ in candidates]
    vectors = [vec for _, vec in candidates]
    bounds = _partition_bounds(len(candidates), max(1, workers), max(1, min_partition_size))

    if len(bounds) == 1:
        return _partition_top_k(ids, vectors, query, query_norm, top_k)

    logger.debug(f"[ranking] Scoring {len(candidates)} candidates in {len(bounds)} partitions")
    with ThreadPoolExecutor(max_workers=len(bounds), thread_name_prefix="rank") as pool:
        partials = list(
            pool.map(
                lambda b: _partition_top_k(ids[b[0]:b[1]], vectors[b[0]:b[1]], query, query_norm, top_k),
                bounds,
            )
        )

    return list(islice(heapq.merge(*partials, key=_order_key), top_k))


def rerank_diverse(
    candidates: Sequence[Tuple[Hashable, float, Sequence[float]]],
    top_k: int,
    diversity_penalty: float = RERANK_DIVERSITY_PENALTY,
) -> List[Scored]:
    """
    Greedy diversity-aware re-ranking.

    candidates are (id, relevance, vector) triples, best first. The top
    candidate is always kept; each further pick maximises
    relevance - diversity_penalty * (highest similarity to anything already picked).
    Similarity below zero counts as no redundancy. With no more than top_k
    candidates there is nothing to choose between and relevance order is kept.

    Returns:
        (id, relevance) pairs in pick order, at most top_k of them.
    """
    if top_k < 1:
        raise InvalidInputError(f"top_k must be >= 1, got {top_k}")
    remaining = sorted(candidates, key=lambda c: (-c[1], c[0]))
    if len(remaining) <= top_k:
        return [(cid, relevance) for cid, relevance, _ in remaining]

    selected = [remaining.pop(0)]
    while remaining and len(selected) < top_k:
        best_index = 0
        best_score = -math.inf
        for i, (_, relevance, vec) in enumerate(remaining):
            redundancy = max(0.0, max(cosine_similarity(vec, chosen[2]) for chosen in selected))
            adjusted = relevance - diversity_penalty * redundancy
            if adjusted > best_score:
                best_score = adjusted
                best_index = i
        selected.append(remaining.pop(best_index))

    return [(cid, relevance) for cid, relevance, _ in selected]

"""
Similarity Ranker

Cosine similarity and top-K ranking over embedding vectors.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatch


@dataclass
class RankedItem:
    """A candidate payload with its similarity to the query"""
    score: float
    payload: Any


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatch: if the vectors differ in length
    """
    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)

    if v1.shape != v2.shape:
        raise DimensionMismatch(v1.size, v2.size)

    norm1 = np.linalg.norm(v1)
    norm2 = np.linalg.norm(v2)
    if norm1 == 0.0 or norm2 == 0.0:
        return 0.0

    return float(np.dot(v1, v2) / (norm1 * norm2))


def batch_cosine_similarity(
    query_vec: Sequence[float],
    vectors: Sequence[Sequence[float]],
) -> List[float]:
    """
    Compute cosine similarity between a query and multiple vectors.

    Zero-magnitude rows (or a zero query) score 0.0.
    """
    if len(vectors) == 0:
        return []

    for vector in vectors:
        if len(vector) != len(query_vec):
            raise DimensionMismatch(len(query_vec), len(vector))

    query = np.asarray(query_vec, dtype=np.float64)
    matrix = np.asarray(vectors, dtype=np.float64)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query

    scores = np.zeros_like(dots)
    nonzero = norms > 0
    scores[nonzero] = dots[nonzero] / norms[nonzero]
    return scores.tolist()


def top_k(
    query_vec: Sequence[float],
    candidates: Iterable[Tuple[Sequence[float], Any]],
    k: int,
) -> List[RankedItem]:
    """
    Rank (vector, payload) candidates by similarity to the query.

    Sorted descending by score and truncated to k. Ties keep the
    candidates' original relative order.
    """
    if k <= 0:
        return []

    candidates = list(candidates)
    scores = batch_cosine_similarity(query_vec, [vector for vector, _ in candidates])
    ranked = [
        RankedItem(score=score, payload=payload)
        for score, (_, payload) in zip(scores, candidates)
    ]
    # sorted() is stable, including with reverse=True
    ranked = sorted(ranked, key=lambda r: r.score, reverse=True)
    return ranked[:k]

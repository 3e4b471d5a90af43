"""Cosine similarity helpers.

A zero-magnitude vector has similarity 0 with everything, rather than NaN,
and so does a vector holding NaN.
Results are clipped to [-1, 1] to absorb floating-point overshoot.
"""

import math
from typing import Sequence

import numpy as np

from errors import DimensionMismatchError


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity of two vectors of equal length."""
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(a.shape[0], b.shape[0])

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0
    return float(np.clip(np.nan_to_num(np.dot(a, b) / denominator), -1.0, 1.0))


def cosine_similarities(
    query: Sequence[float], matrix: np.ndarray
) -> np.ndarray:
    """Cosine similarity of one query vector against each row of a matrix.

    Rows with zero or non-finite magnitude (and everything, for such a
    query) score 0.
    """
    q = np.asarray(query, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.shape[1] != q.shape[0]:
        raise DimensionMismatchError(q.shape[0], matrix.shape[1])

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    scores = np.zeros_like(dots)
    valid = (norms > 0) & np.isfinite(norms)
    scores[valid] = dots[valid] / norms[valid]
    return np.clip(np.nan_to_num(scores), -1.0, 1.0)


def to_relevance(similarity: float) -> float:
    """Map a cosine similarity onto a [0, 1] relevance score.

    Negative similarity carries no relevance, so it is clamped to 0. NaN
    also maps to 0.
    """
    if math.isnan(similarity):
        return 0.0
    return float(min(max(similarity, 0.0), 1.0))

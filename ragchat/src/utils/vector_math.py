"""
RagChat - Vector Math
======================
Pure-Python helpers shared by the vector index and the semantic cache.

The corpus is small and fully resident, so a linear scan with plain
floats is fast enough; no numeric library is needed.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from ragchat.src.core.exceptions import VectorDimensionError

Vector = list[float]


def l2_norm(vec: Sequence[float]) -> float:
    """Euclidean length of *vec*."""
    return math.sqrt(sum(v * v for v in vec))


def l2_normalize(vec: Sequence[float]) -> Vector:
    """
    Scale *vec* to unit length.

    A zero vector is returned unchanged (as a list of zeros) rather than
    producing NaNs.
    """
    norm = l2_norm(vec)
    if norm == 0:
        return [0.0 for _ in vec]
    return [v / norm for v in vec]


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector.
        vec_b: Second vector.

    Returns:
        Similarity in ``[-1, 1]``.  If either vector has zero norm the
        similarity is defined as ``0.0``.

    Raises:
        VectorDimensionError: If the vectors have different lengths.
    """
    if len(vec_a) != len(vec_b):
        raise VectorDimensionError(len(vec_a), len(vec_b))

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude = l2_norm(vec_a) * l2_norm(vec_b)

    if magnitude == 0:
        return 0.0
    return dot_product / magnitude

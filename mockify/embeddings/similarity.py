"""Cosine similarity helpers shared by the embedders and the exact vector index."""

from typing import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from mockify.exceptions import DimensionMismatch


def check_dimension(vector: Sequence[float], dimension: int) -> None:
    """Raise DimensionMismatch unless ``vector`` has exactly ``dimension`` entries."""
    if len(vector) != dimension:
        raise DimensionMismatch(expected=dimension, actual=len(vector))


def cosine_scores(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of one query vector against each row of ``matrix``.

    Zero vectors score 0.0. Scores are clipped to [-1, 1] to absorb
    floating-point overshoot (identical vectors can come out as 1.0000000002).
    """
    if matrix.shape[0] == 0:
        return np.empty(0)
    query_row = np.asarray(query, dtype=np.float64).reshape(1, -1)
    scores = cosine_similarity(query_row, matrix)[0]
    return np.clip(scores, -1.0, 1.0)


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity between two vectors of equal length."""
    check_dimension(b, len(a))
    return float(cosine_scores(a, np.asarray([b], dtype=np.float64))[0])

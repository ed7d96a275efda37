"""Cosine similarity ranking over in-memory block embeddings."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

# (block_id, start_line, vector)
IndexEntry = Tuple[str, int, Sequence[float]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|), or 0.0 for empty, mismatched or zero vectors."""
    left = _as_vector(a)
    right = _as_vector(b)
    if left.size == 0 or left.shape != right.shape:
        return 0.0
    norm = float(np.linalg.norm(left)) * float(np.linalg.norm(right))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0
    score = float(np.dot(left, right)) / norm
    return float(np.clip(score, -1.0, 1.0))


class SimilarityIndex:
    """Stateless cosine ranking of block vectors against a query vector."""

    def rank(
        self,
        query: Sequence[float],
        entries: Iterable[IndexEntry],
        *,
        top_k: Optional[int] = None,
    ) -> List[Tuple[str, float]]:
        """Rank entries by score desc; ties by start_line asc, then block_id."""
        if top_k is not None and top_k < 1:
            raise ValueError("top_k must be >= 1")

        scored = [
            (block_id, start_line, cosine_similarity(query, vector))
            for block_id, start_line, vector in entries
        ]
        scored.sort(key=lambda item: (-item[2], item[1], item[0]))
        if top_k is not None:
            scored = scored[:top_k]
        return [(block_id, score) for block_id, _, score in scored]


def _as_vector(values: Sequence[float]) -> np.ndarray:
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        vector = vector.reshape(-1)
    return vector


__all__ = ["IndexEntry", "SimilarityIndex", "cosine_similarity"]

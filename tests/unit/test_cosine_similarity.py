from __future__ import annotations

import math

import numpy as np
import pytest

from retrieval.engines.cosine import SimilarityIndex, cosine_similarity


def test_cosine_similarity_basic_values() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 1.0], [1.0, 0.0]) == pytest.approx(1 / math.sqrt(2))


def test_cosine_similarity_degenerate_inputs_score_zero() -> None:
    assert cosine_similarity([], []) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([float("nan"), 1.0], [1.0, 1.0]) == 0.0


def test_cosine_similarity_stays_in_bounds() -> None:
    vector = [1e-3, 3.0, 7.5]
    score = cosine_similarity(vector, vector)
    assert -1.0 <= score <= 1.0


def test_cosine_similarity_of_a_vector_with_itself_is_one() -> None:
    for vector in ([3.0, 4.0], [1e-3, 3.0, 7.5], [-2.0, 0.5, 10.0, 7.0]):
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ([1.0, 2.0, 3.0], [3.0, -1.0, 0.5]),
        ([0.2, 0.0], [5.0, 5.0]),
        ([-1.0, 4.0, 2.0], [-1.0, 4.0, 2.5]),
    ],
)
def test_cosine_similarity_is_symmetric(a, b) -> None:
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_similarity_index_orders_by_score_then_start_line() -> None:
    index = SimilarityIndex()
    entries = [
        ("b", 10, [1.0, 0.0]),
        ("a", 5, [1.0, 0.0]),
        ("c", 1, [0.0, 1.0]),
        ("d", 2, [1.0, 1.0]),
    ]
    ranked = index.rank([1.0, 0.0], entries)
    assert [block_id for block_id, _ in ranked] == ["a", "b", "d", "c"]
    assert ranked[0][1] == pytest.approx(1.0)


def test_similarity_index_applies_top_k() -> None:
    index = SimilarityIndex()
    entries = [(f"b{i}", i, [1.0, float(i)]) for i in range(6)]
    ranked = index.rank([1.0, 0.0], entries, top_k=2)
    assert [block_id for block_id, _ in ranked] == ["b0", "b1"]


def test_similarity_index_rejects_invalid_top_k() -> None:
    with pytest.raises(ValueError, match="top_k must be >= 1"):
        SimilarityIndex().rank([1.0], [], top_k=0)


def test_similarity_index_leaves_inputs_untouched() -> None:
    query = [1.0, 2.0]
    entries = [("b", 3, [2.0, 1.0]), ("a", 1, [1.0, 2.0])]
    vectors = np.array([[0.5, 0.5]])
    snapshot = [(block_id, line, list(vector)) for block_id, line, vector in entries]

    SimilarityIndex().rank(query, entries)
    SimilarityIndex().rank(vectors[0], [("c", 0, vectors[0])])

    assert query == [1.0, 2.0]
    assert entries == snapshot
    assert vectors.tolist() == [[0.5, 0.5]]

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.errors import AccessDenied, ProviderTimeout, RetrievalFailed
from retrieval.search import RetrievalEngine
from retrieval.stores import (
    InMemoryBlockStore,
    StaticAccessChecker,
    StaticEmbeddingProvider,
)
from schemas.internal.blocks import DocumentBlock


def _block(block_id: str, start: int, embedding, *, block_type="Paragraph", deleted=False):
    return DocumentBlock(
        id=block_id,
        document_id="doc-1",
        block_type=block_type,
        start_line=start,
        end_line=start,
        raw_text=f"raw {block_id}",
        normalized_text=f"norm {block_id}",
        embedding=embedding,
        deleted_at=datetime(2024, 1, 1, tzinfo=timezone.utc) if deleted else None,
    )


def _engine(blocks, *, vector=(1.0, 0.0), grants=None, **kwargs) -> RetrievalEngine:
    return RetrievalEngine(
        embeddings=StaticEmbeddingProvider(list(vector)),
        blocks=InMemoryBlockStore(blocks),
        access=StaticAccessChecker(grants),
        **kwargs,
    )


def test_search_returns_top_k_ranked_blocks() -> None:
    blocks = [
        _block("b1", 0, [0.0, 1.0]),
        _block("b2", 2, [1.0, 0.1]),
        _block("b3", 4, [1.0, 0.5]),
        _block("b4", 6, [1.0, 0.0]),
        _block("b5", 8, [0.5, 0.5]),
    ]
    results = _engine(blocks).search("doc-1", "u1", "query", 3)

    assert [item.block_id for item in results] == ["b4", "b2", "b3"]
    assert results[0].score == pytest.approx(1.0)
    assert all(a.score >= b.score for a, b in zip(results, results[1:]))
    assert results[0].raw_text == "raw b4"
    assert results[0].normalized_text == "norm b4"


def test_search_skips_deleted_and_unembedded_blocks() -> None:
    blocks = [
        _block("live", 0, [1.0, 0.0]),
        _block("gone", 1, [1.0, 0.0], deleted=True),
        _block("bare", 2, None),
    ]
    results = _engine(blocks).search("doc-1", "u1", "query", 10)
    assert [item.block_id for item in results] == ["live"]


def test_search_normalizes_top_k() -> None:
    blocks = [_block(f"b{i}", i, [1.0, float(i)]) for i in range(8)]
    engine = _engine(blocks, default_top_k=5, max_top_k=6)

    assert len(engine.search("doc-1", "u1", "q", 0)) == 5
    assert len(engine.search("doc-1", "u1", "q", -3)) == 5
    assert len(engine.search("doc-1", "u1", "q", None)) == 5
    assert len(engine.search("doc-1", "u1", "q", 100)) == 6


def test_search_denies_unknown_user() -> None:
    engine = _engine([_block("b1", 0, [1.0, 0.0])], grants=[("doc-1", "owner")])
    with pytest.raises(AccessDenied):
        engine.search("doc-1", "stranger", "q")
    assert engine.search("doc-1", "owner", "q")


def test_search_wraps_embedding_failures() -> None:
    class _Broken:
        def embed(self, text):
            raise ConnectionError("down")

    engine = RetrievalEngine(
        embeddings=_Broken(),
        blocks=InMemoryBlockStore(),
        access=StaticAccessChecker(),
    )
    with pytest.raises(RetrievalFailed, match="Embedding provider failed"):
        engine.search("doc-1", "u1", "q")


def test_search_raises_timeout_for_slow_embeddings() -> None:
    import threading

    release = threading.Event()

    class _Slow:
        def embed(self, text):
            release.wait(2)
            return [1.0]

    engine = RetrievalEngine(
        embeddings=_Slow(),
        blocks=InMemoryBlockStore(),
        access=StaticAccessChecker(),
        embedding_timeout=0.05,
    )
    try:
        with pytest.raises(ProviderTimeout):
            engine.search("doc-1", "u1", "q")
    finally:
        release.set()


def test_search_wraps_block_store_failures() -> None:
    class _BrokenStore:
        def blocks_with_embeddings(self, document_id):
            raise OSError("disk")

        def table_blocks(self, document_id):
            raise OSError("disk")

    engine = RetrievalEngine(
        embeddings=StaticEmbeddingProvider([1.0]),
        blocks=_BrokenStore(),
        access=StaticAccessChecker(),
    )
    with pytest.raises(RetrievalFailed):
        engine.search("doc-1", "u1", "q")
    with pytest.raises(RetrievalFailed):
        engine.search_tables("doc-1", "u1")


def test_search_tables_returns_rows_in_line_order() -> None:
    blocks = [
        _block("r2", 12, None, block_type="TableRow"),
        _block("p1", 1, [1.0, 0.0]),
        _block("r1", 10, None, block_type="TableRow"),
        _block("r3", 14, None, block_type="TableRow", deleted=True),
    ]
    rows = _engine(blocks).search_tables("doc-1", "u1")
    assert [row.block_id for row in rows] == ["r1", "r2"]
    assert all(row.score == 1.0 for row in rows)


def test_engine_rejects_invalid_limits() -> None:
    with pytest.raises(ValueError):
        _engine([], default_top_k=0)
    with pytest.raises(ValueError):
        _engine([], default_top_k=10, max_top_k=5)

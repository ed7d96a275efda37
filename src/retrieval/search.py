"""Document-scoped semantic search and table lookup over block embeddings."""

from __future__ import annotations

import logging
from typing import List, Optional

from core.config import Settings
from core.errors import AccessDenied, ProviderTimeout, RetrievalFailed
from docedit.telemetry import traceable_if_enabled
from retrieval.contracts import AccessChecker, BlockStore, EmbeddingProvider
from retrieval.engines.cosine import SimilarityIndex
from schemas.internal.blocks import RetrievalResult
from utils.deadlines import Deadline, call_with_timeout, effective_timeout

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
MAX_TOP_K = 50
TABLE_ROW_SCORE = 1.0


class RetrievalEngine:
    """Read-only search over one document's blocks.

    Holds only injected collaborators and configuration, so one engine can be
    shared across threads and sessions.
    """

    def __init__(
        self,
        *,
        embeddings: EmbeddingProvider,
        blocks: BlockStore,
        access: AccessChecker,
        default_top_k: int = DEFAULT_TOP_K,
        max_top_k: int = MAX_TOP_K,
        embedding_timeout: float | None = None,
        index: SimilarityIndex | None = None,
    ) -> None:
        if default_top_k < 1:
            raise ValueError("default_top_k must be >= 1")
        if max_top_k < default_top_k:
            raise ValueError("max_top_k must be >= default_top_k")
        self._embeddings = embeddings
        self._blocks = blocks
        self._access = access
        self._default_top_k = default_top_k
        self._max_top_k = max_top_k
        self._embedding_timeout = embedding_timeout
        self._index = index or SimilarityIndex()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        embeddings: EmbeddingProvider,
        blocks: BlockStore,
        access: AccessChecker,
    ) -> "RetrievalEngine":
        return cls(
            embeddings=embeddings,
            blocks=blocks,
            access=access,
            default_top_k=settings.rag_default_top_k,
            max_top_k=settings.rag_max_top_k,
            embedding_timeout=settings.embedding_timeout,
        )

    def normalize_top_k(self, top_k: Optional[int]) -> int:
        """Map missing or non-positive values to the default and cap the rest."""
        if top_k is None or top_k <= 0:
            return self._default_top_k
        return min(int(top_k), self._max_top_k)

    @traceable_if_enabled(run_type="retriever", name="Document Semantic Search")
    def search(
        self,
        document_id: str,
        user_id: str,
        query_text: str,
        top_k: Optional[int] = DEFAULT_TOP_K,
        *,
        deadline: Deadline | None = None,
    ) -> List[RetrievalResult]:
        self.ensure_access(document_id, user_id)
        limit = self.normalize_top_k(top_k)

        query_vector = self._embed(query_text, deadline)
        try:
            blocks = self._blocks.blocks_with_embeddings(document_id)
        except Exception as exc:
            raise RetrievalFailed(
                f"Block store failed for document {document_id}: {exc}"
            ) from exc

        candidates = {
            block.id: block
            for block in blocks
            if block.embedding and not block.is_deleted
        }
        ranked = self._index.rank(
            query_vector,
            (
                (block.id, block.start_line, block.embedding or [])
                for block in candidates.values()
            ),
            top_k=limit,
        )
        results = [
            RetrievalResult.from_block(candidates[block_id], score)
            for block_id, score in ranked
        ]
        logger.debug(
            "search document=%s candidates=%d returned=%d top_k=%d",
            document_id,
            len(candidates),
            len(results),
            limit,
        )
        return results

    @traceable_if_enabled(run_type="retriever", name="Document Table Search")
    def search_tables(self, document_id: str, user_id: str) -> List[RetrievalResult]:
        self.ensure_access(document_id, user_id)
        try:
            rows = self._blocks.table_blocks(document_id)
        except Exception as exc:
            raise RetrievalFailed(
                f"Block store failed for document {document_id}: {exc}"
            ) from exc

        live = [block for block in rows if not block.is_deleted]
        live.sort(key=lambda block: (block.start_line, block.id))
        return [RetrievalResult.from_block(block, TABLE_ROW_SCORE) for block in live]

    def ensure_access(self, document_id: str, user_id: str) -> None:
        if not self._access.is_accessible(document_id, user_id):
            logger.info("access denied document=%s user=%s", document_id, user_id)
            raise AccessDenied(document_id, user_id)

    def _embed(self, query_text: str, deadline: Deadline | None) -> List[float]:
        timeout = effective_timeout(self._embedding_timeout, deadline)
        try:
            vector = call_with_timeout(
                lambda: self._embeddings.embed(query_text),
                timeout=timeout,
                operation="embedding",
            )
        except ProviderTimeout:
            raise
        except Exception as exc:
            raise RetrievalFailed(f"Embedding provider failed: {exc}") from exc
        if vector is None:
            raise RetrievalFailed("Embedding provider returned no vector")
        return [float(value) for value in vector]


__all__ = ["DEFAULT_TOP_K", "MAX_TOP_K", "RetrievalEngine"]

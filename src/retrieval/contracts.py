"""Collaborator contracts consumed by the retrieval engine and agent tools."""

from __future__ import annotations

from typing import Protocol, Sequence

from schemas.internal.blocks import DocumentBlock


class EmbeddingProvider(Protocol):
    """Turns text into a fixed-length vector."""

    def embed(self, text: str) -> Sequence[float]: ...


class BlockStore(Protocol):
    def blocks_with_embeddings(self, document_id: str) -> list[DocumentBlock]:
        """Non-deleted blocks of the document that carry an embedding."""
        ...

    def table_blocks(self, document_id: str) -> list[DocumentBlock]:
        """Non-deleted table-row blocks of the document, ordered by start_line."""
        ...


class AccessChecker(Protocol):
    def is_accessible(self, document_id: str, user_id: str) -> bool: ...


class DocumentSource(Protocol):
    """Current markdown text and display name of a document."""

    def document_text(self, document_id: str, user_id: str) -> str: ...

    def document_name(self, document_id: str, user_id: str) -> str: ...


__all__ = ["AccessChecker", "BlockStore", "DocumentSource", "EmbeddingProvider"]

"""In-memory collaborators for tests, the CLI and embedded use."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from core.errors import AccessDenied
from schemas.internal.blocks import TABLE_ROW_BLOCK_TYPE, DocumentBlock


class InMemoryBlockStore:
    """Thread-safe block store keyed by document id."""

    def __init__(self, blocks: Iterable[DocumentBlock] = ()) -> None:
        self._lock = threading.Lock()
        self._blocks: Dict[str, List[DocumentBlock]] = {}
        self.add_blocks(blocks)

    @classmethod
    def from_json_file(cls, path: Path) -> "InMemoryBlockStore":
        """Load a JSON list of blocks (snake_case or camelCase fields)."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("blocks", [])
        return cls(DocumentBlock.model_validate(item) for item in payload)

    def add_blocks(self, blocks: Iterable[DocumentBlock]) -> None:
        with self._lock:
            for block in blocks:
                self._blocks.setdefault(block.document_id, []).append(block)

    def document_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._blocks)

    def blocks_with_embeddings(self, document_id: str) -> list[DocumentBlock]:
        return [
            block
            for block in self._snapshot(document_id)
            if block.embedding and not block.is_deleted
        ]

    def table_blocks(self, document_id: str) -> list[DocumentBlock]:
        rows = [
            block
            for block in self._snapshot(document_id)
            if block.block_type == TABLE_ROW_BLOCK_TYPE and not block.is_deleted
        ]
        rows.sort(key=lambda block: (block.start_line, block.id))
        return rows

    def _snapshot(self, document_id: str) -> List[DocumentBlock]:
        with self._lock:
            return list(self._blocks.get(document_id, []))


class StaticEmbeddingProvider:
    """Returns the same precomputed vector for every query."""

    def __init__(self, vector: Sequence[float]) -> None:
        self._vector = [float(value) for value in vector]

    def embed(self, text: str) -> Sequence[float]:
        return list(self._vector)


class StaticAccessChecker:
    """Grants access to explicit (document_id, user_id) pairs, or to everyone."""

    def __init__(self, grants: Optional[Iterable[Tuple[str, str]]] = None) -> None:
        self._grants: Optional[Set[Tuple[str, str]]] = (
            set(grants) if grants is not None else None
        )

    def is_accessible(self, document_id: str, user_id: str) -> bool:
        if self._grants is None:
            return True
        return (document_id, user_id) in self._grants


class InMemoryDocumentSource:
    """Document texts held in a dict, guarded by an access checker."""

    def __init__(
        self,
        documents: Dict[str, str],
        access: Optional[StaticAccessChecker] = None,
        names: Optional[Dict[str, str]] = None,
    ) -> None:
        self._documents = dict(documents)
        self._names = dict(names or {})
        self._access = access or StaticAccessChecker()

    def document_text(self, document_id: str, user_id: str) -> str:
        self._check(document_id, user_id)
        return self._documents[document_id]

    def document_name(self, document_id: str, user_id: str) -> str:
        self._check(document_id, user_id)
        return self._names.get(document_id, document_id)

    def _check(self, document_id: str, user_id: str) -> None:
        if document_id not in self._documents or not self._access.is_accessible(
            document_id, user_id
        ):
            raise AccessDenied(document_id, user_id)


__all__ = [
    "InMemoryBlockStore",
    "InMemoryDocumentSource",
    "StaticAccessChecker",
    "StaticEmbeddingProvider",
]

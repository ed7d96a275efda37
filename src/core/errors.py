"""Error taxonomy shared by retrieval, change reconciliation and the agent loop."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from schemas.internal.changes import MarkerViolation


class DocEditError(RuntimeError):
    """Base class for errors raised by the document mutation engine."""


class AccessDenied(DocEditError):
    """The user is not allowed to read or modify the document."""

    def __init__(self, document_id: str, user_id: str) -> None:
        super().__init__(f"Document {document_id} not found or access denied for user {user_id}")
        self.document_id = document_id
        self.user_id = user_id


class RetrievalFailed(DocEditError):
    """Embedding provider or block store failed during a search."""


class ProviderTimeout(DocEditError):
    """An embedding or reasoning call did not finish before its deadline."""

    def __init__(self, operation: str, timeout: float | None = None) -> None:
        detail = f" after {timeout:.2f}s" if timeout is not None else ""
        super().__init__(f"{operation} timed out{detail}")
        self.operation = operation
        self.timeout = timeout


class ProviderUnavailable(DocEditError):
    """An embedding or reasoning provider failed to produce a result."""


class ChangeNotFound(DocEditError):
    """Reconciliation target is missing from the current document text."""

    def __init__(self, change_ids: Iterable[str]) -> None:
        ids = list(change_ids)
        super().__init__("Change markers not found: " + ", ".join(ids))
        self.change_ids = ids


class MalformedMarkers(DocEditError):
    """Marker pairs overlap, nest, or do not match."""

    def __init__(self, message: str, violations: Sequence["MarkerViolation"] = ()) -> None:
        super().__init__(message)
        self.violations = list(violations)


class SessionBusy(DocEditError):
    """Another agent invocation is already running for the same chat."""

    def __init__(self, chat_id: str) -> None:
        super().__init__(f"Chat {chat_id} already has an agent run in progress")
        self.chat_id = chat_id


__all__ = [
    "AccessDenied",
    "ChangeNotFound",
    "DocEditError",
    "MalformedMarkers",
    "ProviderTimeout",
    "ProviderUnavailable",
    "RetrievalFailed",
    "SessionBusy",
]

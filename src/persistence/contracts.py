"""Persistence protocol contracts."""

from __future__ import annotations

from typing import Protocol

from schemas.internal.agent import AgentLogEntry


class AgentLogStore(Protocol):
    """Append-only audit log of agent runs."""

    def append(self, entry: AgentLogEntry) -> None: ...

    def list_entries(
        self,
        *,
        document_id: str,
        user_id: str,
        chat_session_id: str | None = None,
        limit: int | None = None,
    ) -> list[AgentLogEntry]: ...


__all__ = ["AgentLogStore"]

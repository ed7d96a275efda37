"""Agent audit log stores: in-memory and SQLite-backed."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List

from schemas.internal.agent import AgentLogEntry


_SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS agent_logs (
    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    chat_session_id TEXT,
    log_type TEXT NOT NULL,
    content TEXT NOT NULL,
    metadata_json TEXT,
    iteration_number INTEGER NOT NULL,
    step_number INTEGER,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_agent_logs_document_user
    ON agent_logs(document_id, user_id);
CREATE INDEX IF NOT EXISTS idx_agent_logs_chat_session
    ON agent_logs(chat_session_id);
"""


class InMemoryAgentLogStore:
    """Thread-safe list-backed log store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[AgentLogEntry] = []

    def append(self, entry: AgentLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list_entries(
        self,
        *,
        document_id: str,
        user_id: str,
        chat_session_id: str | None = None,
        limit: int | None = None,
    ) -> list[AgentLogEntry]:
        with self._lock:
            entries = [
                entry
                for entry in self._entries
                if entry.document_id == document_id
                and entry.user_id == user_id
                and (chat_session_id is None or entry.chat_session_id == chat_session_id)
            ]
        # Stable sort keeps insertion order for equal timestamps.
        entries.sort(key=lambda entry: entry.timestamp)
        return entries[:limit] if limit is not None else entries


class SqliteAgentLogStore:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    def append(self, entry: AgentLogEntry) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO agent_logs (
                    document_id, user_id, chat_session_id, log_type, content,
                    metadata_json, iteration_number, step_number, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.document_id,
                    entry.user_id,
                    entry.chat_session_id,
                    entry.log_type,
                    entry.content,
                    entry.metadata,
                    entry.iteration_number,
                    entry.step_number,
                    entry.timestamp.isoformat(),
                ),
            )
            conn.commit()

    def list_entries(
        self,
        *,
        document_id: str,
        user_id: str,
        chat_session_id: str | None = None,
        limit: int | None = None,
    ) -> list[AgentLogEntry]:
        query = "SELECT * FROM agent_logs WHERE document_id = ? AND user_id = ?"
        params: list[object] = [document_id, user_id]
        if chat_session_id is not None:
            query += " AND chat_session_id = ?"
            params.append(chat_session_id)
        query += " ORDER BY timestamp ASC, log_id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [_row_to_entry(row) for row in rows]


def _row_to_entry(row: sqlite3.Row) -> AgentLogEntry:
    return AgentLogEntry(
        document_id=row["document_id"],
        user_id=row["user_id"],
        chat_session_id=row["chat_session_id"],
        log_type=row["log_type"],
        content=row["content"],
        metadata=row["metadata_json"],
        iteration_number=row["iteration_number"],
        step_number=row["step_number"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


__all__ = ["InMemoryAgentLogStore", "SqliteAgentLogStore"]

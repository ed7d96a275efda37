"""Persistence subsystem exports."""

from persistence.agent_log import InMemoryAgentLogStore, SqliteAgentLogStore
from persistence.contracts import AgentLogStore

__all__ = ["AgentLogStore", "InMemoryAgentLogStore", "SqliteAgentLogStore"]

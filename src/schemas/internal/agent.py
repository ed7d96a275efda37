"""Agent loop records: tool calls, steps, reasoning decisions and audit entries."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from schemas.internal.changes import DocumentEntityChange

LogType = Literal[
    "user-message",
    "reasoning",
    "tool-call",
    "tool-result",
    "change",
    "error",
    "completion",
]
TurnRole = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    """One tool invocation and its textual result."""

    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[str] = None

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class AgentStep(BaseModel):
    """A sealed iteration of the agent loop."""

    step_number: int = Field(ge=1)
    description: str
    tool_calls: Optional[List[ToolCall]] = None
    tool_result: Optional[str] = None
    document_changes: Optional[List[DocumentEntityChange]] = None

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class ToolRequest(BaseModel):
    """A tool call requested by the reasoning provider, not yet validated."""

    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ReasoningDecision(BaseModel):
    """What the reasoning provider wants to do next."""

    message: str = ""
    tool_requests: List[ToolRequest] = Field(default_factory=list)
    is_complete: bool = False

    model_config = ConfigDict(extra="ignore")


class ConversationTurn(BaseModel):
    """One entry of the conversation handed to the reasoning provider."""

    role: TurnRole
    content: str

    model_config = ConfigDict(extra="forbid", frozen=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentLogEntry(BaseModel):
    """Append-only audit record of one event inside an agent run."""

    document_id: str
    user_id: str
    chat_session_id: Optional[str] = None
    log_type: LogType
    content: str
    metadata: Optional[str] = Field(
        default=None, description="JSON-serialized structured payload."
    )
    iteration_number: int = Field(default=0, ge=0)
    step_number: Optional[int] = Field(default=None, ge=1)
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    @field_validator("metadata", mode="before")
    @classmethod
    def _serialize_metadata(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)

    def metadata_dict(self) -> Dict[str, Any]:
        if not self.metadata:
            return {}
        payload = json.loads(self.metadata)
        return payload if isinstance(payload, dict) else {"value": payload}


__all__ = [
    "AgentLogEntry",
    "AgentStep",
    "ConversationTurn",
    "LogType",
    "ReasoningDecision",
    "ToolCall",
    "ToolRequest",
    "TurnRole",
]

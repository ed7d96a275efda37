"""External request schemas for agent runs."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

AgentMode = Literal["agent", "ask"]


class AgentRequest(BaseModel):
    document_id: str = Field(min_length=1)
    user_message: str = Field(min_length=1)
    start_line: int | None = Field(default=None, ge=1)
    end_line: int | None = Field(default=None, ge=1)
    chat_id: str | None = None
    mode: AgentMode = "agent"

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="after")
    def _validate_range(self) -> "AgentRequest":
        if self.start_line is not None and self.end_line is not None:
            if self.start_line > self.end_line:
                raise ValueError("start_line must be <= end_line.")
        return self

    @property
    def allows_changes(self) -> bool:
        return self.mode == "agent"


class AgentRunOptions(BaseModel):
    """Per-run overrides. All fields are optional and validated."""

    max_iterations: int | None = Field(default=None, ge=1)
    tool_concurrency: int | None = Field(default=None, ge=1)
    reasoning_timeout: float | None = Field(default=None, gt=0)
    deadline_seconds: float | None = Field(default=None, gt=0)
    rag_top_k: int | None = Field(default=None, ge=1)
    retrieval_retry_backoff_ms: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(extra="forbid")


__all__ = ["AgentMode", "AgentRequest", "AgentRunOptions"]

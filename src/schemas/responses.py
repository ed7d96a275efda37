"""External response schemas for agent runs."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from schemas.internal.agent import AgentStep
from schemas.internal.changes import DocumentEntityChange


class AgentResponse(BaseModel):
    final_message: str
    steps: List[AgentStep] = Field(default_factory=list)
    is_complete: bool = False

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="after")
    def _validate_steps(self) -> "AgentResponse":
        previous = 0
        for step in self.steps:
            if step.step_number <= previous:
                raise ValueError("step numbers must be strictly increasing.")
            previous = step.step_number
        seen: set[str] = set()
        for change in self.document_changes:
            if change.change_id in seen:
                raise ValueError(f"duplicate change_id {change.change_id!r} in response.")
            seen.add(change.change_id)
        return self

    @property
    def document_changes(self) -> List[DocumentEntityChange]:
        """All proposed changes in step order."""
        changes: List[DocumentEntityChange] = []
        for step in self.steps:
            changes.extend(step.document_changes or [])
        return changes


__all__ = ["AgentResponse"]

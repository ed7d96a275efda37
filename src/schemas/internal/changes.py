"""Change proposal and marker parsing contracts."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ChangeType = Literal["insert", "delete"]
Decision = Literal["accept", "reject"]
ViolationKind = Literal[
    "unclosed_start",
    "orphan_end",
    "mismatched_type",
    "overlapping_span",
    "duplicate_change_id",
]

CHANGE_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


class DocumentEntityChange(BaseModel):
    """One atomic proposed edit (a chunk when part of a group)."""

    change_id: str = Field(pattern=CHANGE_ID_PATTERN)
    change_type: ChangeType
    entity_type: str = "paragraph"
    start_line: int = Field(
        ge=0,
        description="1-based; for insert the line after which to insert (0 = top).",
    )
    end_line: Optional[int] = Field(default=None, ge=1)
    content: str = ""
    group_id: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    @model_validator(mode="after")
    def _check_delete_range(self) -> "DocumentEntityChange":
        if self.change_type == "delete":
            if self.start_line < 1:
                raise ValueError("delete start_line must be >= 1")
            if self.end_line is None:
                raise ValueError("delete requires end_line")
            if self.end_line < self.start_line:
                raise ValueError("delete end_line must be >= start_line")
        return self

    @property
    def sort_order(self) -> int:
        return self.order if self.order is not None else 0


class TextRange(BaseModel):
    """Half-open character offsets ``[start, end)`` into a text."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def _check_order(self) -> "TextRange":
        if self.end < self.start:
            raise ValueError("end must be >= start")
        return self

    def slice(self, text: str) -> str:
        return text[self.start : self.end]


class MarkerSpan(BaseModel):
    """A matched start/end marker pair located in a text."""

    change_id: str
    change_type: ChangeType
    start_marker: TextRange
    content: TextRange
    end_marker: TextRange

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    @property
    def start(self) -> int:
        return self.start_marker.start

    @property
    def end(self) -> int:
        return self.end_marker.end

    def content_text(self, text: str) -> str:
        return self.content.slice(text)


class MarkerViolation(BaseModel):
    """A marker token or pair that breaks the pairing rules."""

    kind: ViolationKind
    change_id: str
    change_type: Optional[ChangeType] = None
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    message: str

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class MarkerParseResult(BaseModel):
    """Well-formed spans in document order plus every violation found."""

    spans: List[MarkerSpan] = Field(default_factory=list)
    violations: List[MarkerViolation] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @property
    def is_well_formed(self) -> bool:
        return not self.violations

    def spans_by_id(self) -> Dict[str, MarkerSpan]:
        return {span.change_id: span for span in self.spans}

    def violations_for(self, change_id: str) -> List[MarkerViolation]:
        return [item for item in self.violations if item.change_id == change_id]


class DecisionUnit(BaseModel):
    """Changes presented to the user as one accept/reject unit."""

    unit_id: str
    group_id: Optional[str] = None
    changes: List[DocumentEntityChange]
    spans: List[MarkerSpan]

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    @property
    def change_ids(self) -> List[str]:
        return [change.change_id for change in self.changes]


class DecisionPlan(BaseModel):
    """Decision units for a text plus proposals and spans that could not be paired."""

    units: List[DecisionUnit] = Field(default_factory=list)
    missing_change_ids: List[str] = Field(default_factory=list)
    unknown_change_ids: List[str] = Field(default_factory=list)
    violations: List[MarkerViolation] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class Reconciliation(BaseModel):
    """Outcome of applying a decision to marker-annotated text."""

    text: str
    change_ids: List[str]
    decision: Decision

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


__all__ = [
    "CHANGE_ID_PATTERN",
    "ChangeType",
    "Decision",
    "DecisionPlan",
    "DecisionUnit",
    "DocumentEntityChange",
    "MarkerParseResult",
    "MarkerSpan",
    "MarkerViolation",
    "Reconciliation",
    "TextRange",
    "ViolationKind",
]

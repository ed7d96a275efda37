"""Closed set of agent tool invocations, discriminated by ``tool``."""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from schemas.internal.agent import ToolRequest

ToolName = Literal[
    "rag_query",
    "table_search",
    "read_document",
    "grep",
    "get_header",
    "propose_document_changes",
]
ChangeOperation = Literal["insert", "delete", "replace"]

# Models accept snake_case or camelCase argument names and ignore extras
# the model invents, so a noisy reply still maps to a valid call.
_TOOL_CONFIG = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class RagQueryCall(BaseModel):
    tool: Literal["rag_query"] = "rag_query"
    content: str = Field(min_length=1)
    top_k: Optional[int] = None

    model_config = _TOOL_CONFIG


class TableSearchCall(BaseModel):
    tool: Literal["table_search"] = "table_search"

    model_config = _TOOL_CONFIG


class ReadDocumentCall(BaseModel):
    tool: Literal["read_document"] = "read_document"
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    model_config = _TOOL_CONFIG


class GrepCall(BaseModel):
    tool: Literal["grep"] = "grep"
    content: str = Field(min_length=1)

    model_config = _TOOL_CONFIG


class GetHeaderCall(BaseModel):
    tool: Literal["get_header"] = "get_header"

    model_config = _TOOL_CONFIG


class ProposeChangesCall(BaseModel):
    tool: Literal["propose_document_changes"] = "propose_document_changes"
    operation: ChangeOperation
    start_line: int = Field(ge=0)
    end_line: Optional[int] = None
    content: Optional[str] = None

    model_config = _TOOL_CONFIG

    @model_validator(mode="after")
    def _check_operation(self) -> "ProposeChangesCall":
        if self.operation in ("insert", "replace") and not (self.content or "").strip():
            raise ValueError(f"{self.operation} requires non-empty content")
        if self.operation in ("delete", "replace") and self.start_line < 1:
            raise ValueError(f"{self.operation} requires start_line >= 1")
        return self


ToolInvocation = Annotated[
    Union[
        RagQueryCall,
        TableSearchCall,
        ReadDocumentCall,
        GrepCall,
        GetHeaderCall,
        ProposeChangesCall,
    ],
    Field(discriminator="tool"),
]

_INVOCATION_ADAPTER: TypeAdapter[ToolInvocation] = TypeAdapter(ToolInvocation)


class ToolSpec(BaseModel):
    """Tool description offered to the reasoning provider."""

    name: ToolName
    description: str
    parameters: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)


TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        name="rag_query",
        description="Semantic search over the document blocks; returns the most relevant spans.",
        parameters={"content": "search query text", "top_k": "optional result count"},
    ),
    ToolSpec(
        name="table_search",
        description="List every table row block of the document in line order.",
    ),
    ToolSpec(
        name="read_document",
        description="Read document lines with 1-based line numbers.",
        parameters={"start_line": "optional first line", "end_line": "optional last line"},
    ),
    ToolSpec(
        name="grep",
        description="Case-insensitive search for a string or regular expression.",
        parameters={"content": "text or pattern"},
    ),
    ToolSpec(
        name="get_header",
        description="Return the document title: its first H1 heading, else the document name.",
    ),
    ToolSpec(
        name="propose_document_changes",
        description="Propose an insert, delete or replace of document lines as markdown.",
        parameters={
            "operation": "insert | delete | replace",
            "start_line": "1-based line (insert: line after which to insert, 0 = top)",
            "end_line": "last line of the range for delete/replace",
            "content": "markdown to insert",
        },
    ),
]

READ_ONLY_TOOLS = frozenset(
    {"rag_query", "table_search", "read_document", "grep", "get_header"}
)


def available_tools(*, allow_changes: bool = True) -> List[ToolSpec]:
    """Return the tool specs offered for a run mode."""
    if allow_changes:
        return list(TOOL_SPECS)
    return [spec for spec in TOOL_SPECS if spec.name in READ_ONLY_TOOLS]


def parse_tool_request(request: ToolRequest) -> ToolInvocation:
    """Validate a raw request into a tool variant (raises pydantic ValidationError)."""
    payload = dict(request.arguments)
    payload["tool"] = request.name
    return _INVOCATION_ADAPTER.validate_python(payload)


__all__ = [
    "ChangeOperation",
    "GetHeaderCall",
    "GrepCall",
    "ProposeChangesCall",
    "RagQueryCall",
    "READ_ONLY_TOOLS",
    "ReadDocumentCall",
    "TOOL_SPECS",
    "TableSearchCall",
    "ToolInvocation",
    "ToolName",
    "ToolSpec",
    "available_tools",
    "parse_tool_request",
]

"""Internal schema definitions."""

from .agent import (  # noqa: F401
    AgentLogEntry,
    AgentStep,
    ConversationTurn,
    ReasoningDecision,
    ToolCall,
    ToolRequest,
)
from .blocks import TABLE_ROW_BLOCK_TYPE, DocumentBlock, RetrievalResult  # noqa: F401
from .changes import (  # noqa: F401
    DecisionPlan,
    DecisionUnit,
    DocumentEntityChange,
    MarkerParseResult,
    MarkerSpan,
    MarkerViolation,
    Reconciliation,
    TextRange,
)

__all__ = [
    "AgentLogEntry",
    "AgentStep",
    "ConversationTurn",
    "DecisionPlan",
    "DecisionUnit",
    "DocumentBlock",
    "DocumentEntityChange",
    "MarkerParseResult",
    "MarkerSpan",
    "MarkerViolation",
    "ReasoningDecision",
    "Reconciliation",
    "RetrievalResult",
    "TABLE_ROW_BLOCK_TYPE",
    "TextRange",
    "ToolCall",
    "ToolRequest",
]

"""Graph node implementations."""

from .agent_loop import finish_node, reason_node, start_node, tools_node  # noqa: F401
from .reasoning import ChatModelReasoner, ReasoningProvider  # noqa: F401
from .tools import DocumentToolExecutor, ToolOutcome, ToolSettings  # noqa: F401

__all__ = [
    "ChatModelReasoner",
    "DocumentToolExecutor",
    "ReasoningProvider",
    "ToolOutcome",
    "ToolSettings",
    "finish_node",
    "reason_node",
    "start_node",
    "tools_node",
]

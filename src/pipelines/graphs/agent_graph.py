"""Agent loop LangGraph workflow assembly.

started -> iterating -> {completed | aborted}: ``start`` opens the run,
``reason`` and ``tools`` alternate once per iteration, ``finish`` records the
outcome.
"""

from __future__ import annotations

import operator
from typing import Annotated, Any, Literal, cast

from typing_extensions import TypedDict

from langgraph.graph import END, START, StateGraph

from pipelines.graphs.context import AgentRunContext
from pipelines.graphs.nodes.agent_loop import (
    finish_node,
    reason_node,
    start_node,
    tools_node,
)
from pipelines.graphs.routing import route_after_reasoning, route_after_tools
from schemas.internal.agent import AgentStep, ConversationTurn, ReasoningDecision

RunStatus = Literal["iterating", "completed", "aborted"]


class AgentGraphState(TypedDict, total=False):
    context: AgentRunContext

    turns: Annotated[list[ConversationTurn], operator.add]
    steps: Annotated[list[AgentStep], operator.add]

    iteration: int
    decision: ReasoningDecision
    status: RunStatus
    stop_reason: str
    final_message: str


NodeFn = object


def build_agent_graph(*, node_overrides: dict[str, NodeFn] | None = None):
    """Build and compile the agent loop graph."""
    overrides = node_overrides or {}
    builder: StateGraph = StateGraph(cast(Any, AgentGraphState))

    builder.add_node("start", cast(Any, overrides.get("start") or start_node))
    builder.add_node("reason", cast(Any, overrides.get("reason") or reason_node))
    builder.add_node("tools", cast(Any, overrides.get("tools") or tools_node))
    builder.add_node("finish", cast(Any, overrides.get("finish") or finish_node))

    builder.add_edge(START, "start")
    builder.add_edge("start", "reason")
    builder.add_conditional_edges(
        "reason",
        route_after_reasoning,
        {"tools": "tools", "finish": "finish"},
    )
    builder.add_conditional_edges(
        "tools",
        route_after_tools,
        {"reason": "reason", "finish": "finish"},
    )
    builder.add_edge("finish", END)

    return builder.compile()


def recursion_limit_for(max_iterations: int) -> int:
    """Graph steps needed for max_iterations full iterations plus the limit check."""
    return max_iterations * 2 + 5


__all__ = ["AgentGraphState", "build_agent_graph", "recursion_limit_for"]

"""LangGraph nodes for the agent loop: start, reason, tools, finish."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from core.errors import ProviderTimeout, ProviderUnavailable
from schemas.internal.agent import (
    AgentStep,
    ConversationTurn,
    ReasoningDecision,
    ToolRequest,
)
from utils.deadlines import call_with_timeout, effective_timeout

if TYPE_CHECKING:
    from pipelines.graphs.context import AgentRunContext
    from pipelines.graphs.nodes.tools import ToolOutcome

logger = logging.getLogger(__name__)


class _RunCancelled(Exception):
    pass


def start_node(state: dict) -> dict:
    """LangGraph node: record the user message and open the conversation."""
    ctx = _context(state)
    request = ctx.request
    ctx.log(
        "user-message",
        request.user_message,
        iteration=0,
        metadata={
            "mode": request.mode,
            "start_line": request.start_line,
            "end_line": request.end_line,
        },
    )
    content = request.user_message
    if request.start_line is not None or request.end_line is not None:
        start = request.start_line or 1
        end = request.end_line if request.end_line is not None else start
        content = f"Focus on document lines {start}-{end}.\n\n{content}"
    if not request.allows_changes:
        content = f"{content}\n\n(Read-only request: do not propose document changes.)"
    return {
        "turns": [ConversationTurn(role="user", content=content)],
        "iteration": 0,
        "status": "iterating",
    }


def reason_node(state: dict) -> dict:
    """LangGraph node: enter the next iteration and ask the provider what to do."""
    ctx = _context(state)
    done = int(state.get("iteration") or 0)
    iteration = done + 1

    if ctx.cancelled:
        return _abort(ctx, done, "cancelled", "The request was cancelled.")
    if iteration > ctx.max_iterations:
        return _abort(
            ctx,
            done,
            "iteration_limit",
            f"Stopped after {ctx.max_iterations} iteration(s) without completing the request.",
        )
    if ctx.deadline is not None and ctx.deadline.expired:
        return _abort(ctx, done, "timeout", "The request ran out of time.")

    ctx.log("reasoning", f"Iteration {iteration} started", iteration=iteration)
    turns: List[ConversationTurn] = list(state.get("turns") or [])
    tools = ctx.tool_specs
    try:
        decision = call_with_timeout(
            lambda: ctx.reasoner.decide(turns, tools),
            timeout=effective_timeout(ctx.reasoning_timeout, ctx.deadline),
            operation="reasoning",
        )
    except ProviderTimeout as exc:
        return _abort(ctx, done, "timeout", f"The request timed out: {exc}")
    except ProviderUnavailable as exc:
        return _abort(ctx, done, "provider_unavailable", f"The reasoning provider failed: {exc}")

    ctx.log(
        "reasoning",
        decision.message or "(no message)",
        iteration=iteration,
        metadata={
            "tool_requests": [request.name for request in decision.tool_requests],
            "is_complete": decision.is_complete,
        },
    )
    updates: Dict[str, Any] = {
        "iteration": iteration,
        "decision": decision,
        "turns": [ConversationTurn(role="assistant", content=_render_decision(decision))],
    }
    if not decision.tool_requests:
        updates.update(
            status="completed", stop_reason="completed", final_message=decision.message
        )
    return updates


def tools_node(state: dict) -> dict:
    """LangGraph node: run the requested tools concurrently and seal the step."""
    ctx = _context(state)
    decision: ReasoningDecision = state["decision"]
    iteration = int(state.get("iteration") or 0)
    step_number = len(state.get("steps") or []) + 1

    try:
        outcomes = _dispatch(ctx, decision.tool_requests, iteration, step_number)
    except _RunCancelled:
        return _abort(ctx, iteration - 1, "cancelled", "The request was cancelled.")
    except ProviderTimeout as exc:
        return _abort(ctx, iteration - 1, "timeout", f"The request timed out: {exc}")

    changes = [change for outcome in outcomes for change in outcome.changes]
    tool_result = "\n\n".join(
        f"[{outcome.call.tool_name}] {outcome.call.result}" for outcome in outcomes
    )
    names = ", ".join(request.name for request in decision.tool_requests)
    step = AgentStep(
        step_number=step_number,
        description=decision.message or f"Called {names}",
        tool_calls=[outcome.call for outcome in outcomes],
        tool_result=tool_result,
        document_changes=changes or None,
    )
    for change in changes:
        ctx.log(
            "change",
            f"{change.change_type} {change.entity_type} at line {change.start_line}",
            iteration=iteration,
            step=step_number,
            metadata=change.model_dump(by_alias=True, exclude_none=True),
        )
    ctx.log(
        "reasoning",
        f"Iteration {iteration} finished",
        iteration=iteration,
        step=step_number,
        metadata={
            "tool_calls": len(outcomes),
            "changes": len(changes),
            "failed": sum(outcome.failed for outcome in outcomes),
        },
    )
    if ctx.on_step is not None:
        ctx.on_step(step)

    updates: Dict[str, Any] = {
        "steps": [step],
        "turns": [ConversationTurn(role="tool", content=tool_result)],
    }
    if decision.is_complete:
        updates.update(
            status="completed", stop_reason="completed", final_message=decision.message
        )
    return updates


def finish_node(state: dict) -> dict:
    """LangGraph node: close the run with a completion or error entry."""
    ctx = _context(state)
    status = state.get("status") or "aborted"
    steps = state.get("steps") or []
    final_message = state.get("final_message") or (
        "Done." if status == "completed" else "The request was not completed."
    )
    ctx.log(
        "completion" if status == "completed" else "error",
        final_message,
        iteration=int(state.get("iteration") or 0),
        step=len(steps) or None,
        metadata={"status": status, "stop_reason": state.get("stop_reason"), "steps": len(steps)},
    )
    return {"status": status, "final_message": final_message}


def _dispatch(
    ctx: "AgentRunContext",
    requests: Sequence[ToolRequest],
    iteration: int,
    step_number: int,
) -> List["ToolOutcome"]:
    if not requests:
        return []
    workers = max(1, min(ctx.tool_concurrency, len(requests)))
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="agent-tool")
    try:
        futures = [
            pool.submit(_run_tool, ctx, request, iteration, step_number)
            for request in requests
        ]
        # Results keep request order regardless of completion order.
        return [future.result() for future in futures]
    finally:
        pool.shutdown(wait=True, cancel_futures=True)


def _run_tool(
    ctx: "AgentRunContext", request: ToolRequest, iteration: int, step_number: int
) -> "ToolOutcome":
    if ctx.cancelled:
        raise _RunCancelled()
    ctx.log(
        "tool-call",
        request.name,
        iteration=iteration,
        step=step_number,
        metadata={"arguments": request.arguments},
    )
    outcome = ctx.tools.execute(request)
    ctx.log(
        "tool-result",
        outcome.call.result or "",
        iteration=iteration,
        step=step_number,
        metadata={"tool": request.name, "failed": outcome.failed, "changes": len(outcome.changes)},
    )
    if ctx.cancelled:
        raise _RunCancelled()
    return outcome


def _abort(ctx: "AgentRunContext", iteration: int, reason: str, message: str) -> dict:
    logger.info("agent run aborted (%s) document=%s", reason, ctx.request.document_id)
    if reason != "iteration_limit":
        ctx.log("error", message, iteration=iteration, metadata={"reason": reason})
    return {"status": "aborted", "stop_reason": reason, "final_message": message}


def _render_decision(decision: ReasoningDecision) -> str:
    parts = [decision.message] if decision.message else []
    for request in decision.tool_requests:
        parts.append(
            "TOOL_CALL\n"
            f"tool: {request.name}\n"
            f"args: {json.dumps(request.arguments, ensure_ascii=False)}"
        )
    return "\n\n".join(parts)


def _context(state: dict) -> "AgentRunContext":
    ctx = state.get("context")
    if ctx is None:
        raise ValueError("agent graph state requires 'context'.")
    return ctx


__all__ = ["finish_node", "reason_node", "start_node", "tools_node"]

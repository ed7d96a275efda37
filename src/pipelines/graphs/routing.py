"""Routing helpers for the agent loop graph.

Nodes set ``status`` to ``completed`` or ``aborted`` to leave the loop; any
other value keeps iterating.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping


def _iterating(state: Mapping[str, Any]) -> bool:
    return str(state.get("status") or "iterating") == "iterating"


def route_after_reasoning(state: Mapping[str, Any]) -> Literal["tools", "finish"]:
    """Run the requested tools unless the reasoning step ended the run."""
    return "tools" if _iterating(state) else "finish"


def route_after_tools(state: Mapping[str, Any]) -> Literal["reason", "finish"]:
    """Start the next iteration unless the step completed or aborted the run."""
    return "reason" if _iterating(state) else "finish"


__all__ = ["route_after_reasoning", "route_after_tools"]

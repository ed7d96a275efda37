"""Parser for plain-text ``TOOL_CALL`` blocks emitted by chat models.

Models without native tool calling are prompted to answer with blocks like::

    TOOL_CALL
    tool: rag_query
    args: {"content": "methodology"}

Several blocks may appear in one reply; text outside the blocks is kept as the
model's message.
"""

from __future__ import annotations

import logging
import re
from typing import List, Tuple

from schemas.internal.agent import ToolRequest
from utils.llm_json import json_object_at

logger = logging.getLogger(__name__)

_TOOL_CALL_RE = re.compile(
    r"TOOL_CALL[ \t]*\r?\n[ \t]*tool:[ \t]*(?P<name>[A-Za-z_][\w-]*)[ \t]*"
    r"(?:\r?\n[ \t]*args:[ \t]*)?",
)


def parse_tool_calls(text: str) -> Tuple[List[ToolRequest], str]:
    """Return (tool requests in reply order, reply text with the blocks removed)."""
    source = text or ""
    requests: List[ToolRequest] = []
    remainder: List[str] = []
    cursor = 0

    for match in _TOOL_CALL_RE.finditer(source):
        if match.start() < cursor:
            continue
        remainder.append(source[cursor : match.start()])
        end = match.end()
        arguments: dict = {}
        found = json_object_at(source, end)
        if found is not None:
            _, arguments, end = found
        elif source[end:end + 1] == "{":
            logger.warning("TOOL_CALL for %s has unparseable args", match.group("name"))
        requests.append(ToolRequest(name=match.group("name"), arguments=arguments))
        cursor = end

    remainder.append(source[cursor:])
    message = "".join(remainder).strip()
    return requests, message


__all__ = ["parse_tool_calls"]

"""Helpers for pulling JSON objects out of free-form model replies."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, Tuple

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str, *, prefer_code_block: bool = True) -> str:
    """Return the first JSON object (as a string) found in text.

    Fenced code blocks are scanned first when prefer_code_block is True, then the
    whole reply. Only candidates that decode to a dict count.
    """

    source = text or ""
    if prefer_code_block:
        for block in _iter_code_blocks(source):
            for candidate, _ in iter_json_objects(block):
                return candidate

    for candidate, _ in iter_json_objects(source):
        return candidate

    raise ValueError("No JSON object found in LLM response")


def iter_json_objects(text: str, start: int = 0) -> Iterator[Tuple[str, int]]:
    """Yield (object_text, end_offset) for each decodable top-level JSON object."""
    idx = start
    while True:
        idx = text.find("{", idx)
        if idx == -1:
            return
        found = json_object_at(text, idx)
        if found is None:
            idx += 1
            continue
        candidate, _, end = found
        yield candidate, end
        idx = end


def json_object_at(text: str, start: int) -> Tuple[str, Dict[str, Any], int] | None:
    """Decode the brace-balanced object opening at ``start``.

    Returns (object_text, parsed, end_offset) or None when the braces do not
    balance or the candidate is not a JSON object.
    """
    if start >= len(text) or text[start] != "{":
        return None
    close = _find_matching_brace(text, start)
    if close is None:
        return None
    candidate = text[start : close + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return candidate, parsed, close + 1


def _iter_code_blocks(text: str) -> Iterator[str]:
    for match in _CODE_BLOCK_RE.finditer(text):
        yield match.group(1)


def _find_matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escape = False

    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return idx
    return None


__all__ = ["extract_json_object", "iter_json_objects", "json_object_at"]

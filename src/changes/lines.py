"""Line addressing shared by encoding, entity chunking and document tools."""

from __future__ import annotations

from typing import List, Tuple


def split_lines(text: str) -> List[str]:
    """Split on ``\\n``; a trailing newline does not open an extra empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def line_spans(text: str) -> List[Tuple[int, int]]:
    """Return (start, end) offsets per line, end excluding the line break."""
    spans: List[Tuple[int, int]] = []
    offset = 0
    for line in split_lines(text):
        spans.append((offset, offset + len(line)))
        offset += len(line) + 1
    return spans


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def normalize_range(start: int, end: int, total_lines: int) -> Tuple[int, int]:
    """Clamp a 1-based inclusive range to the document and swap if reversed."""
    if total_lines <= 0:
        return 1, 1
    start = clamp(start, 1, total_lines)
    end = clamp(end, 1, total_lines)
    if start > end:
        start, end = end, start
    return start, end


__all__ = ["clamp", "line_spans", "normalize_range", "split_lines"]

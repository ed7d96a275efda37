"""Markdown entity chunking and change proposal building."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from changes.lines import clamp, normalize_range, split_lines
from schemas.internal.changes import DocumentEntityChange
from schemas.internal.tools import ChangeOperation

_CAPTION_RE = re.compile(r"^\[(IMAGE|TABLE|FORMULA)-CAPTION:", re.IGNORECASE)
_BULLET_RE = re.compile(r"^(\s*)[-*+]\s+")
_NUMBERED_RE = re.compile(r"^(\s*)\d+\.\s+")
_RULE_RE = re.compile(r"^(\*{3,}|-{3,}|_{3,}|~{3,})$")


@dataclass(frozen=True)
class MarkdownEntity:
    """A blank-line separated chunk of markdown (1-based inclusive lines)."""

    start_line: int
    end_line: int
    content: str
    entity_type: str


@dataclass(frozen=True)
class ProposalResult:
    changes: List[DocumentEntityChange] = field(default_factory=list)
    message: str = ""


def new_change_id() -> str:
    return uuid.uuid4().hex


def detect_entity_type(chunk_lines: Sequence[str]) -> str:
    if not chunk_lines:
        return "paragraph"
    first = chunk_lines[0].lstrip()
    if first.startswith("#"):
        return "heading"
    if first.startswith("!["):
        return "image"
    if _CAPTION_RE.match(first):
        return "caption"
    if first.startswith("```"):
        return "code"
    if first.startswith("\\["):
        return "formula"
    if first.startswith(">"):
        return "quote"
    if _BULLET_RE.match(first) or _NUMBERED_RE.match(first):
        return "list"
    if first.count("|") >= 2:
        return "table"
    if _RULE_RE.match(first):
        return "horizontal_rule"
    return "paragraph"


def parse_entities(lines: Sequence[str]) -> List[MarkdownEntity]:
    """Split lines into entities separated by blank lines."""
    entities: List[MarkdownEntity] = []
    index = 0
    while index < len(lines):
        while index < len(lines) and not lines[index].strip():
            index += 1
        if index >= len(lines):
            break
        start = index + 1
        chunk: List[str] = []
        while index < len(lines) and lines[index].strip():
            chunk.append(lines[index])
            index += 1
        entities.append(
            MarkdownEntity(
                start_line=start,
                end_line=index,
                content="\n".join(chunk).rstrip(),
                entity_type=detect_entity_type(chunk),
            )
        )
    return entities


def parse_text_entities(text: str) -> List[MarkdownEntity]:
    return parse_entities(split_lines(text.replace("\r\n", "\n")))


def first_heading(text: str) -> Optional[str]:
    """Return the text of the first H1 outside fenced code, if any."""
    in_fence = False
    for line in split_lines(text.replace("\r\n", "\n")):
        stripped = line.lstrip()
        if stripped.startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence or not stripped.startswith("# "):
            continue
        title = stripped.lstrip("#").strip()
        if title:
            return title
    return None


def intersecting(
    entities: Sequence[MarkdownEntity], start_line: int, end_line: int
) -> List[MarkdownEntity]:
    return [
        entity
        for entity in entities
        if entity.end_line >= start_line and entity.start_line <= end_line
    ]


def propose_changes(
    document_text: str,
    operation: ChangeOperation,
    start_line: int,
    end_line: Optional[int] = None,
    content: Optional[str] = None,
    *,
    id_factory: Callable[[], str] = new_change_id,
) -> ProposalResult:
    """Turn one edit request into entity-level change proposals.

    ``insert`` yields one group of insert chunks; ``delete`` one ungrouped delete
    per intersecting entity; ``replace`` both, with the inserts anchored just
    before the first removed entity.
    """
    lines = split_lines(document_text.replace("\r\n", "\n"))
    total = len(lines)
    body = (content or "").replace("\r\n", "\n")

    if operation == "insert":
        if not body.strip():
            raise ValueError("content is required for insert")
        anchor = clamp(start_line, 0, total)
        inserts = _insert_chunks(body, anchor, id_factory)
        return ProposalResult(
            changes=inserts,
            message=f"Proposed {len(inserts)} insert(s) after line {anchor}.",
        )

    range_start, range_end = normalize_range(
        start_line, end_line if end_line is not None else start_line, total
    )
    targets = intersecting(parse_entities(lines), range_start, range_end)
    deletes = [
        DocumentEntityChange(
            change_id=id_factory(),
            change_type="delete",
            entity_type=entity.entity_type,
            start_line=entity.start_line,
            end_line=entity.end_line,
            content=entity.content,
        )
        for entity in targets
    ]

    if operation == "delete":
        if not deletes:
            return ProposalResult(
                message=f"No entities found in lines {range_start}-{range_end} to delete."
            )
        return ProposalResult(
            changes=deletes,
            message=f"Proposed {len(deletes)} delete(s) in lines {range_start}-{range_end}.",
        )

    if not body.strip():
        raise ValueError("content is required for replace")
    first_line = min([range_start] + [entity.start_line for entity in targets])
    inserts = _insert_chunks(body, max(first_line - 1, 0), id_factory)
    return ProposalResult(
        changes=deletes + inserts,
        message=(
            f"Proposed {len(deletes)} delete(s) and {len(inserts)} insert(s) "
            f"replacing lines {range_start}-{range_end}."
        ),
    )


def _insert_chunks(
    body: str, anchor: int, id_factory: Callable[[], str]
) -> List[DocumentEntityChange]:
    entities = parse_text_entities(body)
    if not entities:
        raise ValueError("content has no entities to insert")
    group_id = id_factory()
    return [
        DocumentEntityChange(
            change_id=id_factory(),
            change_type="insert",
            entity_type=entity.entity_type,
            start_line=anchor,
            content=entity.content,
            group_id=group_id,
            order=order,
        )
        for order, entity in enumerate(entities)
    ]


__all__ = [
    "MarkdownEntity",
    "ProposalResult",
    "detect_entity_type",
    "first_heading",
    "intersecting",
    "new_change_id",
    "parse_entities",
    "parse_text_entities",
    "propose_changes",
]

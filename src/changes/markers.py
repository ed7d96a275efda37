"""Marker encoding of proposed changes inside markdown text.

A pending change is wrapped in a pair of HTML comments so it stays invisible in
rendered markdown::

    <!-- AI:INSERT:3f2a... -->
    inserted text
    <!-- /AI:INSERT:3f2a... -->

Parsing is an explicit two-pass scan: tokenize every marker, then close each
start token at its nearest later end token with the same type and id. Pairs
that overlap, nest or reuse an id are reported as violations and left out of
the well-formed spans.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from changes.lines import clamp, line_spans, normalize_range
from core.errors import MalformedMarkers
from schemas.internal.changes import (
    ChangeType,
    DecisionPlan,
    DecisionUnit,
    DocumentEntityChange,
    MarkerParseResult,
    MarkerSpan,
    MarkerViolation,
    TextRange,
)

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(
    r"<!--[ \t]*(?P<close>/?)AI:(?P<type>INSERT|DELETE):(?P<id>[A-Za-z0-9_-]+)[ \t]*-->"
)


def start_marker(change_type: ChangeType, change_id: str) -> str:
    return f"<!-- AI:{change_type.upper()}:{change_id} -->"


def end_marker(change_type: ChangeType, change_id: str) -> str:
    return f"<!-- /AI:{change_type.upper()}:{change_id} -->"


def wrap(change_type: ChangeType, change_id: str, content: str) -> str:
    return "\n".join(
        (start_marker(change_type, change_id), content, end_marker(change_type, change_id))
    )


@dataclass(frozen=True)
class _Token:
    is_end: bool
    change_type: ChangeType
    change_id: str
    start: int
    end: int


@dataclass(frozen=True)
class _Edit:
    start: int
    end: int
    replacement: str
    rank: Tuple[int, int]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_changes(text: str, changes: Iterable[DocumentEntityChange]) -> str:
    """Embed pending changes into text as marker pairs.

    Line numbers always refer to the input text. Inserts anchored after the
    same line are emitted contiguously: groups in first-seen order, chunks in
    ascending ``order``.
    """
    pending = list(changes)
    _check_unique_ids(pending)

    spans = line_spans(text)
    total = len(spans)

    deletes: List[Tuple[int, int, DocumentEntityChange]] = []
    inserts: Dict[int, List[Tuple[int, DocumentEntityChange]]] = defaultdict(list)
    for position, change in enumerate(pending):
        if change.change_type == "delete":
            if total == 0:
                raise ValueError(f"Cannot wrap delete {change.change_id}: text is empty")
            first, last = normalize_range(
                change.start_line, change.end_line or change.start_line, total
            )
            deletes.append((first, last, change))
        else:
            inserts[clamp(change.start_line, 0, total)].append((position, change))

    _check_conflicts(deletes, inserts)

    edits: List[_Edit] = []
    for first, last, change in deletes:
        start = spans[first - 1][0]
        end = spans[last - 1][1]
        edits.append(
            _Edit(
                start=start,
                end=end,
                replacement=wrap("delete", change.change_id, text[start:end]),
                rank=(start, 1),
            )
        )

    for anchor, members in inserts.items():
        offset, prefix, suffix = _insert_point(text, spans, anchor)
        ordered = _order_insert_chunks(members)
        body = "\n".join(wrap("insert", change.change_id, change.content) for change in ordered)
        edits.append(
            _Edit(start=offset, end=offset, replacement=prefix + body + suffix, rank=(offset, 0))
        )

    edits.sort(key=lambda edit: edit.rank)
    pieces: List[str] = []
    cursor = 0
    for edit in edits:
        pieces.append(text[cursor : edit.start])
        pieces.append(edit.replacement)
        cursor = edit.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _check_unique_ids(changes: Sequence[DocumentEntityChange]) -> None:
    seen: set[str] = set()
    for change in changes:
        if change.change_id in seen:
            raise MalformedMarkers(f"Duplicate change_id {change.change_id} in proposals")
        seen.add(change.change_id)


def _check_conflicts(
    deletes: List[Tuple[int, int, DocumentEntityChange]],
    inserts: Dict[int, List[Tuple[int, DocumentEntityChange]]],
) -> None:
    ordered = sorted(deletes, key=lambda item: (item[0], item[1]))
    for (_, prev_last, prev), (first, _, current) in zip(ordered, ordered[1:]):
        if first <= prev_last:
            raise MalformedMarkers(
                f"Delete ranges of {prev.change_id} and {current.change_id} overlap"
            )
    for anchor, members in inserts.items():
        for first, last, change in ordered:
            if first <= anchor < last:
                ids = ", ".join(member.change_id for _, member in members)
                raise MalformedMarkers(
                    f"Insert {ids} after line {anchor} falls inside delete {change.change_id}"
                )


def _insert_point(
    text: str, spans: Sequence[Tuple[int, int]], anchor: int
) -> Tuple[int, str, str]:
    """Return (offset, prefix, suffix) for a block inserted after line ``anchor``."""
    if anchor == 0:
        offset = 0
    else:
        line_end = spans[anchor - 1][1]
        offset = line_end + 1 if line_end < len(text) else line_end
    prefix = "\n" if offset == len(text) and text and not text.endswith("\n") else ""
    suffix = "\n" if offset < len(text) or text.endswith("\n") else ""
    return offset, prefix, suffix


def _order_insert_chunks(
    members: List[Tuple[int, DocumentEntityChange]],
) -> List[DocumentEntityChange]:
    first_seen: Dict[str, int] = {}
    for position, change in members:
        key = change.group_id or change.change_id
        first_seen.setdefault(key, position)
    members = sorted(
        members,
        key=lambda item: (
            first_seen[item[1].group_id or item[1].change_id],
            item[1].sort_order,
            item[0],
        ),
    )
    return [change for _, change in members]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_markers(text: str) -> MarkerParseResult:
    """Locate marker pairs and report every violation found."""
    tokens = _tokenize(text)
    pairs, violations = _pair_tokens(tokens)
    invalid: set[int] = set()

    # A foreign marker token inside a pair, or two pairs sharing text, invalidates both.
    for index, (start, end) in enumerate(pairs):
        for token in tokens:
            if token is start or token is end:
                continue
            if start.end <= token.start and token.end <= end.start:
                invalid.add(index)
                break
    for index, (start, end) in enumerate(pairs):
        for other_index, (other_start, other_end) in enumerate(pairs):
            if other_index != index and other_start.start < end.end and start.start < other_end.end:
                invalid.add(index)
                break

    for index in sorted(invalid):
        start, end = pairs[index]
        violations.append(
            _violation(
                "overlapping_span",
                start,
                end.end,
                f"{start.change_type} span {start.change_id} overlaps another marker",
            )
        )

    valid = [pair for index, pair in enumerate(pairs) if index not in invalid]
    counts: Dict[str, int] = defaultdict(int)
    for start, _ in valid:
        counts[start.change_id] += 1

    spans: List[MarkerSpan] = []
    for start, end in valid:
        if counts[start.change_id] > 1:
            violations.append(
                _violation(
                    "duplicate_change_id",
                    start,
                    end.end,
                    f"change id {start.change_id} appears in more than one marker pair",
                )
            )
            continue
        spans.append(_build_span(text, start, end))
    spans.sort(key=lambda span: span.start)
    violations.sort(key=lambda item: (item.start, item.end, item.kind))
    if violations:
        logger.debug("parse_markers found %d violation(s)", len(violations))
    return MarkerParseResult(spans=spans, violations=violations)


def _tokenize(text: str) -> List[_Token]:
    return [
        _Token(
            is_end=bool(match.group("close")),
            change_type=match.group("type").lower(),  # type: ignore[arg-type]
            change_id=match.group("id"),
            start=match.start(),
            end=match.end(),
        )
        for match in _MARKER_RE.finditer(text or "")
    ]


def _pair_tokens(
    tokens: List[_Token],
) -> Tuple[List[Tuple[_Token, _Token]], List[MarkerViolation]]:
    pairs: List[Tuple[_Token, _Token]] = []
    consumed: set[int] = set()
    unmatched_starts: List[_Token] = []

    for position, token in enumerate(tokens):
        if token.is_end:
            continue
        match: Optional[int] = None
        for candidate in range(position + 1, len(tokens)):
            other = tokens[candidate]
            if (
                other.is_end
                and candidate not in consumed
                and other.change_id == token.change_id
                and other.change_type == token.change_type
            ):
                match = candidate
                break
        if match is None:
            unmatched_starts.append(token)
            continue
        consumed.add(match)
        pairs.append((token, tokens[match]))

    violations: List[MarkerViolation] = []
    orphan_ends = [
        token
        for position, token in enumerate(tokens)
        if token.is_end and position not in consumed
    ]
    mismatched_starts: set[int] = set()
    for end in orphan_ends:
        partner = next(
            (
                start
                for start in unmatched_starts
                if start.change_id == end.change_id
                and start.start < end.start
                and id(start) not in mismatched_starts
            ),
            None,
        )
        if partner is not None:
            mismatched_starts.add(id(partner))
            violations.append(
                _violation(
                    "mismatched_type",
                    partner,
                    end.end,
                    f"{partner.change_type} start for {partner.change_id} closed by "
                    f"{end.change_type} end",
                )
            )
        else:
            violations.append(
                _violation(
                    "orphan_end",
                    end,
                    end.end,
                    f"end marker for {end.change_id} has no matching start",
                )
            )
    for start in unmatched_starts:
        if id(start) in mismatched_starts:
            continue
        violations.append(
            _violation(
                "unclosed_start",
                start,
                start.end,
                f"start marker for {start.change_id} is never closed",
            )
        )
    return pairs, violations


def _violation(kind: str, token: _Token, end: int, message: str) -> MarkerViolation:
    return MarkerViolation(
        kind=kind,  # type: ignore[arg-type]
        change_id=token.change_id,
        change_type=token.change_type,
        start=token.start,
        end=end,
        message=message,
    )


def _build_span(text: str, start: _Token, end: _Token) -> MarkerSpan:
    # Trim only the "\n" wrap() emits; a "\r" stays with the wrapped CRLF line.
    content_start = start.end
    content_end = end.start
    if text.startswith("\n", content_start) and content_start < content_end:
        content_start += 1
    if content_end > content_start and text[content_end - 1] == "\n":
        content_end -= 1
    return MarkerSpan(
        change_id=start.change_id,
        change_type=start.change_type,
        start_marker=TextRange(start=start.start, end=start.end),
        content=TextRange(start=content_start, end=content_end),
        end_marker=TextRange(start=end.start, end=end.end),
    )


# ---------------------------------------------------------------------------
# Decision units
# ---------------------------------------------------------------------------


def build_decision_units(
    text: str, changes: Iterable[DocumentEntityChange]
) -> DecisionPlan:
    """Group located proposals into accept/reject units in document order."""
    parsed = parse_markers(text)
    spans = parsed.spans_by_id()
    known = list(changes)
    known_ids = {change.change_id for change in known}

    grouped: Dict[str, List[DocumentEntityChange]] = defaultdict(list)
    for change in known:
        grouped[change.group_id or change.change_id].append(change)

    units: List[DecisionUnit] = []
    missing: List[str] = []
    for unit_id, members in grouped.items():
        located = [change for change in members if change.change_id in spans]
        missing.extend(change.change_id for change in members if change.change_id not in spans)
        if not located:
            continue
        located.sort(key=lambda change: (change.sort_order, spans[change.change_id].start))
        units.append(
            DecisionUnit(
                unit_id=unit_id,
                group_id=members[0].group_id,
                changes=located,
                spans=[spans[change.change_id] for change in located],
            )
        )

    units.sort(key=lambda unit: min(span.start for span in unit.spans))
    unknown = [span.change_id for span in parsed.spans if span.change_id not in known_ids]
    return DecisionPlan(
        units=units,
        missing_change_ids=missing,
        unknown_change_ids=unknown,
        violations=parsed.violations,
    )


__all__ = [
    "build_decision_units",
    "encode_changes",
    "end_marker",
    "parse_markers",
    "start_marker",
    "wrap",
]

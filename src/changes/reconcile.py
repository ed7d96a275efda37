"""Apply accept/reject decisions to marker-annotated text."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from changes.markers import parse_markers
from core.errors import ChangeNotFound, MalformedMarkers
from schemas.internal.changes import (
    Decision,
    DocumentEntityChange,
    MarkerSpan,
    Reconciliation,
)

logger = logging.getLogger(__name__)

_DECISIONS = ("accept", "reject")


class ChangeReconciler:
    """Resolves pending changes against the current text.

    Known proposals are only used to expand a change id to its whole group;
    span offsets are recomputed from the markers on every call.
    """

    def __init__(self, changes: Iterable[DocumentEntityChange] = ()) -> None:
        self._changes: Dict[str, DocumentEntityChange] = {}
        self._groups: Dict[str, List[DocumentEntityChange]] = defaultdict(list)
        for change in changes:
            self._changes[change.change_id] = change
            if change.group_id:
                self._groups[change.group_id].append(change)
        for members in self._groups.values():
            members.sort(key=lambda change: change.sort_order)

    def targets(self, change_id: str) -> List[str]:
        """Change ids resolved together with ``change_id`` (its group, in order)."""
        change = self._changes.get(change_id)
        if change is None or not change.group_id:
            return [change_id]
        return [member.change_id for member in self._groups[change.group_id]]

    def resolve(self, text: str, change_id: str, decision: Decision) -> Reconciliation:
        _check_decision(decision)
        parsed = parse_markers(text)
        target_ids = self.targets(change_id)

        broken = [
            violation
            for target in target_ids
            for violation in parsed.violations_for(target)
        ]
        if broken:
            raise MalformedMarkers(
                f"Markers for {', '.join(target_ids)} are malformed", broken
            )

        located = parsed.spans_by_id()
        missing = [target for target in target_ids if target not in located]
        if missing:
            raise ChangeNotFound(missing)

        spans = [located[target] for target in target_ids]
        new_text = _apply(text, spans, decision)
        logger.debug("resolved %s (%s) decision=%s", change_id, len(spans), decision)
        return Reconciliation(text=new_text, change_ids=target_ids, decision=decision)

    def resolve_all(self, text: str, decision: Decision) -> Reconciliation:
        """Resolve every well-formed pending span; malformed spans stay untouched."""
        _check_decision(decision)
        parsed = parse_markers(text)
        if parsed.violations:
            logger.warning(
                "resolve_all skipping %d malformed marker(s)", len(parsed.violations)
            )
        new_text = _apply(text, parsed.spans, decision)
        return Reconciliation(
            text=new_text,
            change_ids=[span.change_id for span in parsed.spans],
            decision=decision,
        )


def _check_decision(decision: str) -> None:
    if decision not in _DECISIONS:
        raise ValueError(f"decision must be one of {_DECISIONS}, got {decision!r}")


def _keeps_content(span: MarkerSpan, decision: Decision) -> bool:
    if span.change_type == "insert":
        return decision == "accept"
    return decision == "reject"


def _apply(text: str, spans: Sequence[MarkerSpan], decision: Decision) -> str:
    # Later spans first so offsets of earlier spans stay valid.
    for span in sorted(spans, key=lambda item: item.start, reverse=True):
        if _keeps_content(span, decision):
            text = text[: span.start] + span.content_text(text) + text[span.end :]
        else:
            text = _remove_block(text, span.start, span.end)
    return text


def _remove_block(text: str, start: int, end: int) -> str:
    """Drop text[start:end] and close up the line it occupied."""
    at_line_start = start == 0 or text[start - 1] == "\n"
    if at_line_start:
        if text.startswith("\r\n", end):
            end += 2
        elif text.startswith("\n", end):
            end += 1
        elif end == len(text) and start > 0:
            start -= 2 if text[max(0, start - 2) : start] == "\r\n" else 1
    return text[:start] + text[end:]


__all__ = ["ChangeReconciler"]

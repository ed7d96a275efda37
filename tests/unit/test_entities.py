from __future__ import annotations

from itertools import count

import pytest

from changes.entities import (
    detect_entity_type,
    parse_text_entities,
    propose_changes,
)
from changes.markers import encode_changes
from changes.reconcile import ChangeReconciler

DOC = "# Title\n\nFirst paragraph.\n\n- a\n- b\n\n| x | y |\n| 1 | 2 |\n"


def _ids():
    counter = count(1)
    return lambda: f"id{next(counter)}"


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("# Heading", "heading"),
        ("![alt](img.png)", "image"),
        ("[TABLE-CAPTION: Results]", "caption"),
        ("```python", "code"),
        ("\\[ x^2 \\]", "formula"),
        ("> quoted", "quote"),
        ("- item", "list"),
        ("1. item", "list"),
        ("| a | b |", "table"),
        ("---", "horizontal_rule"),
        ("Plain text.", "paragraph"),
    ],
)
def test_detect_entity_type(line: str, expected: str) -> None:
    assert detect_entity_type([line]) == expected


def test_parse_text_entities_splits_on_blank_lines() -> None:
    entities = parse_text_entities(DOC)
    assert [(e.start_line, e.end_line, e.entity_type) for e in entities] == [
        (1, 1, "heading"),
        (3, 3, "paragraph"),
        (5, 6, "list"),
        (8, 9, "table"),
    ]
    assert entities[2].content == "- a\n- b"


def test_propose_insert_groups_entities() -> None:
    result = propose_changes(DOC, "insert", 3, content="New one.\n\nNew two.", id_factory=_ids())
    assert [change.content for change in result.changes] == ["New one.", "New two."]
    assert {change.group_id for change in result.changes} == {"id1"}
    assert [change.order for change in result.changes] == [0, 1]
    assert all(change.start_line == 3 for change in result.changes)


def test_propose_insert_clamps_anchor() -> None:
    result = propose_changes("A\n", "insert", 99, content="B", id_factory=_ids())
    assert result.changes[0].start_line == 1


def test_propose_delete_targets_intersecting_entities() -> None:
    result = propose_changes(DOC, "delete", 3, 6, id_factory=_ids())
    assert [(c.start_line, c.end_line, c.entity_type) for c in result.changes] == [
        (3, 3, "paragraph"),
        (5, 6, "list"),
    ]
    assert all(change.group_id is None for change in result.changes)


def test_propose_delete_on_blank_range_returns_message() -> None:
    result = propose_changes(DOC, "delete", 2, 2, id_factory=_ids())
    assert result.changes == []
    assert "No entities found" in result.message


def test_propose_replace_round_trips_through_markers() -> None:
    result = propose_changes(DOC, "replace", 3, 3, content="Rewritten.", id_factory=_ids())
    assert [change.change_type for change in result.changes] == ["delete", "insert"]

    encoded = encode_changes(DOC, result.changes)
    reconciler = ChangeReconciler(result.changes)
    accepted = encoded
    for change in result.changes:
        accepted = reconciler.resolve(accepted, change.change_id, "accept").text
    assert accepted == "# Title\n\nRewritten.\n\n- a\n- b\n\n| x | y |\n| 1 | 2 |\n"


def test_propose_requires_content_for_insert() -> None:
    with pytest.raises(ValueError):
        propose_changes(DOC, "insert", 1, content="   ")

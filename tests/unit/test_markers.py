from __future__ import annotations

import pytest

from changes.markers import (
    build_decision_units,
    encode_changes,
    end_marker,
    parse_markers,
    start_marker,
)
from core.errors import MalformedMarkers
from schemas.internal.changes import DocumentEntityChange


def _insert(change_id: str, after: int, content: str, **kwargs) -> DocumentEntityChange:
    return DocumentEntityChange(
        change_id=change_id, change_type="insert", start_line=after, content=content, **kwargs
    )


def _delete(change_id: str, start: int, end: int, content: str = "") -> DocumentEntityChange:
    return DocumentEntityChange(
        change_id=change_id,
        change_type="delete",
        start_line=start,
        end_line=end,
        content=content,
    )


def test_marker_strings() -> None:
    assert start_marker("insert", "abc") == "<!-- AI:INSERT:abc -->"
    assert end_marker("delete", "abc") == "<!-- /AI:DELETE:abc -->"


def test_encode_insert_after_line() -> None:
    encoded = encode_changes("Line1\nLine2\n", [_insert("a1", 1, "New")])
    assert encoded == (
        "Line1\n<!-- AI:INSERT:a1 -->\nNew\n<!-- /AI:INSERT:a1 -->\nLine2\n"
    )


def test_encode_insert_at_top_and_end_without_trailing_newline() -> None:
    assert encode_changes("A", [_insert("t", 0, "X")]) == (
        "<!-- AI:INSERT:t -->\nX\n<!-- /AI:INSERT:t -->\nA"
    )
    assert encode_changes("A", [_insert("e", 1, "X")]) == (
        "A\n<!-- AI:INSERT:e -->\nX\n<!-- /AI:INSERT:e -->"
    )


def test_encode_delete_wraps_original_lines() -> None:
    encoded = encode_changes("Line1\nLine2\nLine3\n", [_delete("d1", 2, 2)])
    assert encoded == (
        "Line1\n<!-- AI:DELETE:d1 -->\nLine2\n<!-- /AI:DELETE:d1 -->\nLine3\n"
    )


def test_encode_line_numbers_refer_to_input_text() -> None:
    text = "A\n\nB\n\nC\n"
    encoded = encode_changes(
        text,
        [_insert("i1", 1, "X"), _delete("d1", 3, 3), _insert("i2", 5, "Y")],
    )
    parsed = parse_markers(encoded)
    assert parsed.is_well_formed
    spans = parsed.spans_by_id()
    assert spans["i1"].content_text(encoded) == "X"
    assert spans["d1"].content_text(encoded) == "B"
    assert spans["i2"].content_text(encoded) == "Y"
    assert [span.change_id for span in parsed.spans] == ["i1", "d1", "i2"]


def test_encode_group_chunks_are_contiguous_and_ordered() -> None:
    changes = [
        _insert("c2", 1, "second", group_id="g", order=1),
        _insert("c1", 1, "first", group_id="g", order=0),
        _insert("c3", 1, "third", group_id="g", order=2),
    ]
    encoded = encode_changes("Top\nBottom\n", changes)
    parsed = parse_markers(encoded)
    assert [span.change_id for span in parsed.spans] == ["c1", "c2", "c3"]
    assert encoded.startswith("Top\n<!-- AI:INSERT:c1 -->")
    assert encoded.endswith("<!-- /AI:INSERT:c3 -->\nBottom\n")


def test_encode_rejects_duplicate_ids_and_conflicts() -> None:
    with pytest.raises(MalformedMarkers):
        encode_changes("A\nB\n", [_insert("x", 1, "1"), _insert("x", 2, "2")])
    with pytest.raises(MalformedMarkers):
        encode_changes("A\nB\nC\n", [_delete("d1", 1, 2), _delete("d2", 2, 3)])
    with pytest.raises(MalformedMarkers):
        encode_changes("A\nB\nC\n", [_delete("d1", 1, 3), _insert("i1", 2, "X")])


def test_encode_delete_on_empty_text_fails() -> None:
    with pytest.raises(ValueError):
        encode_changes("", [_delete("d1", 1, 1)])


def test_parse_round_trip_of_encoded_changes() -> None:
    text = "# Title\n\nBody text.\nSecond line.\n\nTail\n"
    changes = [
        _insert("i1", 1, "Intro paragraph."),
        _insert("i2", 0, "Multi\nline\n\ncontent"),
        _insert("i3", 6, "\nPadded both ends\n"),
        _delete("d1", 3, 4, "Body text.\nSecond line."),
    ]
    encoded = encode_changes(text, changes)
    parsed = parse_markers(encoded)
    assert parsed.is_well_formed
    spans = parsed.spans_by_id()
    assert set(spans) == {"i1", "i2", "i3", "d1"}
    for change in changes:
        span = spans[change.change_id]
        assert (span.change_id, span.change_type, span.content_text(encoded)) == (
            change.change_id,
            change.change_type,
            change.content,
        )


def test_parse_reports_unclosed_start() -> None:
    text = "A\n<!-- AI:INSERT:x -->\nB\n"
    parsed = parse_markers(text)
    assert parsed.spans == []
    assert [item.kind for item in parsed.violations] == ["unclosed_start"]


def test_parse_reports_orphan_end() -> None:
    parsed = parse_markers("A\n<!-- /AI:DELETE:y -->\n")
    assert [item.kind for item in parsed.violations] == ["orphan_end"]
    assert parsed.violations_for("y")


def test_parse_reports_mismatched_type() -> None:
    parsed = parse_markers("<!-- AI:INSERT:z -->\nX\n<!-- /AI:DELETE:z -->\n")
    assert parsed.spans == []
    assert [item.kind for item in parsed.violations] == ["mismatched_type"]


def test_parse_reports_overlapping_spans() -> None:
    text = (
        "<!-- AI:INSERT:a -->\n"
        "<!-- AI:DELETE:b -->\n"
        "X\n"
        "<!-- /AI:INSERT:a -->\n"
        "<!-- /AI:DELETE:b -->\n"
    )
    parsed = parse_markers(text)
    assert parsed.spans == []
    assert {item.change_id for item in parsed.violations} == {"a", "b"}
    assert all(item.kind == "overlapping_span" for item in parsed.violations)


def test_parse_reports_duplicate_ids() -> None:
    text = (
        "<!-- AI:INSERT:a -->\nX\n<!-- /AI:INSERT:a -->\n"
        "<!-- AI:INSERT:a -->\nY\n<!-- /AI:INSERT:a -->\n"
    )
    parsed = parse_markers(text)
    assert parsed.spans == []
    assert [item.kind for item in parsed.violations] == [
        "duplicate_change_id",
        "duplicate_change_id",
    ]


def test_parse_keeps_well_formed_spans_next_to_broken_ones() -> None:
    text = (
        "<!-- AI:INSERT:good -->\nX\n<!-- /AI:INSERT:good -->\n"
        "<!-- AI:DELETE:bad -->\nY\n"
    )
    parsed = parse_markers(text)
    assert [span.change_id for span in parsed.spans] == ["good"]
    assert [item.change_id for item in parsed.violations] == ["bad"]


def test_build_decision_units_groups_chunks() -> None:
    changes = [
        _insert("c1", 1, "one", group_id="g", order=0),
        _insert("c2", 1, "two", group_id="g", order=1),
        _delete("d1", 2, 2, "B"),
        _insert("lost", 0, "never encoded"),
    ]
    encoded = encode_changes("A\nB\n", changes[:3])
    plan = build_decision_units(encoded, changes)

    assert [unit.unit_id for unit in plan.units] == ["g", "d1"]
    assert plan.units[0].change_ids == ["c1", "c2"]
    assert plan.units[0].group_id == "g"
    assert plan.units[1].group_id is None
    assert plan.missing_change_ids == ["lost"]
    assert plan.unknown_change_ids == []


def test_build_decision_units_reports_unknown_spans() -> None:
    encoded = encode_changes("A\n", [_insert("stray", 1, "X")])
    plan = build_decision_units(encoded, [])
    assert plan.units == []
    assert plan.unknown_change_ids == ["stray"]

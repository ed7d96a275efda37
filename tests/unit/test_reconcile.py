from __future__ import annotations

import pytest

from changes.markers import encode_changes
from changes.reconcile import ChangeReconciler
from core.errors import ChangeNotFound, MalformedMarkers
from schemas.internal.changes import DocumentEntityChange

ORIGINAL = "Line1\nLine2\n"


def _insert(change_id: str, after: int, content: str, **kwargs) -> DocumentEntityChange:
    return DocumentEntityChange(
        change_id=change_id, change_type="insert", start_line=after, content=content, **kwargs
    )


def _delete(change_id: str, start: int, end: int) -> DocumentEntityChange:
    return DocumentEntityChange(
        change_id=change_id, change_type="delete", start_line=start, end_line=end
    )


def test_accept_insert_keeps_content_without_markers() -> None:
    encoded = encode_changes(ORIGINAL, [_insert("a1", 1, "New")])
    result = ChangeReconciler().resolve(encoded, "a1", "accept")
    assert result.text == "Line1\nNew\nLine2\n"
    assert result.change_ids == ["a1"]
    assert result.decision == "accept"


def test_reject_insert_restores_original_bytes() -> None:
    encoded = encode_changes(ORIGINAL, [_insert("a1", 1, "New")])
    assert ChangeReconciler().resolve(encoded, "a1", "reject").text == ORIGINAL


def test_reject_delete_restores_original_bytes() -> None:
    encoded = encode_changes(ORIGINAL, [_delete("d1", 2, 2)])
    assert ChangeReconciler().resolve(encoded, "d1", "reject").text == ORIGINAL


def test_accept_delete_removes_lines() -> None:
    encoded = encode_changes("A\nB\nC\n", [_delete("d1", 2, 2)])
    assert ChangeReconciler().resolve(encoded, "d1", "accept").text == "A\nC\n"


def test_reject_insert_at_end_without_trailing_newline() -> None:
    encoded = encode_changes("A", [_insert("e", 1, "X")])
    assert ChangeReconciler().resolve(encoded, "e", "reject").text == "A"
    assert ChangeReconciler().resolve(encoded, "e", "accept").text == "A\nX"


def test_resolving_twice_raises_change_not_found() -> None:
    encoded = encode_changes(ORIGINAL, [_insert("a1", 1, "New")])
    reconciler = ChangeReconciler()
    first = reconciler.resolve(encoded, "a1", "accept")
    with pytest.raises(ChangeNotFound) as excinfo:
        reconciler.resolve(first.text, "a1", "accept")
    assert excinfo.value.change_ids == ["a1"]


def test_group_is_resolved_as_one_unit() -> None:
    changes = [
        _insert("c1", 1, "one", group_id="g", order=0),
        _insert("c2", 1, "two", group_id="g", order=1),
        _insert("c3", 1, "three", group_id="g", order=2),
    ]
    encoded = encode_changes(ORIGINAL, changes)
    reconciler = ChangeReconciler(changes)

    accepted = reconciler.resolve(encoded, "c2", "accept")
    assert accepted.text == "Line1\none\ntwo\nthree\nLine2\n"
    assert accepted.change_ids == ["c1", "c2", "c3"]

    rejected = reconciler.resolve(encoded, "c3", "reject")
    assert rejected.text == ORIGINAL


def test_group_with_missing_member_is_not_applied() -> None:
    changes = [
        _insert("c1", 1, "one", group_id="g", order=0),
        _insert("c2", 1, "two", group_id="g", order=1),
    ]
    encoded = encode_changes(ORIGINAL, changes[:1])
    with pytest.raises(ChangeNotFound) as excinfo:
        ChangeReconciler(changes).resolve(encoded, "c1", "accept")
    assert excinfo.value.change_ids == ["c2"]


def test_malformed_markers_are_rejected() -> None:
    text = "A\n<!-- AI:INSERT:x -->\nB\n"
    with pytest.raises(MalformedMarkers) as excinfo:
        ChangeReconciler().resolve(text, "x", "accept")
    assert excinfo.value.violations[0].kind == "unclosed_start"


def test_resolving_leaves_other_markers_intact() -> None:
    encoded = encode_changes("A\nB\nC\n", [_insert("i1", 1, "X"), _delete("d1", 3, 3)])
    result = ChangeReconciler().resolve(encoded, "i1", "accept")
    assert result.text == "A\nX\nB\n<!-- AI:DELETE:d1 -->\nC\n<!-- /AI:DELETE:d1 -->\n"
    final = ChangeReconciler().resolve(result.text, "d1", "accept")
    assert final.text == "A\nX\nB\n"


def test_resolve_all_applies_every_span() -> None:
    encoded = encode_changes("A\nB\nC\n", [_insert("i1", 0, "Top"), _delete("d1", 2, 2)])
    accepted = ChangeReconciler().resolve_all(encoded, "accept")
    assert accepted.text == "Top\nA\nC\n"
    assert accepted.change_ids == ["i1", "d1"]
    assert ChangeReconciler().resolve_all(encoded, "reject").text == "A\nB\nC\n"


def test_invalid_decision_is_rejected() -> None:
    with pytest.raises(ValueError):
        ChangeReconciler().resolve("text", "x", "maybe")  # type: ignore[arg-type]


CRLF = "Line1\r\nLine2\r\nLine3\r\n"


def test_crlf_delete_reject_and_accept() -> None:
    encoded = encode_changes(CRLF, [_delete("d1", 2, 2)])
    assert encoded == (
        "Line1\r\n<!-- AI:DELETE:d1 -->\nLine2\r\n<!-- /AI:DELETE:d1 -->\nLine3\r\n"
    )
    assert ChangeReconciler().resolve(encoded, "d1", "reject").text == CRLF
    assert ChangeReconciler().resolve(encoded, "d1", "accept").text == "Line1\r\nLine3\r\n"


def test_crlf_insert_reject_and_accept() -> None:
    encoded = encode_changes(CRLF, [_insert("a1", 1, "NewLine")])
    assert ChangeReconciler().resolve(encoded, "a1", "reject").text == CRLF
    accepted = ChangeReconciler().resolve(encoded, "a1", "accept").text
    assert accepted == "Line1\r\nNewLine\nLine2\r\nLine3\r\n"


def test_insert_content_ending_in_carriage_return_survives() -> None:
    encoded = encode_changes(ORIGINAL, [_insert("a1", 1, "Tail\r")])
    accepted = ChangeReconciler().resolve(encoded, "a1", "accept").text
    assert accepted == "Line1\nTail\r\nLine2\n"
    assert ChangeReconciler().resolve(encoded, "a1", "reject").text == ORIGINAL

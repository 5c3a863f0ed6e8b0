from __future__ import annotations

from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
from lib_ini_merge.application.source_index import SourceIndex
from lib_ini_merge.domain.document import OUTSIDE_SECTION

SOURCE = "top=1\n[a]\nx=1\ny=2\nx=3\n[ b ]\nz=4\n[empty]\n[a]\nw=5\n"


def _index() -> SourceIndex:
    return SourceIndex(tokenize(SOURCE))


def test_section_order_is_first_seen() -> None:
    assert _index().section_order() == (OUTSIDE_SECTION, "a", "b", "empty")


def test_preamble_only_listed_when_it_has_keys() -> None:
    assert SourceIndex(tokenize("; c\n[a]\nx=1\n")).section_order() == ("a",)


def test_values_in_document_order_across_repeated_sections() -> None:
    index = _index()
    assert [e.value for e in index.values("a", "x")] == ["1", "3"]
    assert [e.key for e in index.entries("a")] == ["x", "y", "x", "w"]
    assert index.values("a", "missing") == ()


def test_lookup_helpers() -> None:
    index = _index()
    assert index.has_section("empty")
    assert not index.has_section("nope")
    assert index.has_key("b", "z")
    assert index.header_text("b") == "[ b ]"
    assert index.header_text(OUTSIDE_SECTION) is None
    entry = index.values("b", "z")[0]
    assert index.raw_line(entry) == "z=4"
    assert index.property_of(entry).value == "4"


def test_cursor_pairs_occurrences_positionally() -> None:
    cursor = _index().cursor()
    assert cursor.next_value("a", "x").value == "1"
    assert cursor.next_value("a", "x").value == "3"
    assert cursor.next_value("a", "x") is None
    assert cursor.exhausted("a", "x")


def test_remaining_entries_skip_consumed() -> None:
    index = _index()
    cursor = index.cursor()
    cursor.next_value("a", "x")
    assert [(e.key, e.value) for e in cursor.remaining_entries("a")] == [("y", "2"), ("x", "3"), ("w", "5")]
    cursor.consume(index.values("a", "x")[1])
    assert [e.key for e in cursor.remaining_entries("a")] == ["y", "w"]


def test_cursors_are_independent() -> None:
    index = _index()
    first, second = index.cursor(), index.cursor()
    first.next_value("b", "z")
    assert second.next_value("b", "z").value == "4"

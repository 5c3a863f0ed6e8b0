"""Random-access index over the source document.

Purpose
-------
The target is processed linearly, but the source must be queried by
``(section, key)``. :class:`SourceIndex` is built in one pass over the source
tokens and keeps every occurrence of a key in document order, so duplicate
keys can be paired positionally with the target's occurrences.

Contents
--------
* :class:`SourceIndex` – immutable index: values per key, entries per section,
  section discovery order and header lines.
* :class:`MergeCursor` – per-run consumption state over one index.

System Role
-----------
The index is shared and read-only; each merge run creates its own
:class:`MergeCursor`, which makes one index safe to reuse across independent
runs on separate threads.
"""

from __future__ import annotations

from typing import Iterator

from ..domain.document import OUTSIDE_SECTION, Document, Entry, Property, TokenKind
from ..observability import log_debug, make_event


class SourceIndex:
    """Lookup structure over a parsed source document.

    Examples
    --------
    >>> from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
    >>> index = SourceIndex(tokenize("top=1\\n[a]\\nx=1\\nx=2\\n[b]\\ny=3\\n"))
    >>> index.section_order()
    ('<NO_SECTION>', 'a', 'b')
    >>> [entry.value for entry in index.values("a", "x")]
    ['1', '2']
    """

    __slots__ = ("_document", "_values", "_sections", "_headers", "_order")

    def __init__(self, document: Document) -> None:
        self._document = document
        values: dict[tuple[str, str], list[Entry]] = {}
        sections: dict[str, list[Entry]] = {}
        headers: dict[str, int] = {}
        order: list[str] = []

        for index, token in enumerate(document.tokens):
            if token.kind is TokenKind.SECTION:
                name = document.section_of(token)
                if name not in headers:
                    headers[name] = index
                    sections.setdefault(name, [])
                    if name not in order:
                        order.append(name)

        for entry in document.entries():
            if entry.section == OUTSIDE_SECTION and OUTSIDE_SECTION not in order:
                order.insert(0, OUTSIDE_SECTION)
            values.setdefault((entry.section, entry.key), []).append(entry)
            sections.setdefault(entry.section, []).append(entry)

        self._values = {key: tuple(entries) for key, entries in values.items()}
        self._sections = {name: tuple(entries) for name, entries in sections.items()}
        self._headers = headers
        self._order = tuple(order)
        log_debug(
            "source_indexed",
            **make_event("source", None, {"sections": len(self._order), "keys": len(self._values)}),
        )

    @property
    def document(self) -> Document:
        return self._document

    def section_order(self) -> tuple[str, ...]:
        """Return sections in first-seen order (``OUTSIDE_SECTION`` first when it holds keys)."""

        return self._order

    def has_section(self, section: str) -> bool:
        return section in self._sections

    def has_key(self, section: str, key: str) -> bool:
        return (section, key) in self._values

    def values(self, section: str, key: str) -> tuple[Entry, ...]:
        """Return every occurrence of *key* in *section*, in document order."""

        return self._values.get((section, key), ())

    def entries(self, section: str) -> tuple[Entry, ...]:
        """Return every entry of *section*, in document order."""

        return self._sections.get(section, ())

    def header_text(self, section: str) -> str | None:
        """Return the source's header line for *section* (without terminator)."""

        index = self._headers.get(section)
        if index is None:
            return None
        return self._document.line_text(self._document.tokens[index])

    def raw_line(self, entry: Entry) -> str:
        """Return the source line of *entry* without its terminator."""

        return self._document.line_text(self._document.tokens[entry.index])

    def property_of(self, entry: Entry) -> Property:
        return Property(entry.section, entry.key, entry.value, self.raw_line(entry))

    def cursor(self) -> MergeCursor:
        """Return fresh consumption state for one merge run."""

        return MergeCursor(self)


class MergeCursor:
    """Per-run consumption cursor over a :class:`SourceIndex`.

    ``next_value`` pairs the n-th target occurrence of a key with the n-th
    source occurrence; ``remaining_entries`` lists what no target occurrence
    consumed.
    """

    __slots__ = ("_index", "_positions")

    def __init__(self, index: SourceIndex) -> None:
        self._index = index
        self._positions: dict[tuple[str, str], int] = {}

    @property
    def index(self) -> SourceIndex:
        return self._index

    def next_value(self, section: str, key: str) -> Entry | None:
        """Return the entry at the cursor for *key* and advance; ``None`` when exhausted."""

        values = self._index.values(section, key)
        position = self._positions.get((section, key), 0)
        if position >= len(values):
            return None
        self._positions[(section, key)] = position + 1
        return values[position]

    def consume(self, entry: Entry) -> None:
        """Mark *entry* (and every earlier occurrence of its key) as consumed."""

        slot = (entry.section, entry.key)
        self._positions[slot] = max(self._positions.get(slot, 0), entry.occurrence + 1)

    def exhausted(self, section: str, key: str) -> bool:
        return self._positions.get((section, key), 0) >= len(self._index.values(section, key))

    def remaining_entries(self, section: str) -> Iterator[Entry]:
        """Yield entries of *section* not yet consumed, in source document order."""

        for entry in self._index.entries(section):
            if entry.occurrence >= self._positions.get((entry.section, entry.key), 0):
                yield entry

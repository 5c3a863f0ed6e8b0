"""Arena-backed document model for INI texts.

Purpose
-------
Represent a parsed INI text without copying it: the original ``str`` is stored
once (the arena) and every token refers into it through :class:`Span` offsets.
Higher layers (source index, merge engine, filter engine) hold token indices
and spans rather than owned line copies, so untouched regions of the output
are cut straight out of the original text.

Contents
--------
* :data:`OUTSIDE_SECTION` – section name used for keys before the first header.
* :class:`Span` – half-open ``[start, end)`` offsets into a document's text.
* :class:`TokenKind` / :class:`Token` – structural items of one line.
* :class:`Document` – the arena plus its ordered tokens and accessors.
* :class:`Entry` – one key/value occurrence, located by token index.
* :class:`Property` – read-only view handed to transform directives.

System Role
-----------
Produced by :mod:`lib_ini_merge.adapters.tokenizer.roundtrip` and consumed by
the application layer. Contains no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Iterator

OUTSIDE_SECTION: Final[str] = "<NO_SECTION>"
"""Section name for keys that precede the first header.

Rules may match it like any other section name; it is never written as a
header.
"""


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open ``[start, end)`` range of offsets into a document text."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start


class TokenKind(Enum):
    """Structural category of a tokenized line."""

    SECTION = "section"
    PROPERTY = "property"
    COMMENT = "comment"
    BLANK = "blank"


@dataclass(frozen=True, slots=True)
class Token:
    """One line of a document, described by spans into the arena.

    Attributes
    ----------
    kind:
        Structural category.
    number:
        1-based line number.
    line:
        Line content without its terminator.
    eol:
        The line terminator (``\\n``, ``\\r\\n``, ``\\r``); empty on a final
        unterminated line.
    name:
        Section name (headers only).
    key / value:
        Trimmed key and value (properties only). ``value`` is ``None`` for a
        bare key without ``=``.
    """

    kind: TokenKind
    number: int
    line: Span
    eol: Span
    name: Span | None = None
    key: Span | None = None
    value: Span | None = None


@dataclass(frozen=True, slots=True)
class Entry:
    """A key/value occurrence inside a document.

    ``index`` points at the property token in :attr:`Document.tokens`;
    ``occurrence`` numbers repeated keys of the same section from 0.
    """

    section: str
    key: str
    value: str | None
    index: int
    occurrence: int


@dataclass(frozen=True, slots=True)
class Property:
    """Read-only description of one property passed to transform directives.

    Attributes
    ----------
    section / key:
        Trimmed location of the property.
    value:
        Trimmed value, ``None`` for a bare key.
    raw:
        The complete original line without its terminator.
    """

    section: str
    key: str
    value: str | None
    raw: str


@dataclass(frozen=True, slots=True)
class Document:
    """Immutable parsed text: the arena plus its ordered tokens.

    Examples
    --------
    >>> from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
    >>> doc = tokenize("[a]\\nkey = value\\n")
    >>> doc.key_of(doc.tokens[1]), doc.value_of(doc.tokens[1])
    ('key', 'value')
    >>> doc.raw(doc.tokens[1])
    'key = value\\n'
    """

    text: str
    tokens: tuple[Token, ...]

    def slice(self, span: Span) -> str:
        """Return the text covered by *span*."""

        return self.text[span.start : span.end]

    def raw(self, token: Token) -> str:
        """Return the complete original text of *token* including its terminator."""

        return self.text[token.line.start : token.eol.end]

    def line_text(self, token: Token) -> str:
        """Return the text of *token* without its terminator."""

        return self.slice(token.line)

    def eol_of(self, token: Token) -> str:
        return self.slice(token.eol)

    def key_of(self, token: Token) -> str:
        if token.key is None:
            raise ValueError(f"Token on line {token.number} is not a property")
        return self.slice(token.key)

    def value_of(self, token: Token) -> str | None:
        return None if token.value is None else self.slice(token.value)

    def section_of(self, token: Token) -> str:
        if token.name is None:
            raise ValueError(f"Token on line {token.number} is not a section header")
        return self.slice(token.name)

    def separator_of(self, token: Token) -> str | None:
        """Return the text between key and value (``" = "`` in ``a = 1``), ``None`` for bare keys."""

        if token.key is None or token.value is None:
            return None
        return self.text[token.key.end : token.value.start]

    def property_of(self, section: str, token: Token) -> Property:
        return Property(section, self.key_of(token), self.value_of(token), self.line_text(token))

    @property
    def newline(self) -> str:
        """Return the first line terminator used in the text, ``"\\n"`` when there is none."""

        for token in self.tokens:
            if len(token.eol):
                return self.slice(token.eol)
        return "\n"

    def entries(self) -> Iterator[Entry]:
        """Yield every property in document order with its section and occurrence number."""

        section = OUTSIDE_SECTION
        counts: dict[tuple[str, str], int] = {}
        for index, token in enumerate(self.tokens):
            if token.kind is TokenKind.SECTION:
                section = self.section_of(token)
            elif token.kind is TokenKind.PROPERTY:
                key = self.key_of(token)
                occurrence = counts.get((section, key), 0)
                counts[(section, key)] = occurrence + 1
                yield Entry(section, key, self.value_of(token), index, occurrence)

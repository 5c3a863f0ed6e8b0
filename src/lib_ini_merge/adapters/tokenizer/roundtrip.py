"""Lossless INI tokenizer.

Purpose
-------
Implement the :class:`lib_ini_merge.application.ports.Tokenizer` port: turn a
text into a :class:`~lib_ini_merge.domain.document.Document` whose tokens cover
every character of the input exactly once, so concatenating the raw text of
all tokens reproduces the input byte-for-byte.

Grammar
-------
* blank line: only whitespace;
* comment: first non-blank character is ``;`` or ``#``;
* section header: first non-blank character is ``[``; the name is the trimmed
  text between that ``[`` and the last ``]`` on the line;
* property: ``key = value`` split at the first ``=`` (both sides trimmed), or a
  bare ``key`` without ``=``.

Line terminators ``\\n``, ``\\r\\n`` and ``\\r`` are recognised and kept as-is.
A header without a closing ``]`` and a property with an empty key raise
:class:`~lib_ini_merge.domain.errors.ParseError`.
"""

from __future__ import annotations

import re
from typing import Final, NoReturn

from ...domain.document import Document, Span, Token, TokenKind
from ...domain.errors import ParseError
from ...observability import log_error

_LINE: Final[re.Pattern[str]] = re.compile(r"([^\r\n]*)(\r\n|\r|\n)?")
_COMMENT_MARKERS: Final[tuple[str, ...]] = (";", "#")


class RoundTripTokenizer:
    """Tokenize INI text into an arena-backed :class:`Document`."""

    def tokenize(self, text: str) -> Document:
        """Return the document for *text* or raise :class:`ParseError`.

        Examples
        --------
        >>> doc = RoundTripTokenizer().tokenize("; hi\\r\\n[s]\\r\\na=1")
        >>> [token.kind.value for token in doc.tokens]
        ['comment', 'section', 'property']
        >>> "".join(doc.raw(token) for token in doc.tokens)
        '; hi\\r\\n[s]\\r\\na=1'
        """

        tokens: list[Token] = []
        position = 0
        number = 0
        while position < len(text):
            match = _LINE.match(text, position)
            assert match is not None  # the pattern matches the empty string
            number += 1
            body_end = match.end(1)
            tokens.append(_classify(text, number, Span(position, body_end), Span(body_end, match.end())))
            position = match.end()
        return Document(text, tuple(tokens))


def tokenize(text: str) -> Document:
    """Tokenize *text* with a default :class:`RoundTripTokenizer`."""

    return RoundTripTokenizer().tokenize(text)


def _classify(text: str, number: int, line: Span, eol: Span) -> Token:
    """Build the token for one line occupying *line* (terminator in *eol*)."""

    start, end = _trim(text, line.start, line.end)
    if start == end:
        return Token(TokenKind.BLANK, number, line, eol)
    first = text[start]
    if first in _COMMENT_MARKERS:
        return Token(TokenKind.COMMENT, number, line, eol)
    if first == "[":
        return _section(text, number, line, eol, start, end)
    return _property(text, number, line, eol, start, end)


def _section(text: str, number: int, line: Span, eol: Span, start: int, end: int) -> Token:
    close = text.rfind("]", start + 1, end)
    if close == -1:
        _fail("Unterminated section header", text, number, line, end)
    name_start, name_end = _trim(text, start + 1, close)
    return Token(TokenKind.SECTION, number, line, eol, name=Span(name_start, name_end))


def _property(text: str, number: int, line: Span, eol: Span, start: int, end: int) -> Token:
    equals = text.find("=", start, end)
    if equals == -1:
        return Token(TokenKind.PROPERTY, number, line, eol, key=Span(start, end))
    key_start, key_end = _trim(text, start, equals)
    if key_start == key_end:
        _fail("Property without a key", text, number, line, equals)
    value_start, value_end = _trim(text, equals + 1, end)
    return Token(
        TokenKind.PROPERTY,
        number,
        line,
        eol,
        key=Span(key_start, key_end),
        value=Span(value_start, value_end),
    )


def _trim(text: str, start: int, end: int) -> tuple[int, int]:
    """Return ``(start, end)`` narrowed to exclude surrounding whitespace.

    An all-whitespace range collapses to ``(end, end)``.
    """

    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _fail(message: str, text: str, number: int, line: Span, offset: int) -> NoReturn:
    content = text[line.start : line.end]
    column = offset - line.start + 1
    log_error("ini_parse_failed", line=number, column=column, reason=message)
    raise ParseError(message, line=number, column=column, text=content)

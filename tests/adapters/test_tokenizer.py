from __future__ import annotations

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_ini_merge.adapters.tokenizer.roundtrip import RoundTripTokenizer, tokenize
from lib_ini_merge.domain.document import TokenKind
from lib_ini_merge.domain.errors import ParseError

LINE = st.one_of(
    st.just(""),
    st.just("   "),
    st.just("; comment"),
    st.just("# other comment"),
    st.builds(lambda name: f"[{name}]", st.text(alphabet="abcXYZ _.", min_size=1, max_size=8)),
    st.builds(
        lambda key, sep, value: f"{key}{sep}{value}",
        st.text(alphabet="abcxyz_", min_size=1, max_size=6),
        st.sampled_from(["=", " = ", "= ", " ="]),
        st.text(alphabet="abc 123,;#", max_size=10),
    ),
)
EOL = st.sampled_from(["\n", "\r\n", "\r"])


def _classify(text: str) -> list[str]:
    return [token.kind.value for token in tokenize(text).tokens]


def test_kinds_per_line() -> None:
    text = "; comment\n# hash\n\n[General]\nkey=value\nflag\n"
    assert _classify(text) == ["comment", "comment", "blank", "section", "property", "property"]


def test_header_name_is_trimmed() -> None:
    doc = tokenize("  [  Window  ]  \n")
    assert doc.section_of(doc.tokens[0]) == "Window"


def test_header_may_contain_brackets() -> None:
    doc = tokenize("[a[1]]\n")
    assert doc.section_of(doc.tokens[0]) == "a[1]"


def test_value_keeps_internal_equals_and_spaces() -> None:
    doc = tokenize("url = http://h/?a=b c\n")
    assert doc.key_of(doc.tokens[0]) == "url"
    assert doc.value_of(doc.tokens[0]) == "http://h/?a=b c"


def test_empty_value_is_not_bare() -> None:
    doc = tokenize("key=\n")
    assert doc.value_of(doc.tokens[0]) == ""


def test_last_line_without_terminator() -> None:
    doc = tokenize("a=1\nb=2")
    assert doc.eol_of(doc.tokens[-1]) == ""
    assert doc.raw(doc.tokens[-1]) == "b=2"


def test_unterminated_header_raises_with_position(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_ini_merge")
    with pytest.raises(ParseError) as excinfo:
        RoundTripTokenizer().tokenize("a=1\n[broken\n")
    assert excinfo.value.line == 2
    assert excinfo.value.text == "[broken"
    assert caplog.records[-1].getMessage() == "ini_parse_failed"


def test_missing_key_raises() -> None:
    with pytest.raises(ParseError) as excinfo:
        tokenize("[a]\n  = value\n")
    assert excinfo.value.line == 2
    assert excinfo.value.column == 3


@given(st.lists(st.tuples(LINE, EOL), max_size=12), st.booleans())
def test_tokens_cover_the_text_losslessly(lines, trailing) -> None:
    text = "".join(line + eol for line, eol in lines)
    if lines and not trailing:
        text = text[: -len(lines[-1][1])]
    doc = tokenize(text)
    assert "".join(doc.raw(token) for token in doc.tokens) == text
    assert all(token.kind in TokenKind for token in doc.tokens)

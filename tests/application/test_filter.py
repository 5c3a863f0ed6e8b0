from __future__ import annotations

import logging
from textwrap import dedent

import pytest

from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
from lib_ini_merge.application.filter import REMOVE, Replace, filter_rule_set, iter_filter
from lib_ini_merge.domain.rules import Rule

INPUT = dedent(
    """\
    ; A comment
    a=1
    b_removed=2
    c_replaced=3

    [s1]
    ; d
    a = 42
    b_removed=43
    c_replaced=44
    aa_replaced =42
    aaa_replaced= 42
    aaa_replaced   =  42

    [s2_removed]
    a = 42
    d

    [s3_replaced]
    a = 42
    c_replaced=HIDDEN
    d

    [s5]
    b = c
    ; Literally matched (removed)

    [s4]
    b = c
    ; Literally matched

    """
)

EXPECTED = dedent(
    """\
    ; A comment
    a=1
    c_replaced=HIDDEN

    [s1]
    ; d
    a = 42
    c_replaced=HIDDEN
    aa_replaced =HIDDEN
    aaa_replaced= HIDDEN
    aaa_replaced   =  HIDDEN

    [s3_replaced]
    a = HIDDEN
    c_replaced=HIDDEN
    d

    """
)


def _filter(text: str, rules) -> str:
    return "".join(iter_filter(tokenize(text), rules))


def test_remove_and_replace_across_sections() -> None:
    hidden = Replace("HIDDEN")
    rules = filter_rule_set(
        [
            ("s4", None, REMOVE),
            ("s5", "b", REMOVE),
            Rule.of(".*", ".*_replaced", hidden, regex=True),
            Rule.of(".*", ".*_removed", REMOVE, regex=True),
            Rule.of(".*_removed", ".*", REMOVE, regex=True),
            Rule.of(".*_replaced", ".*", hidden, regex=True),
        ],
        warn_on_overlap=False,
    )
    assert _filter(INPUT, rules) == EXPECTED


def test_no_rules_is_identity() -> None:
    assert _filter(INPUT, filter_rule_set()) == INPUT


def test_section_wide_remove_drops_header_comments_and_blanks() -> None:
    text = "[keep]\na=1\n[drop]\n; note\nb=2\n\n[tail]\nc=3\n"
    assert _filter(text, filter_rule_set([("drop", None, REMOVE)])) == "[keep]\na=1\n[tail]\nc=3\n"


def test_keyed_rule_before_section_remove_keeps_header() -> None:
    rules = filter_rule_set([("a", "tok", Replace("HIDDEN")), ("a", None, REMOVE)], warn_on_overlap=False)
    assert _filter("[z]\nq=0\n[a]\ntok=1\nx=2\n", rules) == "[z]\nq=0\n[a]\ntok=HIDDEN\n"


def test_section_remove_after_keyed_rule_drops_section_without_kept_keys() -> None:
    rules = filter_rule_set([("a", "tok", Replace("HIDDEN")), ("a", None, REMOVE)], warn_on_overlap=False)
    assert _filter("[z]\nq=0\n[a]\n; note\nx=2\n", rules) == "[z]\nq=0\n"


def test_header_held_until_first_kept_key() -> None:
    text = "[a]\n; about token\ntoken=1\n; trailing\nuser=me\n"
    result = _filter(text, filter_rule_set([("a", "token", REMOVE)]))
    assert result == "[a]\n; about token\n; trailing\nuser=me\n"


def test_replace_keeps_crlf_terminators() -> None:
    text = "[a]\r\ntoken = abc\r\n"
    result = _filter(text, filter_rule_set([("a", "token", Replace("x"))]))
    assert result == "[a]\r\ntoken = x\r\n"


def test_completion_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_ini_merge")
    _filter("[a]\nx=1\n", filter_rule_set([("a", "x", REMOVE)]))
    record = caplog.records[-1]
    assert record.getMessage() == "filter_completed"
    assert getattr(record, "context")["removed_keys"] == 1

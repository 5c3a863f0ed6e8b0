from __future__ import annotations

import logging

import pytest

from lib_ini_merge.domain.errors import PatternError
from lib_ini_merge.domain.rules import (
    COPY_FROM_SOURCE,
    DELETE,
    IGNORE,
    PRESERVE,
    ExactLiteral,
    Pattern,
    Rule,
    RuleSet,
    RuleSetBuilder,
    Secret,
    SetValue,
    literal,
    matcher,
    pattern,
)


def test_literal_matches_exactly_and_case_sensitively() -> None:
    assert literal("Theme").matches("Theme")
    assert not literal("Theme").matches("theme")
    assert not literal("Theme").matches("Theme2")


def test_pattern_uses_full_match_semantics() -> None:
    compiled = pattern("recent.*")
    assert compiled.matches("recentFiles")
    assert not compiled.matches("mostrecentFiles")


def test_invalid_pattern_raises_pattern_error() -> None:
    with pytest.raises(PatternError):
        pattern("recent(")


def test_matcher_selects_variant_once() -> None:
    assert isinstance(matcher("x"), ExactLiteral)
    assert isinstance(matcher("x.*", regex=True), Pattern)
    existing = literal("y")
    assert matcher(existing, regex=True) is existing


def test_first_matching_rule_wins() -> None:
    rules = RuleSet(
        [
            Rule.of("General", "recent.*", IGNORE, regex=True),
            ("General", "recentFiles", DELETE),
        ],
        warn_on_overlap=False,
    )
    assert rules.match("General", "recentFiles") == IGNORE


def test_default_is_copy_from_source() -> None:
    rules = RuleSet([("General", "x", PRESERVE)])
    assert rules.match("Other", "x") == COPY_FROM_SOURCE
    assert rules.default == COPY_FROM_SOURCE


def test_section_wide_rule_applies_to_every_key() -> None:
    rules = RuleSet([("Cache", None, DELETE)])
    assert rules.match("Cache", "anything") == DELETE
    assert rules.section_directive("Cache") == DELETE
    assert rules.section_directive("Other") is None


def test_keyed_rule_is_not_section_wide() -> None:
    rules = RuleSet([Rule.of(".*", ".*", DELETE, regex=True)])
    assert rules.section_directive("Any") is None


def test_overlap_warning_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_ini_merge")
    rules = RuleSet([("a", "b", IGNORE), ("a", None, DELETE)])
    assert rules.match("a", "b") == IGNORE
    assert [record.getMessage() for record in caplog.records] == ["rule_overlap"]


def test_overlap_warning_logged_once_per_pair(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_ini_merge")
    rules = RuleSet([Rule.of("a", "b.*", IGNORE, regex=True), ("a", None, DELETE)])
    for _ in range(3):
        rules.match("a", "b1")
    rules.match("a", "b2")
    keys = [getattr(record, "context")["key"] for record in caplog.records]
    assert keys == ["b1", "b2"]


def test_keyed_rule_declared_first_shadows_section_wide_rule() -> None:
    rules = RuleSet([("Cache", "keep", IGNORE), ("Cache", None, DELETE)], warn_on_overlap=False)
    assert rules.section_directive("Cache") is None
    assert rules.section_fallback("Cache") == DELETE
    assert rules.match("Cache", "keep") == IGNORE
    assert rules.match("Cache", "other") == DELETE


def test_section_wide_rule_declared_first_governs_section() -> None:
    rules = RuleSet([("Cache", None, DELETE), ("Cache", "keep", IGNORE)], warn_on_overlap=False)
    assert rules.section_directive("Cache") == DELETE
    assert rules.match("Cache", "keep") == DELETE


def test_overlap_warning_can_be_disabled(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_ini_merge")
    rules = RuleSetBuilder().ignore("a", "b").delete("a").warn_on_overlap(False).build()
    rules.match("a", "b")
    assert not caplog.records


def test_secret_account_template() -> None:
    directive = Secret("mail", "{section}:{key}")
    assert directive.account_for("Account", "password") == "Account:password"
    assert Secret("mail").account_for("Account", "password") == "password"


@pytest.mark.parametrize("account", ["{user}", "{key"])
def test_secret_rejects_bad_account_template(account: str) -> None:
    with pytest.raises(PatternError):
        Secret("mail", account)


def test_secret_rejects_unknown_policy() -> None:
    with pytest.raises(PatternError):
        Secret("mail", on_error="ignore")  # type: ignore[arg-type]


def test_forced_keys_collect_literal_set_rules_in_order() -> None:
    rules = (
        RuleSetBuilder()
        .set_value("General", "b", "2")
        .set_value("General", "a", "1")
        .set_value("Other", "c", "3")
        .add("General", "d.*", SetValue("4"), regex=True)
        .build()
    )
    assert rules.forced_keys("General") == ("b", "a")
    assert rules.forced_sections() == ("General", "Other")
    assert rules.forced_keys("Missing") == ()


def test_builder_preserves_declared_order() -> None:
    rules = RuleSetBuilder().copy("a", "x").ignore("a").preserve("b").delete("c", "z").build()
    assert [rule.directive for rule in rules] == [COPY_FROM_SOURCE, IGNORE, PRESERVE, DELETE]
    assert len(rules) == 4

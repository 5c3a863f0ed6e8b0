"""Rule set and directive matching.

Purpose
-------
Classify every ``(section, key)`` pair met during a merge (or a filter pass)
into a directive. Rules are evaluated in declared order and the first match
wins; there is no specificity resolution, so broader rules placed earlier
shadow narrower ones placed later.

Contents
--------
* :class:`ExactLiteral` / :class:`Pattern` – the closed matcher capability
  (``Matcher = ExactLiteral | Pattern``), selected once at construction.
* :func:`literal` / :func:`pattern` / :func:`matcher` – matcher factories.
* Directive variants: :class:`CopyFromSource`, :class:`Ignore`,
  :class:`Preserve`, :class:`Delete`, :class:`Secret`, :class:`SetValue`,
  :class:`Transform`; filter variants :class:`Keep`, :class:`Remove`,
  :class:`Replace`.
* :class:`Rule` – section matcher, optional key matcher and directive.
* :class:`RuleSet` – immutable, ordered, first-match-wins classifier.
* :class:`RuleSetBuilder` – fluent construction helper.

System Role
-----------
Built once per merge invocation (by callers or by the rule file loaders) and
read-only afterwards; the same instance may be shared by independent merge
runs on separate threads.
"""

from __future__ import annotations

import re
import string
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Iterable, Iterator, Literal, Union

from .errors import PatternError
from ..observability import log_warning

if TYPE_CHECKING:
    from ..application.ports import Transformer


@dataclass(frozen=True, slots=True)
class ExactLiteral:
    """Match one name exactly (case-sensitive)."""

    text: str

    def matches(self, candidate: str) -> bool:
        return candidate == self.text


@dataclass(frozen=True, slots=True)
class Pattern:
    """Match names against a regular expression using full-match semantics."""

    source: str
    compiled: re.Pattern[str] = field(repr=False, compare=False)

    def matches(self, candidate: str) -> bool:
        return self.compiled.fullmatch(candidate) is not None


Matcher = Union[ExactLiteral, Pattern]


def literal(text: str) -> ExactLiteral:
    return ExactLiteral(text)


def pattern(source: str) -> Pattern:
    """Compile *source* into a :class:`Pattern` or raise :class:`PatternError`.

    Examples
    --------
    >>> pattern("recent.*").matches("recentFiles")
    True
    >>> pattern("recent(")  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    lib_ini_merge.domain.errors.PatternError: Invalid pattern 'recent(': ...
    """

    try:
        compiled = re.compile(source)
    except re.error as exc:
        raise PatternError(f"Invalid pattern {source!r}: {exc}") from exc
    return Pattern(source, compiled)


def matcher(value: Matcher | str, *, regex: bool = False) -> Matcher:
    """Return *value* as a matcher; strings become literals (or patterns when *regex*)."""

    if isinstance(value, (ExactLiteral, Pattern)):
        return value
    return pattern(value) if regex else literal(value)


@dataclass(frozen=True, slots=True)
class CopyFromSource:
    """Take the source value (the implied directive when no rule matches)."""


@dataclass(frozen=True, slots=True)
class Ignore:
    """Never touch the target value, whatever the source says."""


@dataclass(frozen=True, slots=True)
class Preserve:
    """Keep the target value and never add the key from the source."""


@dataclass(frozen=True, slots=True)
class Delete:
    """Remove the key from the output and never add it from the source.

    A section-wide ``Delete`` (rule without key matcher) removes the whole
    section: header, comments, blank lines and keys. When a keyed rule
    declared earlier also covers the section, keys are judged one by one and
    the header stays as long as one of them survives.
    """


SecretErrorPolicy = Literal["fail", "keep"]

_ACCOUNT_FIELDS: Final[frozenset[str]] = frozenset({"section", "key"})


@dataclass(frozen=True, slots=True)
class Secret:
    """Resolve the value from a secret store.

    Attributes
    ----------
    service:
        Service name handed to the resolver.
    account:
        Account template expanded with ``{section}`` and ``{key}``.
    on_error:
        ``"fail"`` aborts the merge on lookup failure; ``"keep"`` keeps the
        target's existing value and records a warning.
    """

    service: str
    account: str = "{key}"
    on_error: SecretErrorPolicy = "fail"

    def __post_init__(self) -> None:
        if self.on_error not in ("fail", "keep"):
            raise PatternError(f"Unknown secret error policy {self.on_error!r}; expected 'fail' or 'keep'")
        try:
            fields = {name for _, name, _, _ in string.Formatter().parse(self.account) if name is not None}
        except ValueError as exc:
            raise PatternError(f"Invalid account template {self.account!r}: {exc}") from exc
        unknown = fields - _ACCOUNT_FIELDS
        if unknown:
            raise PatternError(
                f"Account template {self.account!r} uses unknown fields {sorted(unknown)}; "
                "only {section} and {key} are available"
            )

    def account_for(self, section: str, key: str) -> str:
        """Expand the account template for one location.

        Examples
        --------
        >>> Secret("mail", "{section}/{key}").account_for("Account", "password")
        'Account/password'
        """

        return self.account.format(section=section, key=key)


@dataclass(frozen=True, slots=True)
class SetValue:
    """Force a fixed value; the key is added even when absent from both files.

    ``separator`` is used when the line is written from scratch.
    """

    value: str
    separator: str = "="


@dataclass(frozen=True, slots=True)
class Transform:
    """Delegate the line decision to a :class:`~lib_ini_merge.application.ports.Transformer`."""

    transformer: "Transformer"


@dataclass(frozen=True, slots=True)
class Keep:
    """Leave the line untouched (the implied filter directive)."""


@dataclass(frozen=True, slots=True)
class Remove:
    """Drop the line (or, section-wide, the whole section)."""


@dataclass(frozen=True, slots=True)
class Replace:
    """Replace the value of matching keys with :attr:`value`."""

    value: str


Directive = Union[CopyFromSource, Ignore, Preserve, Delete, Secret, SetValue, Transform, Keep, Remove, Replace]

COPY_FROM_SOURCE: Final[CopyFromSource] = CopyFromSource()
IGNORE: Final[Ignore] = Ignore()
PRESERVE: Final[Preserve] = Preserve()
DELETE: Final[Delete] = Delete()


@dataclass(frozen=True, slots=True)
class Rule:
    """A section matcher, an optional key matcher and the directive they select.

    A rule without key matcher applies to every key of the matching sections.
    """

    section: Matcher
    key: Matcher | None
    directive: Directive

    @classmethod
    def of(
        cls, section: Matcher | str, key: Matcher | str | None, directive: Directive, *, regex: bool = False
    ) -> Rule:
        """Build a rule from strings or matchers; *regex* turns strings into patterns."""

        return cls(
            matcher(section, regex=regex),
            None if key is None else matcher(key, regex=regex),
            directive,
        )

    def applies(self, section: str, key: str | None) -> bool:
        """Return ``True`` when this rule covers *key* in *section*.

        ``key=None`` asks about the section as a whole, which only section-wide
        rules answer.
        """

        if not self.section.matches(section):
            return False
        if self.key is None:
            return True
        return key is not None and self.key.matches(key)


RuleLike = Union[Rule, "tuple[Matcher | str, Matcher | str | None, Directive]"]


class RuleSet:
    """Ordered, immutable collection of rules with first-match-wins lookup.

    Parameters
    ----------
    rules:
        :class:`Rule` instances or ``(section, key, directive)`` tuples; strings
        in tuples are exact literals.
    default:
        Directive returned when no rule matches (``CopyFromSource`` for merges).
    warn_on_overlap:
        Log a ``rule_overlap`` warning the first time more than one rule
        matches a ``(section, key)`` pair.

    Examples
    --------
    >>> rules = RuleSet([
    ...     ("General", "lastOpened", IGNORE),
    ...     Rule.of("General", ".*", DELETE, regex=True),
    ... ], warn_on_overlap=False)
    >>> rules.match("General", "lastOpened")
    Ignore()
    >>> rules.match("General", "theme")
    Delete()
    >>> rules.match("Window", "width")
    CopyFromSource()
    """

    __slots__ = ("_rules", "_default", "_warn_on_overlap", "_forced", "_warned", "_warned_lock")

    def __init__(
        self,
        rules: Iterable[RuleLike] = (),
        *,
        default: Directive = COPY_FROM_SOURCE,
        warn_on_overlap: bool = True,
    ) -> None:
        self._rules: tuple[Rule, ...] = tuple(_as_rule(item) for item in rules)
        self._default = default
        self._warn_on_overlap = warn_on_overlap
        self._forced = _collect_forced(self._rules)
        self._warned: set[tuple[str, str]] = set()
        self._warned_lock = threading.Lock()

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet({list(self._rules)!r})"

    @property
    def default(self) -> Directive:
        return self._default

    def match(self, section: str, key: str) -> Directive:
        """Return the directive of the first rule covering *key* in *section*."""

        found: Rule | None = None
        for rule in self._rules:
            if not rule.applies(section, key):
                continue
            if found is None:
                found = rule
                if not self._warn_on_overlap:
                    break
            else:
                self._warn_overlap(section, key)
                break
        return self._default if found is None else found.directive

    def section_directive(self, section: str) -> Directive | None:
        """Return the directive that governs *section* as a whole, else ``None``.

        That is the first section-wide rule matching *section*, unless a keyed
        rule declared before it also covers the section; keys then have to be
        judged one at a time through :meth:`match`.

        Examples
        --------
        >>> RuleSet([("Cache", None, DELETE)]).section_directive("Cache")
        Delete()
        >>> RuleSet([("Cache", "keep", IGNORE), ("Cache", None, DELETE)]).section_directive("Cache") is None
        True
        """

        for rule in self._rules:
            if not rule.section.matches(section):
                continue
            return rule.directive if rule.key is None else None
        return None

    def section_fallback(self, section: str) -> Directive | None:
        """Return the first section-wide directive for *section*, ignoring keyed rules before it."""

        for rule in self._rules:
            if rule.key is None and rule.section.matches(section):
                return rule.directive
        return None

    def _warn_overlap(self, section: str, key: str) -> None:
        with self._warned_lock:
            if (section, key) in self._warned:
                return
            self._warned.add((section, key))
        log_warning(
            "rule_overlap",
            document="rules",
            section=section,
            key=key,
            hint="first matching rule taken",
        )

    def forced_keys(self, section: str) -> tuple[str, ...]:
        """Return keys of *section* targeted by literal :class:`SetValue` rules, in declared order."""

        return self._forced.get(section, ())

    def forced_sections(self) -> tuple[str, ...]:
        """Return sections that own forced keys, in declared order."""

        return tuple(self._forced)


class RuleSetBuilder:
    """Fluent helper collecting rules in declared order.

    Examples
    --------
    >>> rules = (
    ...     RuleSetBuilder()
    ...     .ignore("General", "lastOpened")
    ...     .secret("Account", "password", service="mail", account="{section}")
    ...     .build()
    ... )
    >>> len(rules)
    2
    """

    def __init__(self) -> None:
        self._rules: list[Rule] = []
        self._warn_on_overlap = True

    def add(
        self, section: Matcher | str, key: Matcher | str | None, directive: Directive, *, regex: bool = False
    ) -> RuleSetBuilder:
        self._rules.append(Rule.of(section, key, directive, regex=regex))
        return self

    def copy(
        self, section: Matcher | str, key: Matcher | str | None = None, *, regex: bool = False
    ) -> RuleSetBuilder:
        return self.add(section, key, COPY_FROM_SOURCE, regex=regex)

    def ignore(
        self, section: Matcher | str, key: Matcher | str | None = None, *, regex: bool = False
    ) -> RuleSetBuilder:
        return self.add(section, key, IGNORE, regex=regex)

    def preserve(
        self, section: Matcher | str, key: Matcher | str | None = None, *, regex: bool = False
    ) -> RuleSetBuilder:
        return self.add(section, key, PRESERVE, regex=regex)

    def delete(
        self, section: Matcher | str, key: Matcher | str | None = None, *, regex: bool = False
    ) -> RuleSetBuilder:
        return self.add(section, key, DELETE, regex=regex)

    def secret(
        self,
        section: Matcher | str,
        key: Matcher | str | None,
        *,
        service: str,
        account: str = "{key}",
        on_error: SecretErrorPolicy = "fail",
        regex: bool = False,
    ) -> RuleSetBuilder:
        return self.add(section, key, Secret(service, account, on_error), regex=regex)

    def set_value(self, section: str, key: str, value: str, *, separator: str = "=") -> RuleSetBuilder:
        """Force ``key`` in ``section`` to *value* (literal matchers only)."""

        return self.add(section, key, SetValue(value, separator))

    def transform(
        self, section: Matcher | str, key: Matcher | str | None, transformer: "Transformer", *, regex: bool = False
    ) -> RuleSetBuilder:
        return self.add(section, key, Transform(transformer), regex=regex)

    def warn_on_overlap(self, enabled: bool) -> RuleSetBuilder:
        self._warn_on_overlap = enabled
        return self

    def build(self) -> RuleSet:
        return RuleSet(self._rules, warn_on_overlap=self._warn_on_overlap)


def _as_rule(item: RuleLike) -> Rule:
    if isinstance(item, Rule):
        return item
    section, key, directive = item
    return Rule.of(section, key, directive)


def _collect_forced(rules: tuple[Rule, ...]) -> dict[str, tuple[str, ...]]:
    """Group literal ``SetValue`` rules by section, keeping declared order."""

    forced: dict[str, list[str]] = {}
    for rule in rules:
        if not isinstance(rule.directive, SetValue):
            continue
        if isinstance(rule.section, ExactLiteral) and isinstance(rule.key, ExactLiteral):
            keys = forced.setdefault(rule.section.text, [])
            if rule.key.text not in keys:
                keys.append(rule.key.text)
    return {section: tuple(keys) for section, keys in forced.items()}

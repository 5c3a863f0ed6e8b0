"""Translate loaded rule mappings into rule sets.

Purpose
-------
Rule files are plain data (``rules`` array plus optional ``options`` table).
This module validates that data and turns each entry into a
:class:`~lib_ini_merge.domain.rules.Rule` carrying the directive named by its
``action``.

Contents
--------
* :func:`rules_from_mapping` – build a merge or filter :class:`RuleSet`.
* :data:`MERGE_ACTIONS` / :data:`FILTER_ACTIONS` – accepted action names.
"""

from __future__ import annotations

from typing import Any, Callable, Final, Literal, Mapping

from ...application.filter import REMOVE, Replace, filter_rule_set
from ...application.transforms import TRANSFORMS
from ...domain.errors import PatternError, RuleFileError
from ...domain.rules import (
    COPY_FROM_SOURCE,
    DELETE,
    IGNORE,
    PRESERVE,
    Rule,
    RuleSet,
    Secret,
    SetValue,
    Transform,
)
from ...observability import log_debug

RuleKind = Literal["merge", "filter"]


def _optional_str(spec: Mapping[str, Any], name: str, default: str | None, where: str) -> str | None:
    value = spec.get(name, default)
    if value is not None and not isinstance(value, str):
        raise RuleFileError(f"{where}: '{name}' must be a string")
    return value


def _required_str(spec: Mapping[str, Any], name: str, where: str) -> str:
    value = _optional_str(spec, name, None, where)
    if value is None:
        raise RuleFileError(f"{where}: '{name}' is required")
    return value


def _secret(spec: Mapping[str, Any], where: str) -> Secret:
    return Secret(
        _required_str(spec, "service", where),
        _optional_str(spec, "account", "{key}", where) or "{key}",
        _optional_str(spec, "on_error", "fail", where),  # type: ignore[arg-type]
    )


def _set_value(spec: Mapping[str, Any], where: str) -> SetValue:
    return SetValue(_required_str(spec, "value", where), _optional_str(spec, "separator", "=", where) or "=")


def _transform(name: str) -> Callable[[Mapping[str, Any], str], Transform]:
    factory = TRANSFORMS[name]

    def build(spec: Mapping[str, Any], where: str) -> Transform:
        return Transform(factory(spec))

    return build


MERGE_ACTIONS: Final[Mapping[str, Callable[[Mapping[str, Any], str], Any]]] = {
    "copy": lambda spec, where: COPY_FROM_SOURCE,
    "ignore": lambda spec, where: IGNORE,
    "preserve": lambda spec, where: PRESERVE,
    "delete": lambda spec, where: DELETE,
    "secret": _secret,
    "set": _set_value,
    "unsorted-list": _transform("unsorted-list"),
    "kde-shortcut": _transform("kde-shortcut"),
}
"""Merge directive factories keyed by ``action``."""

FILTER_ACTIONS: Final[Mapping[str, Callable[[Mapping[str, Any], str], Any]]] = {
    "remove": lambda spec, where: REMOVE,
    "replace": lambda spec, where: Replace(_required_str(spec, "value", where)),
}
"""Filter directive factories keyed by ``action``."""


def rules_from_mapping(data: Mapping[str, Any], *, kind: RuleKind = "merge", path: str = "<rules>") -> RuleSet:
    """Build a :class:`RuleSet` from a loaded rule document.

    Parameters
    ----------
    data:
        Mapping with a ``rules`` list and an optional ``options`` table.
    kind:
        ``"merge"`` or ``"filter"``; selects the accepted actions and the
        default directive.
    path:
        Origin used in error messages.

    Raises
    ------
    RuleFileError
        When the document shape, an action or a pattern is invalid.

    Examples
    --------
    >>> rules = rules_from_mapping({"rules": [{"section": "General", "key": "lastOpened", "action": "ignore"}]})
    >>> rules.match("General", "lastOpened")
    Ignore()
    >>> rules_from_mapping({"rules": [{"section": "x", "action": "explode"}]})
    Traceback (most recent call last):
    ...
    lib_ini_merge.domain.errors.RuleFileError: <rules> rule #1: unknown action 'explode'
    """

    actions = MERGE_ACTIONS if kind == "merge" else FILTER_ACTIONS
    entries = data.get("rules", [])
    if not isinstance(entries, list):
        raise RuleFileError(f"{path}: 'rules' must be a list of tables")
    options = data.get("options", {})
    if not isinstance(options, Mapping):
        raise RuleFileError(f"{path}: 'options' must be a table")
    warn_on_overlap = options.get("warn_on_overlap", True)
    if not isinstance(warn_on_overlap, bool):
        raise RuleFileError(f"{path}: 'options.warn_on_overlap' must be a boolean")

    rules: list[Rule] = []
    for number, spec in enumerate(entries, start=1):
        where = f"{path} rule #{number}"
        if not isinstance(spec, Mapping):
            raise RuleFileError(f"{where}: must be a table")
        section = _required_str(spec, "section", where)
        key = _optional_str(spec, "key", None, where)
        match = spec.get("match", "literal")
        if match not in ("literal", "regex"):
            raise RuleFileError(f"{where}: 'match' must be 'literal' or 'regex'")
        action = _required_str(spec, "action", where)
        factory = actions.get(action)
        if factory is None:
            raise RuleFileError(f"{where}: unknown action {action!r}")
        try:
            rules.append(Rule.of(section, key, factory(spec, where), regex=match == "regex"))
        except (PatternError, ValueError) as exc:
            raise RuleFileError(f"{where}: {exc}") from exc

    log_debug("rules_built", document="rules", path=path, kind=kind, count=len(rules))
    if kind == "filter":
        return filter_rule_set(rules, warn_on_overlap=warn_on_overlap)
    return RuleSet(rules, warn_on_overlap=warn_on_overlap)

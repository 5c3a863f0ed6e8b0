"""Composition root for ``lib_ini_merge``.

Purpose
-------
Provide the entry points that wire the tokenizer, the source index, the rule
set, the secret resolver and the merge engine together. Consumers import from
here (or from the package root) and never touch adapters directly.

Contents
--------
* :data:`_RULE_LOADERS` – mapping of rule file suffixes to loader instances.
* :func:`parse` / :func:`build_source_index` – parsing helpers.
* :func:`iter_merge_ini` – lazy merge returning an iterator of segments.
* :func:`merge_ini` / :func:`merge_ini_with_report` – eager merges.
* :func:`filter_ini` – single-file remove/replace pass.
* :func:`load_rules` / :func:`load_filter_rules` – rule files to rule sets.

System Role
-----------
Both inputs are parsed before the first segment is produced, so parse errors
never leave partial output behind. The module owns no file I/O besides rule
file loading; reading and writing INI files is the caller's business.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from .adapters.rule_loaders.specs import RuleKind, rules_from_mapping
from .adapters.rule_loaders.structured import RULE_LOADERS
from .adapters.secrets.default import NullSecretResolver
from .adapters.tokenizer.roundtrip import RoundTripTokenizer
from .application.filter import iter_filter
from .application.merge import MergeReport, iter_merge
from .application.ports import SecretResolver
from .application.source_index import SourceIndex
from .domain.document import Document
from .domain.errors import RuleFileError
from .domain.rules import RuleSet
from .observability import log_info

_TOKENIZER = RoundTripTokenizer()

# Supported rule file loaders keyed by suffix.
_RULE_LOADERS = RULE_LOADERS


def parse(text: str) -> Document:
    """Tokenize *text* into an arena-backed :class:`Document`.

    Raises
    ------
    ParseError
        When a line is malformed (unterminated header, empty key).
    """

    return _TOKENIZER.tokenize(text)


def build_source_index(source: str | Document) -> SourceIndex:
    """Parse (when needed) and index the source document.

    The index is read-only and may be shared by independent merges.

    Examples
    --------
    >>> index = build_source_index("[a]\\nx=1\\nx=2\\n")
    >>> [entry.value for entry in index.values("a", "x")]
    ['1', '2']
    """

    document = source if isinstance(source, Document) else parse(source)
    return SourceIndex(document)


def iter_merge_ini(
    target: str,
    source: str | SourceIndex,
    rules: RuleSet | None = None,
    *,
    resolver: SecretResolver | None = None,
    report: MergeReport | None = None,
) -> Iterator[str]:
    """Return a lazy iterator of output segments for merging *source* into *target*.

    Why
    ----
    Streaming callers write segments as they come without holding the merged
    text in memory twice.

    What
    ----
    Parses both inputs immediately (so :class:`ParseError` surfaces from this
    call, not from iteration) and hands them to
    :func:`lib_ini_merge.application.merge.iter_merge`.

    Parameters
    ----------
    target:
        Text of the live file; its formatting is preserved.
    source:
        Text of the desired file, or a prebuilt :class:`SourceIndex`.
    rules:
        Rule set; ``None`` means every key is copied from the source.
    resolver:
        Secret store; defaults to :class:`NullSecretResolver`.
    report:
        Optional collector for warnings, notices and appended sections.
    """

    target_document = parse(target)
    index = source if isinstance(source, SourceIndex) else build_source_index(source)
    return iter_merge(
        target_document,
        index,
        rules if rules is not None else RuleSet(),
        resolver if resolver is not None else NullSecretResolver(),
        report,
    )


def merge_ini(
    target: str,
    source: str | SourceIndex,
    rules: RuleSet | None = None,
    *,
    resolver: SecretResolver | None = None,
) -> str:
    """Merge *source* into *target* and return the complete output text.

    The generator is exhausted before anything is returned, so a secret
    failure raises without handing back partial output.

    Examples
    --------
    >>> from lib_ini_merge.domain.rules import RuleSetBuilder
    >>> rules = RuleSetBuilder().ignore("General", "lastOpened").build()
    >>> merge_ini(
    ...     "[General]\\ntheme=dark\\nlastOpened=/home/u/a.txt\\n",
    ...     "[General]\\ntheme=light\\nlastOpened=\\n",
    ...     rules,
    ... )
    '[General]\\ntheme=light\\nlastOpened=/home/u/a.txt\\n'
    """

    text, _ = merge_ini_with_report(target, source, rules, resolver=resolver)
    return text


def merge_ini_with_report(
    target: str,
    source: str | SourceIndex,
    rules: RuleSet | None = None,
    *,
    resolver: SecretResolver | None = None,
) -> tuple[str, MergeReport]:
    """Return ``(merged_text, report)`` for one merge."""

    report = MergeReport()
    text = "".join(iter_merge_ini(target, source, rules, resolver=resolver, report=report))
    return text, report


def filter_ini(text: str, rules: RuleSet) -> str:
    """Apply filter *rules* (``Remove``/``Replace``) to one INI text.

    Examples
    --------
    >>> from lib_ini_merge.application.filter import REMOVE, filter_rule_set
    >>> filter_ini("[a]\\nsecret=1\\nkeep=2\\n", filter_rule_set([("a", "secret", REMOVE)]))
    '[a]\\nkeep=2\\n'
    """

    return "".join(iter_filter(parse(text), rules))


def load_rules(path: str | Path) -> RuleSet:
    """Load a merge rule file (TOML, JSON or YAML) into a :class:`RuleSet`."""

    return _load(path, "merge")


def load_filter_rules(path: str | Path) -> RuleSet:
    """Load a filter rule file into a :class:`RuleSet` defaulting to ``Keep``."""

    return _load(path, "filter")


def _load(path: str | Path, kind: RuleKind) -> RuleSet:
    """Pick the loader by suffix, then translate the mapping.

    Examples
    --------
    >>> _load("rules.ini", "merge")
    Traceback (most recent call last):
    ...
    lib_ini_merge.domain.errors.RuleFileError: Unsupported rule file format: rules.ini
    """

    location = str(path)
    loader = _RULE_LOADERS.get(Path(location).suffix.lower())
    if loader is None:
        raise RuleFileError(f"Unsupported rule file format: {location}")
    data = loader.load(location)  # type: ignore[attr-defined]
    rules = rules_from_mapping(data, kind=kind, path=location)
    log_info("rules_loaded", document="rules", path=location, kind=kind, count=len(rules))
    return rules


__all__ = [
    "MergeReport",
    "RuleSet",
    "SourceIndex",
    "build_source_index",
    "filter_ini",
    "iter_merge_ini",
    "load_filter_rules",
    "load_rules",
    "merge_ini",
    "merge_ini_with_report",
    "parse",
]

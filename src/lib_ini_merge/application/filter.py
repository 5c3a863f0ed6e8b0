"""Single-file filter engine.

Purpose
-------
Redact or prune one INI document, for example before committing a live file
that contains tokens or before showing it in a diff. Rules use the same
first-match-wins :class:`~lib_ini_merge.domain.rules.RuleSet` as merges, with
the filter directives ``Keep``, ``Remove`` and ``Replace``.

Contents
--------
* :class:`Keep` / :class:`Remove` / :class:`Replace` – filter directives
  (defined with the merge directives in :mod:`lib_ini_merge.domain.rules`).
* :func:`filter_rule_set` – build a rule set whose default is :data:`KEEP`.
* :func:`iter_filter` – lazy generator of output segments.

Behaviour
---------
* ``Remove`` on a key drops the line; a section-wide ``Remove`` drops the
  header together with every line of the section, unless a keyed rule
  declared before it covers the section. Keys are then judged one by one.
* ``Replace`` substitutes the value token and keeps separator spacing; bare
  keys stay as they are.
* A section header and the comments after it are held back until the first
  kept key of the section; sections without kept keys vanish entirely.
"""

from __future__ import annotations

from typing import Final, Iterable, Iterator

from ..domain.document import OUTSIDE_SECTION, Document, TokenKind
from ..domain.rules import Keep, Remove, Replace, RuleLike, RuleSet
from ..observability import log_debug, make_event
from .merge import substitute_value


KEEP: Final[Keep] = Keep()
REMOVE: Final[Remove] = Remove()


def filter_rule_set(rules: Iterable[RuleLike] = (), *, warn_on_overlap: bool = True) -> RuleSet:
    """Return a :class:`RuleSet` for filtering, defaulting to :data:`KEEP`."""

    return RuleSet(rules, default=KEEP, warn_on_overlap=warn_on_overlap)


def iter_filter(document: Document, rules: RuleSet) -> Iterator[str]:
    """Yield the segments of the filtered document.

    Examples
    --------
    >>> from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
    >>> rules = filter_rule_set([("auth", "token", Replace("HIDDEN"))])
    >>> "".join(iter_filter(tokenize("[auth]\\nuser=me\\ntoken = abc\\n"), rules))
    '[auth]\\nuser=me\\ntoken = HIDDEN\\n'
    """

    section = OUTSIDE_SECTION
    removed = isinstance(rules.section_directive(section), Remove)
    pending: list[str] = []
    dropped = 0

    for token in document.tokens:
        if token.kind is TokenKind.SECTION:
            if pending:
                log_debug("section_filtered", **make_event("target", section, {"reason": "no kept keys"}))
            section = document.section_of(token)
            removed = isinstance(rules.section_directive(section), Remove)
            pending = [] if removed else [document.raw(token)]
            continue
        if token.kind is not TokenKind.PROPERTY:
            if removed:
                continue
            if pending:
                pending.append(document.raw(token))
            else:
                yield document.raw(token)
            continue

        directive = rules.match(section, document.key_of(token))
        if isinstance(directive, Remove):
            dropped += 1
            continue
        yield from pending
        pending = []
        if isinstance(directive, Replace) and token.value is not None:
            yield substitute_value(document, token, directive.value) + document.eol_of(token)
        else:
            yield document.raw(token)

    log_debug("filter_completed", **make_event("output", None, {"removed_keys": dropped}))

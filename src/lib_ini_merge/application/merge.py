"""Application-layer merge engine.

Purpose
-------
Merge a source document into a target document under a :class:`RuleSet` while
reproducing every untouched byte of the target. The engine is a state machine
over the target tokens that yields output segments lazily: runs of untouched
target lines are cut out of the target text in one slice, rewritten lines are
built from the target line with only the value token replaced.

Contents
--------
* :func:`iter_merge` – public entry point returning the segment generator.
* :class:`MergeReport` / :class:`MergeWarning` – recoverable findings of a run.
* :class:`MergePhase` – ``PREAMBLE`` → ``IN_SECTION`` → ``DONE``.
* :class:`_MergeRun` – transient merge state for exactly one pass.
* :func:`substitute_value` – rebuild one line with a new value.

System Role
-----------
Receives parsed documents and the rule set from :mod:`lib_ini_merge.core` and
consults the injected :class:`~lib_ini_merge.application.ports.SecretResolver`
for ``Secret`` directives. Free of I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from ..domain.document import OUTSIDE_SECTION, Document, Entry, Token, TokenKind
from ..domain.errors import ExhaustionNotice, SecretLookupError
from ..domain.rules import (
    CopyFromSource,
    Delete,
    Ignore,
    Preserve,
    RuleSet,
    Secret,
    SetValue,
    Transform,
)
from ..observability import log_debug, log_error, log_info, log_warning, make_event
from .ports import SecretResolver
from .source_index import MergeCursor, SourceIndex


class MergePhase(Enum):
    PREAMBLE = "preamble"
    IN_SECTION = "in_section"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class MergeWarning:
    """A recoverable problem that did not abort the merge."""

    section: str
    key: str
    message: str


@dataclass(slots=True)
class MergeReport:
    """Findings collected while a merge generator runs.

    Attributes
    ----------
    warnings:
        Secret lookups downgraded by ``on_error="keep"``.
    notices:
        Target occurrences that found no source value left.
    appended_sections:
        Sections written from the source because the target lacked them.
    """

    warnings: list[MergeWarning] = field(default_factory=list)
    notices: list[ExhaustionNotice] = field(default_factory=list)
    appended_sections: list[str] = field(default_factory=list)


def iter_merge(
    target: Document,
    source: SourceIndex,
    rules: RuleSet,
    resolver: SecretResolver,
    report: MergeReport | None = None,
) -> Iterator[str]:
    """Return the lazy, single-pass sequence of segments forming the merged text.

    Why
    ----
    Large files are merged without building intermediate line lists, and
    untouched regions are passed through as slices of the target text.

    Parameters
    ----------
    target:
        The live document whose formatting is preserved.
    source:
        Index over the desired document.
    rules:
        Directive classifier; ``CopyFromSource`` when nothing matches.
    resolver:
        Secret store consulted for ``Secret`` directives.
    report:
        Optional collector for warnings and notices.

    Returns
    -------
    Iterator[str]
        Segments whose concatenation is the merged text. The generator cannot
        be restarted; merging again means calling this function again.

    Raises
    ------
    SecretLookupError
        While iterating, when a ``Secret`` directive with the default ``fail``
        policy cannot be resolved.
    TransformError
        While iterating, when a transform cannot handle a value.

    Examples
    --------
    >>> from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
    >>> from lib_ini_merge.adapters.secrets.default import NullSecretResolver
    >>> target = tokenize("[General]\\ntheme=dark\\n")
    >>> source = SourceIndex(tokenize("[General]\\ntheme=light\\n"))
    >>> "".join(iter_merge(target, source, RuleSet(), NullSecretResolver()))
    '[General]\\ntheme=light\\n'
    """

    run = _MergeRun(target, source, rules, resolver, report if report is not None else MergeReport())
    return run.segments()


def substitute_value(document: Document, token: Token, value: str | None, separator: str = "=") -> str:
    """Return the line of *token* with its value replaced by *value* (no terminator).

    Leading whitespace, key spelling, separator spacing and trailing whitespace
    are kept. A bare key gains ``separator`` and *value*; ``value=None`` turns
    the line into a bare key.

    Examples
    --------
    >>> from lib_ini_merge.adapters.tokenizer.roundtrip import tokenize
    >>> doc = tokenize("  key =  old  ")
    >>> substitute_value(doc, doc.tokens[0], "new")
    '  key =  new  '
    >>> doc = tokenize("flag")
    >>> substitute_value(doc, doc.tokens[0], "1", " = ")
    'flag = 1'
    """

    text = document.text
    line = token.line
    assert token.key is not None
    if value is None:
        if token.value is None:
            return text[line.start : line.end]
        return text[line.start : token.key.end]
    if token.value is None:
        return text[line.start : token.key.end] + separator + value + text[token.key.end : line.end]
    return text[line.start : token.value.start] + value + text[token.value.end : line.end]


class _MergeRun:
    """Transient state of one merge pass; discarded when the generator finishes."""

    def __init__(
        self,
        target: Document,
        source: SourceIndex,
        rules: RuleSet,
        resolver: SecretResolver,
        report: MergeReport,
    ) -> None:
        self._target = target
        self._source = source
        self._rules = rules
        self._resolver = resolver
        self._report = report
        self._cursor: MergeCursor = source.cursor()
        self._newline = target.newline
        self._phase = MergePhase.PREAMBLE
        self._section = OUTSIDE_SECTION
        self._visited: set[str] = {OUTSIDE_SECTION}
        self._seen: dict[str, set[str]] = {}
        self._occurrences: dict[tuple[str, str], int] = {}
        self._deleting = False
        self._held: list[str] | None = None
        self._held_open = False
        self._begin_section(OUTSIDE_SECTION)
        self._last_header = _last_headers(target)
        self._header = -1
        self._run_start: int | None = None
        self._run_end = 0
        self._open_line = False

    def segments(self) -> Iterator[str]:
        log_debug("merge_started", **make_event("target", None, {"tokens": len(self._target.tokens)}))
        for index, token in enumerate(self._target.tokens):
            if token.kind is TokenKind.SECTION:
                yield from self._leave_section()
                self._header = index
                yield from self._enter_section(token)
            elif self._deleting:
                yield from self._drop()
            elif token.kind is TokenKind.PROPERTY:
                yield from self._property(token)
            elif self._held is not None:
                yield from self._hold(token)
            else:
                self._keep(token)
        yield from self._leave_section()
        yield from self._new_sections()
        yield from self._flush()
        self._phase = MergePhase.DONE
        log_info(
            "merge_completed",
            **make_event(
                "output",
                None,
                {
                    "warnings": len(self._report.warnings),
                    "notices": len(self._report.notices),
                    "appended_sections": len(self._report.appended_sections),
                },
            ),
        )

    # -- output primitives -------------------------------------------------

    def _keep(self, token: Token) -> None:
        """Extend the current run of untouched target text by *token*."""

        if self._run_start is None:
            self._run_start = token.line.start
        self._run_end = token.eol.end
        self._open_line = not len(token.eol)

    def _flush(self) -> Iterator[str]:
        if self._run_start is not None:
            yield self._target.text[self._run_start : self._run_end]
            self._run_start = None

    def _drop(self) -> Iterator[str]:
        """Skip the current token; the untouched run before it ends here."""

        yield from self._flush()

    def _rewrite(self, token: Token, line: str) -> Iterator[str]:
        """Emit *line* in place of *token*, keeping the token's terminator."""

        if line == self._target.line_text(token):
            self._keep(token)
            return
        yield from self._flush()
        eol = self._target.eol_of(token)
        yield line + eol
        self._open_line = not eol

    def _new_line(self, line: str) -> Iterator[str]:
        """Emit a line that has no counterpart in the target."""

        yield from self._release()
        yield from self._flush()
        if self._open_line:
            yield self._newline
        yield line + self._newline
        self._open_line = False

    def _hold(self, token: Token) -> Iterator[str]:
        """Keep *token* back until a key of the section survives."""

        yield from self._flush()
        assert self._held is not None
        self._held.append(self._target.raw(token))
        self._held_open = not len(token.eol)

    def _release(self) -> Iterator[str]:
        """Emit the held header lines; later tokens of the section pass through."""

        if self._held:
            yield from self._flush()
            yield "".join(self._held)
            self._open_line = self._held_open
        self._held = None

    # -- structure ---------------------------------------------------------

    def _begin_section(self, name: str) -> None:
        """Decide whether *name* is deleted wholesale, held back or passed through.

        A section-wide ``Delete`` shadowed by keyed rules declared before it
        only removes the keys those rules leave alone; the header is held until
        one key survives.
        """

        self._deleting = isinstance(self._rules.section_directive(name), Delete)
        partial = not self._deleting and isinstance(self._rules.section_fallback(name), Delete)
        self._held = [] if partial else None

    def _enter_section(self, token: Token) -> Iterator[str]:
        name = self._target.section_of(token)
        self._section = name
        self._visited.add(name)
        self._phase = MergePhase.IN_SECTION
        self._begin_section(name)
        if self._deleting:
            log_debug("section_deleted", **make_event("target", name, {"phase": self._phase.value}))
            yield from self._drop()
        elif self._held is not None:
            yield from self._hold(token)
        else:
            self._keep(token)

    def _leave_section(self) -> Iterator[str]:
        """Append source-only and forced keys still pending for the current section."""

        if not self._deleting and self._last_header.get(self._section, -1) == self._header:
            for line in self._pending_lines(self._section):
                yield from self._new_line(line)
        if self._held:
            log_debug("section_skipped", **make_event("target", self._section, {"reason": "no surviving keys"}))
        self._held = None

    def _new_sections(self) -> Iterator[str]:
        """Write sections the target never visited, in source order, then forced-only sections."""

        candidates = [name for name in self._source.section_order() if name not in self._visited]
        candidates += [
            name
            for name in self._rules.forced_sections()
            if name not in self._visited and name not in candidates
        ]
        for name in candidates:
            self._visited.add(name)
            if isinstance(self._rules.section_directive(name), Delete):
                continue
            self._section = name
            lines = self._pending_lines(name)
            has_entries = bool(self._source.entries(name)) or bool(self._rules.forced_keys(name))
            if has_entries and not lines:
                log_debug("section_skipped", **make_event("source", name, {"reason": "all keys omitted"}))
                continue
            header = self._source.header_text(name) or f"[{name}]"
            yield from self._new_line(header)
            for line in lines:
                yield from self._new_line(line)
            self._report.appended_sections.append(name)
            log_debug("section_appended", **make_event("output", name, {"keys": len(lines)}))

    def _pending_lines(self, section: str) -> list[str]:
        """Collect the lines to append for *section*, consuming the entries they come from."""

        seen = self._seen.setdefault(section, set())
        lines: list[str] = []
        appended: set[str] = set()
        for entry in list(self._cursor.remaining_entries(section)):
            if entry.key in seen:
                continue
            self._cursor.consume(entry)
            line = self._appended_line(entry)
            if line is not None:
                lines.append(line)
                appended.add(entry.key)
        seen |= appended
        for key in self._rules.forced_keys(section):
            if key in seen:
                continue
            directive = self._rules.match(section, key)
            if isinstance(directive, SetValue):
                lines.append(key + directive.separator + directive.value)
                seen.add(key)
        return lines

    def _appended_line(self, entry: Entry) -> str | None:
        """Return the line for a source entry with no target counterpart, ``None`` to omit it."""

        section, key = entry.section, entry.key
        directive = self._rules.match(section, key)
        if isinstance(directive, CopyFromSource):
            return self._source.raw_line(entry)
        if isinstance(directive, (Ignore, Preserve, Delete)):
            payload = {"key": key, "directive": type(directive).__name__}
            log_debug("key_not_appended", **make_event("source", section, payload))
            return None
        if isinstance(directive, Secret):
            secret = self._resolve(section, key, directive)
            if secret is None:
                return None
            token = self._source.document.tokens[entry.index]
            return substitute_value(self._source.document, token, secret)
        if isinstance(directive, SetValue):
            return key + directive.separator + directive.value
        if isinstance(directive, Transform):
            return directive.transformer.apply(self._source.property_of(entry), None)
        raise TypeError(f"Unsupported merge directive {directive!r} for [{section}] {key}")

    # -- keys --------------------------------------------------------------

    def _property(self, token: Token) -> Iterator[str]:
        section = self._section
        key = self._target.key_of(token)
        occurrence = self._occurrences.get((section, key), 0)
        self._occurrences[(section, key)] = occurrence + 1
        directive = self._rules.match(section, key)
        if not isinstance(directive, Delete):
            yield from self._release()

        if isinstance(directive, CopyFromSource):
            yield from self._copy(token, section, key, occurrence)
            return

        self._seen.setdefault(section, set()).add(key)
        if isinstance(directive, (Ignore, Preserve)):
            self._keep(token)
        elif isinstance(directive, Delete):
            yield from self._drop()
        elif isinstance(directive, Secret):
            secret = self._resolve(section, key, directive)
            if secret is None:
                self._keep(token)
            else:
                yield from self._rewrite(token, substitute_value(self._target, token, secret))
        elif isinstance(directive, SetValue):
            yield from self._rewrite(token, substitute_value(self._target, token, directive.value, directive.separator))
        elif isinstance(directive, Transform):
            entry = self._cursor.next_value(section, key)
            src = None if entry is None else self._source.property_of(entry)
            line = directive.transformer.apply(src, self._target.property_of(section, token))
            if line is None:
                yield from self._drop()
            else:
                yield from self._rewrite(token, line)
        else:
            raise TypeError(f"Unsupported merge directive {directive!r} for [{section}] {key}")

    def _copy(self, token: Token, section: str, key: str, occurrence: int) -> Iterator[str]:
        entry = self._cursor.next_value(section, key)
        if entry is None:
            if self._source.has_key(section, key):
                self._report.notices.append(ExhaustionNotice(section, key, occurrence))
                payload = {"key": key, "occurrence": occurrence, "phase": self._phase.value}
                log_debug("key_exhausted", **make_event("source", section, payload))
            self._keep(token)
            return
        separator = self._source.document.separator_of(self._source.document.tokens[entry.index]) or "="
        yield from self._rewrite(token, substitute_value(self._target, token, entry.value, separator))

    def _resolve(self, section: str, key: str, directive: Secret) -> str | None:
        """Look up the secret for one key; ``None`` means keep the existing value."""

        account = directive.account_for(section, key)
        where = {"key": key, "service": directive.service, "account": account}
        try:
            secret = self._resolver.lookup(directive.service, account)
        except SecretLookupError as exc:
            located = exc.located(section, key)
            if directive.on_error == "keep":
                self._report.warnings.append(MergeWarning(section, key, str(located)))
                log_warning("secret_lookup_failed", **make_event("target", section, {**where, "policy": "keep"}))
                return None
            log_error("secret_lookup_failed", **make_event("target", section, {**where, "policy": "fail"}))
            raise located from exc
        log_debug("secret_resolved", **make_event("target", section, where))
        return secret


def _last_headers(document: Document) -> dict[str, int]:
    """Map each section name to the token index of its last header in *document*.

    Pending keys of a section repeated in the target are appended after its
    last occurrence only.
    """

    last: dict[str, int] = {}
    for index, token in enumerate(document.tokens):
        if token.kind is TokenKind.SECTION:
            last[document.section_of(token)] = index
    return last

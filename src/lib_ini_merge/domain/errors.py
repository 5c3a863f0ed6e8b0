"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the tokenizer, the rule set, the
merge engine, adapters and consuming applications. The hierarchy lives in the
domain layer so outer layers may depend on it without creating cycles.

Contents
--------
* :class:`IniMergeError` – umbrella base class for every library failure.
* :class:`PatternError` – a rule pattern or template failed to compile.
* :class:`ParseError` – malformed source or target text (with position).
* :class:`SecretLookupError` – secret resolution failed during a merge, with
  the :class:`SecretNotFound` and :class:`SecretBackendError` refinements
  raised by resolver adapters.
* :class:`TransformError` – a transform directive could not process a value.
* :class:`RuleFileError` / :class:`RuleFileNotFound` – rule file problems.
* :class:`ExhaustionNotice` – informational record, not an exception.

System Role
-----------
Construction and parse errors abort before any output is produced. Secret
errors abort the merge unless the governing rule opted into the ``keep``
policy. Callers catch :class:`IniMergeError` to handle all library failures
uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass


class IniMergeError(Exception):
    """Base type for all exceptions emitted by ``lib_ini_merge``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class PatternError(IniMergeError):
    """Raised when a rule pattern cannot be compiled.

    Typical Sources
    ---------------
    Regular expressions handed to :func:`lib_ini_merge.domain.rules.pattern`
    and account templates of secret directives that reference unknown fields.
    Always raised at rule set construction, before any merge begins.
    """


class ParseError(IniMergeError):
    """Raised when an input text does not follow the INI grammar.

    Attributes
    ----------
    line:
        1-based line number of the offending line.
    column:
        1-based column where the problem was detected.
    text:
        The offending line without its terminator.
    """

    def __init__(self, message: str, *, line: int, column: int, text: str) -> None:
        super().__init__(f"{message} at line {line}, column {column}: {text!r}")
        self.line = line
        self.column = column
        self.text = text


class SecretLookupError(IniMergeError):
    """Raised when a secret store cannot produce a value.

    The merge engine re-raises resolver failures through :meth:`located` so the
    final exception names the section and key that needed the secret.
    """

    def __init__(
        self,
        reason: str,
        *,
        service: str,
        account: str,
        section: str | None = None,
        key: str | None = None,
    ) -> None:
        location = f" for [{section}] {key}" if section is not None else ""
        super().__init__(f"Secret lookup failed{location} (service={service!r}, account={account!r}): {reason}")
        self.reason = reason
        self.service = service
        self.account = account
        self.section = section
        self.key = key

    def located(self, section: str, key: str) -> SecretLookupError:
        """Return a copy of this error (same type) annotated with *section* and *key*."""

        return type(self)(self.reason, service=self.service, account=self.account, section=section, key=key)


class SecretNotFound(SecretLookupError):
    """The secret store has no entry for the requested service and account."""


class SecretBackendError(SecretLookupError):
    """The secret store itself failed (locked, unavailable, misconfigured)."""


class TransformError(IniMergeError):
    """Raised when a transform directive cannot compare or rewrite a value."""

    def __init__(self, transform: str, section: str, key: str, reason: str) -> None:
        super().__init__(f"Failed to apply transform {transform} on [{section}] {key}: {reason}")
        self.transform = transform
        self.section = section
        self.key = key
        self.reason = reason


class RuleFileError(IniMergeError):
    """Raised when a rule file cannot be parsed or describes an invalid rule.

    Typical Sources
    ---------------
    Structured rule loaders (:mod:`tomllib`, :mod:`json`, :mod:`yaml`) and the
    rule specification translator.
    """


class RuleFileNotFound(RuleFileError):
    """Raised when a rule file path does not exist."""


@dataclass(frozen=True, slots=True)
class ExhaustionNotice:
    """Informational record: the source had fewer occurrences of a key than the target.

    Not an error. The engine keeps the target's value for the extra occurrence
    and records one notice per such occurrence.

    Attributes
    ----------
    section / key:
        Location of the exhausted key.
    occurrence:
        0-based occurrence number in the target that found no source value.
    """

    section: str
    key: str
    occurrence: int

"""Application-layer ports describing collaborator responsibilities.

Purpose
-------
Define the structural contracts the merge engine relies on so it never depends
on a concrete tokenizer, secret store or transform implementation.

Contents
--------
* :class:`Tokenizer` – turns text into an arena-backed document.
* :class:`SecretResolver` – looks up a secret by service and account.
* :class:`Transformer` – decides the output line for a transform directive.
* :class:`RuleLoader` – parses a rule file into a raw mapping.

System Role
-----------
These protocols enforce Dependency Inversion. Adapters under
:mod:`lib_ini_merge.adapters` implement them; the composition root wires the
defaults.
"""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable

from ..domain.document import Document, Property


@runtime_checkable
class Tokenizer(Protocol):
    """Produce a lossless token stream for one input text.

    Why
    ----
    Keep the grammar replaceable while the engine only relies on spans.
    """

    def tokenize(self, text: str) -> Document:
        """Return the document for *text* or raise ``ParseError``."""


@runtime_checkable
class SecretResolver(Protocol):
    """Resolve secrets for ``Secret`` directives.

    Why
    ----
    The secret store is optional and platform specific; the engine receives it
    as an injected capability with a single method.

    Contract
    --------
    Return the secret string, or raise ``SecretNotFound`` when there is no
    entry and ``SecretBackendError`` when the store itself fails. Timeouts and
    retries, if any, belong to the implementation.
    """

    def lookup(self, service: str, account: str) -> str:
        """Return the secret stored for *service* and *account*."""


@runtime_checkable
class Transformer(Protocol):
    """Choose the output line for a key governed by a ``Transform`` directive.

    Contract
    --------
    ``source`` and ``target`` describe the same ``(section, key)``; at least one
    of them is present. Return the line to write (without terminator) or
    ``None`` to write nothing. Returning ``target.raw`` keeps the target line
    byte-for-byte. Raise ``TransformError`` when the values cannot be handled.
    """

    name: str

    def apply(self, source: Property | None, target: Property | None) -> str | None:
        """Return the output line for this key or ``None``."""


@runtime_checkable
class RuleLoader(Protocol):
    """Parse a structured rule file into a mapping.

    Why
    ----
    Segregate file format concerns (TOML/JSON/YAML) from rule translation.
    """

    def load(self, path: str) -> Mapping[str, object]:
        """Read *path* and return its mapping or raise ``RuleFileError``."""

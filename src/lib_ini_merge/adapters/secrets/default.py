"""Secret resolver adapters.

Purpose
-------
Implement the :class:`lib_ini_merge.application.ports.SecretResolver` port for
the secret stores the CLI can select, plus an in-memory resolver for
embedding and tests.

Contents
--------
* :class:`NullSecretResolver` – default; every lookup reports not-found.
* :class:`MappingSecretResolver` – serves secrets from a mapping.
* :class:`EnvSecretResolver` – reads ``<PREFIX>__<SERVICE>__<ACCOUNT>``
  environment variables.
* :class:`KeyringSecretResolver` – queries the system keyring (optional
  ``keyring`` dependency).
* :func:`secret_env_name` – the variable naming convention.
* :data:`RESOLVERS` – factories keyed by the names accepted by the CLI.

System Role
-----------
Resolvers translate backend failures into :class:`SecretNotFound` or
:class:`SecretBackendError`; the merge engine decides whether a failure is
fatal. Secret values are never logged.
"""

from __future__ import annotations

import os
import re
from typing import Callable, Final, Mapping

from ...application.ports import SecretResolver
from ...domain.errors import SecretBackendError, SecretNotFound
from ...observability import log_debug

try:
    import keyring  # type: ignore[import-not-found]
    import keyring.errors  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    keyring = None  # type: ignore[assignment]

DEFAULT_SECRET_ENV_PREFIX: Final[str] = "LIB_INI_MERGE_SECRET"

_NON_IDENTIFIER: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9]+")


class NullSecretResolver:
    """Resolver used when no secret store is configured: every lookup is not-found."""

    def lookup(self, service: str, account: str) -> str:
        raise SecretNotFound("no secret store is configured", service=service, account=account)


class MappingSecretResolver:
    """Serve secrets from an in-memory ``{(service, account): secret}`` mapping.

    Examples
    --------
    >>> resolver = MappingSecretResolver({("mail", "alice"): "hunter2"})
    >>> resolver.lookup("mail", "alice")
    'hunter2'
    """

    def __init__(self, secrets: Mapping[tuple[str, str], str]) -> None:
        self._secrets = dict(secrets)

    def lookup(self, service: str, account: str) -> str:
        try:
            return self._secrets[(service, account)]
        except KeyError:
            raise SecretNotFound("no such entry", service=service, account=account) from None


def secret_env_name(service: str, account: str, prefix: str = DEFAULT_SECRET_ENV_PREFIX) -> str:
    """Return the environment variable consulted by :class:`EnvSecretResolver`.

    Non-alphanumeric runs collapse to ``_`` and everything is upper-cased.

    Examples
    --------
    >>> secret_env_name("mail-client", "Account/password")
    'LIB_INI_MERGE_SECRET__MAIL_CLIENT__ACCOUNT_PASSWORD'
    """

    parts = [prefix, service, account]
    return "__".join(_NON_IDENTIFIER.sub("_", part).strip("_").upper() for part in parts)


class EnvSecretResolver:
    """Read secrets from environment variables named by :func:`secret_env_name`."""

    def __init__(self, *, environ: Mapping[str, str] | None = None, prefix: str = DEFAULT_SECRET_ENV_PREFIX) -> None:
        """Initialise the resolver with a specific ``environ`` mapping for testability.

        Parameters
        ----------
        environ:
            Mapping to read from. Defaults to :data:`os.environ`.
        prefix:
            Leading part of every variable name.
        """

        self._environ = environ if environ is not None else os.environ
        self._prefix = prefix

    def lookup(self, service: str, account: str) -> str:
        name = secret_env_name(service, account, self._prefix)
        value = self._environ.get(name)
        if value is None:
            log_debug("secret_env_missing", variable=name)
            raise SecretNotFound(f"environment variable {name} is not set", service=service, account=account)
        return value


class KeyringSecretResolver:
    """Look secrets up in the platform keyring through the ``keyring`` package.

    Entries are stored with ``keyring set <service> <account>``. A locked or
    unavailable keyring surfaces as :class:`SecretBackendError`, which lets
    rules with ``on_error = "keep"`` fall back to the value already on disk.
    """

    def lookup(self, service: str, account: str) -> str:
        if keyring is None:
            raise SecretBackendError(
                "the 'keyring' package is not installed (pip install lib_ini_merge[keyring])",
                service=service,
                account=account,
            )
        try:
            value = keyring.get_password(service, account)
        except keyring.errors.KeyringError as exc:
            raise SecretBackendError(str(exc) or type(exc).__name__, service=service, account=account) from exc
        if value is None:
            raise SecretNotFound("no keyring entry", service=service, account=account)
        return value


RESOLVERS: Final[Mapping[str, Callable[[], SecretResolver]]] = {
    "none": NullSecretResolver,
    "env": EnvSecretResolver,
    "keyring": KeyringSecretResolver,
}
"""Resolver factories keyed by the names accepted by ``--secrets``."""
